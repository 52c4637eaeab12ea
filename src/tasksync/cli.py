from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from .config import SyncConfig, load_sync_config
from .errors import TaskSyncError
from .logging_utils import configure_logging, pretty
from .session import TaskListSession, open_http_session

_session_factory: Callable[[SyncConfig], TaskListSession] = open_http_session


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _config(args: argparse.Namespace) -> SyncConfig:
    overrides = {
        "base_url": args.base_url or os.environ.get("TASKSYNC_BASE_URL"),
        "app_id": args.app_id or os.environ.get("TASKSYNC_APP_ID"),
        "log_level": args.log_level,
    }
    config, err = load_sync_config(_resolve_project_dir(args.project_dir), overrides)
    if err:
        logger.warning("Config problems (using defaults): {}", err)
    return config


async def _first_view(session: TaskListSession) -> None:
    await session.store.wait_for(
        lambda _view: session.store.snapshot_count > 0,
        timeout=session.config.request_timeout,
    )


def _run(args: argparse.Namespace, action: Callable[[TaskListSession], Awaitable[Any]]) -> int:
    config = _config(args)
    configure_logging(config.log_level)

    async def _main() -> Any:
        async with _session_factory(config) as session:
            return await action(session)

    try:
        result = asyncio.run(_main())
    except TaskSyncError as exc:
        sys.stderr.write(f"{exc.__class__.__name__}: {exc}\n")
        return 1
    except asyncio.TimeoutError:
        sys.stderr.write("Timed out waiting for the remote store\n")
        return 1
    except KeyboardInterrupt:
        return 0
    if isinstance(result, int):
        return result
    if result is not None:
        sys.stdout.write(pretty(result) + "\n")
    return 0


def _ack(ack: Any) -> Optional[dict[str, Any]]:
    if ack is None:
        return None
    return {"op": ack.op.value, "id": ack.task_id}


def _list(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> dict[str, Any]:
        await _first_view(session)
        return session.current_view().to_dict()

    return _run(args, action)


def _add(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> Optional[dict[str, Any]]:
        return _ack(await session.add(args.text))

    return _run(args, action)


def _toggle(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> Optional[dict[str, Any]]:
        await _first_view(session)
        return _ack(await session.toggle(args.task_id))

    return _run(args, action)


def _progress(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> Optional[dict[str, Any]]:
        return _ack(await session.set_progress(args.task_id, args.value))

    return _run(args, action)


def _remove(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> Optional[dict[str, Any]]:
        return _ack(await session.remove(args.task_id))

    return _run(args, action)


def _watch(args: argparse.Namespace) -> int:
    async def action(session: TaskListSession) -> int:
        updates: asyncio.Queue[tuple[Any, Any]] = asyncio.Queue()
        remove = session.store.add_listener(lambda view, error: updates.put_nowait((view, error)))
        shown = 0
        try:
            if session.store.snapshot_count > 0:
                updates.put_nowait((session.current_view(), None))
            while args.count is None or shown < args.count:
                view, error = await updates.get()
                if error is not None:
                    sys.stderr.write(f"SubscriptionError: {error}\n")
                    return 1
                sys.stdout.write(json.dumps(view.to_dict()) + "\n")
                sys.stdout.flush()
                shown += 1
        finally:
            remove()
        return 0

    return _run(args, action)


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'tasksync[server]'\n")
        return 1

    from .server import create_app

    config = _config(args)
    configure_logging(config.log_level)
    app = create_app(state_dir=config.state_dir)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Shared real-time task list client')
    parser.add_argument('--project-dir', default=None, help='Directory holding .tasksync/ (default: current working directory)')
    parser.add_argument('--base-url', default=None, help='Reference server URL (env: TASKSYNC_BASE_URL)')
    parser.add_argument('--app-id', default=None, help='Application id selecting the shared collection (env: TASKSYNC_APP_ID)')
    parser.add_argument('--log-level', default=None, help='Log level (default: INFO)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the reference store server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.set_defaults(func=_server)

    tlist = subparsers.add_parser('list', help='Print the current view')
    tlist.set_defaults(func=_list)

    tadd = subparsers.add_parser('add', help='Create a task')
    tadd.add_argument('text')
    tadd.set_defaults(func=_add)

    ttoggle = subparsers.add_parser('toggle', help='Toggle completion of a task')
    ttoggle.add_argument('task_id')
    ttoggle.set_defaults(func=_toggle)

    tprogress = subparsers.add_parser('progress', help='Set task progress (0-100)')
    tprogress.add_argument('task_id')
    tprogress.add_argument('value')
    tprogress.set_defaults(func=_progress)

    tremove = subparsers.add_parser('rm', help='Delete a task')
    tremove.add_argument('task_id')
    tremove.set_defaults(func=_remove)

    twatch = subparsers.add_parser('watch', help='Print the view on every change')
    twatch.add_argument('--count', default=None, type=int, help='Exit after this many views')
    twatch.set_defaults(func=_watch)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)
