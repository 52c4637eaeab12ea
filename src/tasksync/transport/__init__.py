"""Remote store transports."""

from .base import (
    CancelToken,
    RemoteStoreTransport,
    Subscription,
    WriteAck,
    WriteOp,
    document_path,
    split_document_path,
)
from .http import HttpTransport
from .memory import InMemoryRemoteStore

__all__ = [
    "CancelToken",
    "HttpTransport",
    "InMemoryRemoteStore",
    "RemoteStoreTransport",
    "Subscription",
    "WriteAck",
    "WriteOp",
    "document_path",
    "split_document_path",
]
