from .gateway import MutationGateway
from .store import StoreState, SubscriptionHandle, SyncedCollectionStore

__all__ = [
    "MutationGateway",
    "StoreState",
    "SubscriptionHandle",
    "SyncedCollectionStore",
]
