from arikedb.client.arikedb_client import ArikedbClient, connect
from arikedb.client.subscription import (
    DataPointHandler,
    Subscription,
    SubscriptionState,
)

__all__ = [
    "ArikedbClient",
    "connect",
    "DataPointHandler",
    "Subscription",
    "SubscriptionState",
]
