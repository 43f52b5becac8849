"""rxstore: a unidirectional state container with composable middleware."""

from .action import Action
from .broadcast import Broadcaster, Subscription
from .chain import Dispatcher, Link, Middleware, Reducer, build_chain
from .config import StoreSettings, SubscriberErrorPolicy, load_settings
from .exceptions import ConfigurationError, StoreClosedError, StoreError, SubscriberError
from .store import Store, create_store
from .stream import StateStream

__all__ = [
    "Action",
    "Broadcaster",
    "ConfigurationError",
    "Dispatcher",
    "Link",
    "Middleware",
    "Reducer",
    "StateStream",
    "Store",
    "StoreClosedError",
    "StoreError",
    "StoreSettings",
    "Subscription",
    "SubscriberError",
    "SubscriberErrorPolicy",
    "build_chain",
    "create_store",
    "load_settings",
]
