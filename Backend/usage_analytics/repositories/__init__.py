"""Data access for apps, API keys and analytics events. No business rules live here."""

from .app import AppStore
from .api_key import KeyStore
from .event import EventStore

__all__ = ["AppStore", "KeyStore", "EventStore"]
