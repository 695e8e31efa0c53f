"""Client-side entity cache."""
from jeongchongmu.store.entity_store import EntityStore
from jeongchongmu.store.pipeline import FetchOutcome

__all__ = ["EntityStore", "FetchOutcome"]
