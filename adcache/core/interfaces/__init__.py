"""Backend protocols."""

from adcache.core.interfaces.store import DistributedStore, Store, StoredValue

__all__ = ["Store", "DistributedStore", "StoredValue"]
