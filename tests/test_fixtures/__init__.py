"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .store_factory import CountingFetch, FakeClock, FlakyDistributedStore, StoreTestFactory

__all__ = ["CountingFetch", "FakeClock", "FlakyDistributedStore", "StoreTestFactory"]
