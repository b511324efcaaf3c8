"""
adcache - caching and rate-limiting layer for the advertising dashboard.

Sits between request handlers and the quota-limited upstream advertising API:
stale-while-revalidate reads with single-flight fetches, fixed-window rate
limits, and a Redis store that degrades to an in-process store.
"""

__version__ = "1.0.0"
