# coding: utf-8
"""
Cache module for Redis integration

Read access to the quote snapshots maintained by the market-data job.
"""

from src.cache.redis_manager import RedisManager

__all__ = ["RedisManager"]
