# coding: utf-8
"""
Redis configuration for the price snapshot store

The market-data refresh job writes the latest crypto and stock quotes under
fixed keys; this service only reads them.
"""
import os


class QuoteKeys:
    """
    Redis keys holding the latest quote snapshots

    Each key stores a JSON list: [{"symbol": "BTC/USD", "price": "64000.5"}, ...]
    """

    CRYPTO_QUOTES = os.getenv("REDIS_KEY_CRYPTO_QUOTES", "server:crypto:quotes")
    """Crypto mark prices"""

    STOCK_QUOTES = os.getenv("REDIS_KEY_STOCK_QUOTES", "server:stocks:quotes")
    """Stock mid prices"""


class CacheConfig:
    """
    Redis connection and behavior configuration
    """

    # Redis connection
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    """Redis connection URL"""

    REDIS_MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))
    """Maximum connections in pool"""

    REDIS_SOCKET_TIMEOUT = int(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))
    """Socket timeout in seconds (a stalled read fails the operation)"""

    REDIS_SOCKET_CONNECT_TIMEOUT = int(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "2"))
    """Socket connect timeout in seconds"""

    # Monitoring
    CACHE_LOG_MISSES = os.getenv("CACHE_LOG_MISSES", "true").lower() == "true"
    """Log missing snapshot keys"""
