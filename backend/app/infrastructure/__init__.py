"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.

The SQL record store lives in `app.infrastructure.sql_store`; it is not
re-exported here because it depends on the notification service, which in
turn depends on this package's Redis client.
"""

from .redis_client import get_redis, close_redis

__all__ = ['get_redis', 'close_redis']
