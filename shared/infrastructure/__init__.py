"""
Infrastructure module: Redis pool and correlation ids.
"""

from shared.infrastructure.redis_pool import (
    get_redis_pool,
    close_redis_pool,
    check_redis_health,
)
from shared.infrastructure.correlation import (
    CorrelationIdMiddleware,
    CorrelationIdFilter,
    get_request_id,
    invocation_scope,
)

__all__ = [
    "get_redis_pool",
    "close_redis_pool",
    "check_redis_health",
    "CorrelationIdMiddleware",
    "CorrelationIdFilter",
    "get_request_id",
    "invocation_scope",
]
