"""
Shared module for cross-cutting concerns of the fan-out service.

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging

- shared.infrastructure: Backing services
  - redis_pool.py: Async Redis pool singleton
  - correlation.py: Request / invocation correlation ids

- shared.utils: Utilities
  - exceptions.py: Error taxonomy (RegistryUnavailable, MalformedEvent, ...)

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.infrastructure.redis_pool import get_redis_pool
    from shared.utils.exceptions import RegistryUnavailable
"""
