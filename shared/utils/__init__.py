"""
Utilities: error taxonomy.
"""

from shared.utils.exceptions import (
    FanoutError,
    RegistryUnavailable,
    MalformedEvent,
    PushError,
    StaleTargetError,
    TransientPushError,
)

__all__ = [
    "FanoutError",
    "RegistryUnavailable",
    "MalformedEvent",
    "PushError",
    "StaleTargetError",
    "TransientPushError",
]
