"""
Structured Logging for Bufeo Store
==================================

Bounded Context: Observability

JSON-structured logging with typed event names.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from bufeo_store.logging import create_logger, LogEvent
    >>> logger = create_logger("store")
    >>> logger.warning(
    ...     event=LogEvent.STORE_FETCH_FAILED,
    ...     message="Fetch failed, collection left empty",
    ...     metadata={'kind': 'trips'}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
