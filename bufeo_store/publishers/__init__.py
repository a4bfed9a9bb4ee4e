"""
Bufeo Store Publishers
======================

Bounded Context: Message Production

Public API
----------
    BasePublisher: Abstract base (connection management, publish)
    ViewPublisher: Dashboard view messages (retained)
"""

from .base import BasePublisher
from .view import ViewPublisher

__all__ = [
    'BasePublisher',
    'ViewPublisher',
]
