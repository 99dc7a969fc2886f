"""
Utility Functions - Common helper functions and utilities

This module provides utility functions for:
- Batching and retry with backoff
- Vector similarity
- Timing and identifiers
- Deadlines and cancellation for provider calls

License: MIT
"""

from .helpers import (
    chunk_list,
    format_duration,
    retry_with_backoff,
    calculate_cosine_similarity,
    Timer,
    create_unique_id,
)
from .cancellation import CancellationToken, guarded_call

__all__ = [
    "chunk_list",
    "format_duration",
    "retry_with_backoff",
    "calculate_cosine_similarity",
    "Timer",
    "create_unique_id",
    "CancellationToken",
    "guarded_call",
]
