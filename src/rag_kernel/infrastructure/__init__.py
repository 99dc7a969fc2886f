"""
Infrastructure Components - Monitoring and logging

This module provides operational infrastructure including:
- Prometheus metrics for providers, retrieval and function chains
- Structured logging configuration

License: MIT
"""

from .monitoring import (
    setup_prometheus_metrics,
    embedding_duration_tracker,
    vector_search_duration_tracker,
    llm_generation_duration_tracker,
    record_function_invocation,
    record_error,
    get_system_metrics,
)
from .logging_config import (
    setup_logging,
    setup_production_logging,
    setup_development_logging,
    JSONFormatter,
)

__all__ = [
    "setup_prometheus_metrics",
    "embedding_duration_tracker",
    "vector_search_duration_tracker",
    "llm_generation_duration_tracker",
    "record_function_invocation",
    "record_error",
    "get_system_metrics",
    "setup_logging",
    "setup_production_logging",
    "setup_development_logging",
    "JSONFormatter",
]
