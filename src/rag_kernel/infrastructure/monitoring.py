"""
Monitoring - Prometheus metrics for providers, retrieval and function chains

Metrics are created by setup_prometheus_metrics(); until then every tracker
is a no-op so library users and tests pay nothing.

License: MIT
"""

from typing import Dict, Any
import time
import logging
from contextlib import contextmanager

from prometheus_client import REGISTRY, Counter, Histogram

logger = logging.getLogger(__name__)

_metrics_initialized = False
EMBEDDING_DURATION = None
VECTOR_SEARCH_DURATION = None
LLM_GENERATION_DURATION = None
FUNCTION_INVOCATIONS = None
FUNCTION_DURATION = None
ERROR_COUNT = None


def setup_prometheus_metrics() -> None:
    """Initialize Prometheus metrics for the RAG kernel."""
    global _metrics_initialized
    global EMBEDDING_DURATION, VECTOR_SEARCH_DURATION, LLM_GENERATION_DURATION
    global FUNCTION_INVOCATIONS, FUNCTION_DURATION, ERROR_COUNT

    if _metrics_initialized:
        return

    EMBEDDING_DURATION = Histogram(
        "rag_kernel_embedding_duration_seconds", "Embedding generation duration in seconds"
    )

    VECTOR_SEARCH_DURATION = Histogram(
        "rag_kernel_vector_search_duration_seconds", "Vector search duration in seconds"
    )

    LLM_GENERATION_DURATION = Histogram(
        "rag_kernel_llm_generation_duration_seconds",
        "LLM generation duration in seconds",
        ["model"],
    )

    FUNCTION_INVOCATIONS = Counter(
        "rag_kernel_function_invocations_total",
        "Kernel function invocations",
        ["skill", "function", "status"],
    )

    FUNCTION_DURATION = Histogram(
        "rag_kernel_function_duration_seconds",
        "Kernel function invocation duration in seconds",
        ["skill", "function"],
    )

    ERROR_COUNT = Counter("rag_kernel_errors_total", "Total errors", ["error_type", "component"])

    _metrics_initialized = True
    logger.info("Prometheus metrics initialized")


@contextmanager
def embedding_duration_tracker():
    """Context manager to track embedding generation duration."""
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        if EMBEDDING_DURATION:
            EMBEDDING_DURATION.observe(duration)


@contextmanager
def vector_search_duration_tracker():
    """Context manager to track vector search duration."""
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        if VECTOR_SEARCH_DURATION:
            VECTOR_SEARCH_DURATION.observe(duration)


@contextmanager
def llm_generation_duration_tracker(model: str = "unknown"):
    """
    Context manager to track LLM generation duration.

    Args:
        model: Model name for labeling
    """
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        if LLM_GENERATION_DURATION:
            LLM_GENERATION_DURATION.labels(model=model).observe(duration)


def record_function_invocation(skill: str, function: str, status: str, duration: float) -> None:
    """
    Record one finished function invocation.

    Args:
        skill: Skill name
        function: Function name
        status: Terminal state, 'completed' or 'failed'
        duration: Invocation duration in seconds
    """
    if FUNCTION_INVOCATIONS:
        FUNCTION_INVOCATIONS.labels(skill=skill, function=function, status=status).inc()
    if FUNCTION_DURATION:
        FUNCTION_DURATION.labels(skill=skill, function=function).observe(duration)


def record_error(error_type: str, component: str) -> None:
    """
    Record an error occurrence.

    Args:
        error_type: Exception class name
        component: Component where error occurred (e.g., 'memory', 'kernel')
    """
    if ERROR_COUNT:
        ERROR_COUNT.labels(error_type=error_type, component=component).inc()


def get_system_metrics() -> Dict[str, Any]:
    """
    Summarise the kernel's Prometheus metric families.

    Returns:
        Dictionary keyed by metric family name
    """
    metrics: Dict[str, Any] = {"timestamp": time.time(), "initialized": _metrics_initialized}

    if not _metrics_initialized:
        return metrics

    families = {}
    for family in REGISTRY.collect():
        if family.name.startswith("rag_kernel_"):
            families[family.name] = {
                "type": family.type,
                "help": family.documentation,
                "samples": len(family.samples),
            }

    metrics["prometheus_metrics"] = families
    return metrics
