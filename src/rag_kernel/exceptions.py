"""
Exceptions - Error taxonomy for the RAG kernel

Every failure surfaced by chunking, the memory store, providers or the
function orchestrator derives from RAGKernelError, so callers can catch the
whole family or a single condition.

License: MIT
"""

from typing import Optional


class RAGKernelError(Exception):
    """Base class for all errors raised by the RAG kernel."""

    def __init__(
        self,
        message: str,
        function_name: Optional[str] = None,
        variable_name: Optional[str] = None,
    ):
        """
        Initialize the error.

        Args:
            message: Human readable description
            function_name: Fully qualified function that failed, if any
            variable_name: Context variable involved in the failure, if any
        """
        super().__init__(message)
        self.message = message
        self.function_name = function_name
        self.variable_name = variable_name

    def __str__(self) -> str:
        details = []
        if self.function_name:
            details.append(f"function={self.function_name}")
        if self.variable_name:
            details.append(f"variable={self.variable_name}")

        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class InvalidArgumentError(RAGKernelError, ValueError):
    """Malformed or empty input to chunking, saving or registration."""

    pass


class EmbeddingProviderError(RAGKernelError):
    """The embedding provider failed to return vectors."""

    pass


class GenerationProviderError(RAGKernelError):
    """The generative provider failed to return text."""

    pass


class ProviderTimeoutError(RAGKernelError):
    """A provider call exceeded its deadline."""

    pass


class CollectionNotFoundError(RAGKernelError):
    """Search against a collection that holds no records."""

    def __init__(self, collection: str):
        super().__init__(f"Collection not found or empty: {collection}")
        self.collection = collection


class MissingContextVariableError(RAGKernelError):
    """A required context variable was absent when a function was invoked."""

    pass


class TemplateRenderError(RAGKernelError):
    """A prompt template could not be rendered."""

    pass


class TemplateSyntaxError(TemplateRenderError):
    """A prompt template could not be parsed."""

    def __init__(self, message: str, position: int = -1):
        super().__init__(f"{message} at position {position}" if position >= 0 else message)
        self.position = position


class OperationCancelledError(RAGKernelError):
    """The caller aborted the operation through its cancellation token."""

    pass


class FunctionNotFoundError(RAGKernelError):
    """No function is registered under the requested name."""

    pass


class FunctionInvocationError(RAGKernelError):
    """A function raised an error that is not part of the kernel taxonomy."""

    pass
