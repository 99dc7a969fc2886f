"""
Orchestration - Context variables, functions, templates and the kernel

License: MIT
"""

from .context import ContextVariables
from .functions import (
    FunctionDescriptor,
    FunctionKind,
    InvocationRecord,
    InvocationState,
    KernelFunction,
    NativeFunction,
    ParameterSpec,
    SemanticFunction,
    kernel_function,
)
from .kernel import FunctionRegistry, Kernel, KernelResult
from .skill_loader import load_semantic_skill
from .template import PromptTemplate

__all__ = [
    "ContextVariables",
    "FunctionDescriptor",
    "FunctionKind",
    "InvocationRecord",
    "InvocationState",
    "KernelFunction",
    "NativeFunction",
    "ParameterSpec",
    "SemanticFunction",
    "kernel_function",
    "FunctionRegistry",
    "Kernel",
    "KernelResult",
    "load_semantic_skill",
    "PromptTemplate",
]
