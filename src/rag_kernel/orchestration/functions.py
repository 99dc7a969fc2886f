"""
Kernel Functions - Native and semantic units of work

A native function wraps a Python callable. A semantic function renders a
prompt template and sends it to the generative provider. Both read their
parameters from ContextVariables and return a string.

License: MIT
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING, Union
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
import inspect
import logging
import time

from ..core.text_generation import GenerationSettings
from ..exceptions import GenerationProviderError, InvalidArgumentError, MissingContextVariableError
from ..utils.cancellation import CancellationToken, guarded_call
from .context import ContextVariables
from .template import PromptTemplate

if TYPE_CHECKING:
    from .kernel import Kernel

logger = logging.getLogger(__name__)

KERNEL_FUNCTION_ATTR = "__kernel_function__"

# Keyword a native callable declares to receive the caller's abort signal
CANCELLATION_TOKEN_ARG = "cancellation_token"

NativeCallable = Callable[..., Union[str, Awaitable[str], None]]


def _accepts_cancellation_token(func: Callable[..., Any]) -> bool:
    try:
        parameters = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False

    return CANCELLATION_TOKEN_ARG in parameters or any(
        parameter.kind == inspect.Parameter.VAR_KEYWORD for parameter in parameters.values()
    )


@dataclass(frozen=True)
class ParameterSpec:
    """A declared function parameter; an empty name means the input variable."""

    name: str = ContextVariables.MAIN_KEY
    description: str = ""
    default_value: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", ContextVariables.MAIN_KEY)

    @property
    def required(self) -> bool:
        return self.default_value is None


class FunctionKind(Enum):
    NATIVE = "native"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class FunctionDescriptor:
    name: str
    skill_name: str
    kind: FunctionKind
    description: str = ""
    parameters: tuple = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.skill_name}.{self.name}"


class InvocationState(Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RENDERING = "rendering"
    CALLING = "calling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class InvocationRecord:
    """Lifecycle of one function invocation within a chain."""

    function_name: str
    state: InvocationState = InvocationState.PENDING
    transitions: List[InvocationState] = field(
        default_factory=lambda: [InvocationState.PENDING]
    )
    failed_in: Optional[InvocationState] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.perf_counter)
    duration: float = 0.0

    def transition(self, state: InvocationState) -> None:
        logger.debug(f"{self.function_name}: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def complete(self) -> None:
        self.transition(InvocationState.COMPLETED)
        self.duration = time.perf_counter() - self.started_at

    def fail(self, error: BaseException) -> None:
        self.failed_in = self.state
        self.error = error
        self.transition(InvocationState.FAILED)
        self.duration = time.perf_counter() - self.started_at

    @property
    def succeeded(self) -> bool:
        return self.state == InvocationState.COMPLETED


def _normalize_parameters(
    parameters: Optional[Sequence[Union[ParameterSpec, str]]]
) -> tuple:
    specs = []
    seen = set()
    for parameter in parameters or ():
        spec = ParameterSpec(parameter) if isinstance(parameter, str) else parameter
        if spec.name.lower() in seen:
            raise InvalidArgumentError(f"Duplicate parameter name: {spec.name}")
        seen.add(spec.name.lower())
        specs.append(spec)
    return tuple(specs)


def _validate_name(value: str, what: str) -> str:
    if not value or not value.replace("_", "a").isalnum():
        raise InvalidArgumentError(f"Invalid {what}: {value!r}")
    return value


class KernelFunction(ABC):
    """Base class for functions registered with the kernel."""

    def __init__(
        self,
        skill_name: str,
        name: str,
        kind: FunctionKind,
        parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
        description: str = "",
    ):
        self.descriptor = FunctionDescriptor(
            name=_validate_name(name, "function name"),
            skill_name=_validate_name(skill_name, "skill name"),
            kind=kind,
            description=description,
            parameters=_normalize_parameters(parameters),
        )

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def skill_name(self) -> str:
        return self.descriptor.skill_name

    @property
    def qualified_name(self) -> str:
        return self.descriptor.qualified_name

    @property
    def parameters(self) -> tuple:
        return self.descriptor.parameters

    def resolve_parameters(self, context: ContextVariables) -> Dict[str, str]:
        """
        Collect declared parameter values from the context.

        The input variable is always included, even when not declared.

        Args:
            context: Variables of the current chain

        Returns:
            Parameter values keyed by declared name

        Raises:
            MissingContextVariableError: If a parameter without a default is
                absent from the context
        """
        params: Dict[str, str] = {}

        for spec in self.parameters:
            if context.has(spec.name):
                params[spec.name] = context.get(spec.name)
            elif spec.default_value is not None:
                params[spec.name] = spec.default_value
            else:
                raise MissingContextVariableError(
                    "Required parameter is missing from the context",
                    function_name=self.qualified_name,
                    variable_name=spec.name,
                )

        if not any(name.lower() == ContextVariables.MAIN_KEY for name in params):
            params[ContextVariables.MAIN_KEY] = context.input

        return params

    @abstractmethod
    async def invoke(
        self,
        context: ContextVariables,
        kernel: Optional["Kernel"] = None,
        cancellation_token: Optional[CancellationToken] = None,
        record: Optional[InvocationRecord] = None,
    ) -> str:
        """Run the function against a context and return its string result."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.qualified_name}')"


class NativeFunction(KernelFunction):
    """
    A Python callable exposed to the kernel.

    The callable receives ``(params, context)`` and may be a plain function
    or a coroutine function. A callable that declares a ``cancellation_token``
    keyword also receives the caller's token, so it can pass it on to memory
    and provider calls. A ``None`` return becomes an empty string.
    """

    def __init__(
        self,
        skill_name: str,
        name: str,
        func: NativeCallable,
        parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
        description: str = "",
    ):
        if not callable(func):
            raise InvalidArgumentError(f"Native function {skill_name}.{name} is not callable")

        super().__init__(skill_name, name, FunctionKind.NATIVE, parameters, description)
        self.func = func
        self.accepts_cancellation_token = _accepts_cancellation_token(func)

    async def invoke(
        self,
        context: ContextVariables,
        kernel: Optional["Kernel"] = None,
        cancellation_token: Optional[CancellationToken] = None,
        record: Optional[InvocationRecord] = None,
    ) -> str:
        if record:
            record.transition(InvocationState.RESOLVING)
        params = self.resolve_parameters(context)

        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled(self.qualified_name)

        if record:
            record.transition(InvocationState.CALLING)
        if self.accepts_cancellation_token:
            result = self.func(params, context, cancellation_token=cancellation_token)
        else:
            result = self.func(params, context)
        if inspect.isawaitable(result):
            result = await result

        # A result produced after the token fired is discarded
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled(self.qualified_name)

        return "" if result is None else str(result)


class SemanticFunction(KernelFunction):
    """
    A prompt template completed by the generative provider.

    Nested ``{{Skill.Function}}`` calls in the template run through the
    kernel that invokes this function.
    """

    def __init__(
        self,
        skill_name: str,
        name: str,
        template: Union[str, PromptTemplate],
        settings: Optional[GenerationSettings] = None,
        parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
        description: str = "",
    ):
        super().__init__(skill_name, name, FunctionKind.SEMANTIC, parameters, description)
        self.template = template if isinstance(template, PromptTemplate) else PromptTemplate(template)
        self.settings = settings or GenerationSettings()

    async def render(
        self,
        context: ContextVariables,
        kernel: Optional["Kernel"] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        """Render the prompt without calling the provider."""
        defaults = {
            spec.name: spec.default_value
            for spec in self.parameters
            if spec.default_value is not None
        }
        invoker = kernel.invoke_by_name if kernel is not None else None
        return await self.template.render(context, invoker, defaults, cancellation_token)

    async def invoke(
        self,
        context: ContextVariables,
        kernel: Optional["Kernel"] = None,
        cancellation_token: Optional[CancellationToken] = None,
        record: Optional[InvocationRecord] = None,
    ) -> str:
        if record:
            record.transition(InvocationState.RESOLVING)
        self.resolve_parameters(context)

        generator = kernel.text_generator if kernel is not None else None
        if generator is None:
            raise GenerationProviderError(
                "No text generator configured", function_name=self.qualified_name
            )

        if record:
            record.transition(InvocationState.RENDERING)
        prompt = await self.render(context, kernel, cancellation_token)

        if record:
            record.transition(InvocationState.CALLING)

        logger.debug(f"Calling generator for {self.qualified_name} ({len(prompt)} chars)")

        return await guarded_call(
            generator.complete(prompt, self.settings),
            operation=f"Completion for {self.qualified_name}",
            error_class=GenerationProviderError,
            timeout=kernel.generation_timeout,
            cancellation_token=cancellation_token,
        )


def kernel_function(
    name: Optional[str] = None,
    description: str = "",
    parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
) -> Callable[[Any], Any]:
    """
    Mark a method so Kernel.import_skill registers it as a native function.

    Args:
        name: Function name, defaults to the method name
        description: Human readable description
        parameters: Declared parameters

    Example:
        class MathSkill:
            @kernel_function(description="Adds one")
            def increment(self, params, context):
                return str(int(params["input"]) + 1)
    """

    def decorator(func):
        setattr(
            func,
            KERNEL_FUNCTION_ATTR,
            {
                "name": name or func.__name__,
                "description": description or (inspect.getdoc(func) or "").split("\n")[0],
                "parameters": list(parameters or []),
            },
        )
        return func

    return decorator
