"""
Kernel - Function registry and sequential chain orchestrator

The kernel owns the registered skills, the generative provider used by
semantic functions and, optionally, a MemoryStore. ``run`` pipes a single
ContextVariables instance through a chain of functions, one at a time.

License: MIT
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from contextvars import ContextVar
from dataclasses import dataclass, field
import inspect
import logging
import time

from ..core.memory_store import MemoryStore
from ..core.text_generation import GenerationSettings, TextGeneratorBase
from ..exceptions import (
    FunctionInvocationError,
    FunctionNotFoundError,
    InvalidArgumentError,
    RAGKernelError,
)
from ..infrastructure.monitoring import record_error, record_function_invocation
from ..utils.cancellation import CancellationToken
from .context import ContextVariables
from .functions import (
    KERNEL_FUNCTION_ATTR,
    FunctionDescriptor,
    InvocationRecord,
    InvocationState,
    KernelFunction,
    NativeCallable,
    NativeFunction,
    ParameterSpec,
    SemanticFunction,
)
from .template import PromptTemplate

logger = logging.getLogger(__name__)

RESULT_KEY = "result"

# Invocation records of the chain currently running in this task
_active_records: ContextVar[Optional[List[InvocationRecord]]] = ContextVar(
    "rag_kernel_active_records", default=None
)


class FunctionRegistry:
    """Functions keyed by case-insensitive (skill, function) name."""

    def __init__(self):
        self._functions: Dict[Tuple[str, str], KernelFunction] = {}
        self._frozen = False

    @staticmethod
    def _key(skill_name: str, function_name: str) -> Tuple[str, str]:
        return skill_name.lower(), function_name.lower()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """
        Make the registry read-only.

        Raises:
            FunctionNotFoundError: If a prompt template calls a function that
                is not registered
        """
        for function in self._functions.values():
            if not isinstance(function, SemanticFunction):
                continue
            for call in function.template.function_calls():
                skill_name, _, function_name = call.partition(".")
                if not self.has(skill_name, function_name):
                    raise FunctionNotFoundError(
                        f"Template of {function.qualified_name} calls an unregistered function",
                        function_name=call,
                    )

        self._frozen = True

    def register(self, function: KernelFunction) -> KernelFunction:
        """
        Add a function.

        Raises:
            InvalidArgumentError: If the name is taken or the registry is frozen
        """
        if self._frozen:
            raise InvalidArgumentError(
                f"Cannot register {function.qualified_name}: registry is frozen"
            )

        key = self._key(function.skill_name, function.name)
        if key in self._functions:
            raise InvalidArgumentError(
                f"Function already registered: {function.qualified_name}"
            )

        self._functions[key] = function
        logger.debug(f"Registered {function.descriptor.kind.value} function {function.qualified_name}")
        return function

    def get(self, skill_name: str, function_name: str) -> KernelFunction:
        """
        Look up a function.

        Raises:
            FunctionNotFoundError: If nothing is registered under the name
        """
        function = self._functions.get(self._key(skill_name, function_name))
        if function is None:
            raise FunctionNotFoundError(
                "Function not registered", function_name=f"{skill_name}.{function_name}"
            )
        return function

    def has(self, skill_name: str, function_name: str) -> bool:
        return self._key(skill_name, function_name) in self._functions

    def list_functions(self) -> List[FunctionDescriptor]:
        return [function.descriptor for function in self._functions.values()]

    def __len__(self) -> int:
        return len(self._functions)


@dataclass
class KernelResult:
    """Outcome of Kernel.run."""

    context: ContextVariables
    result: str
    invocations: List[InvocationRecord] = field(default_factory=list)

    def __str__(self) -> str:
        return self.result


class Kernel:
    """
    Registry and executor for native and semantic functions.

    Chains run strictly sequentially; the first failure aborts the chain.
    Nothing is retried at this level: provider adapters own their retries.
    """

    def __init__(
        self,
        text_generator: Optional[TextGeneratorBase] = None,
        memory: Optional[MemoryStore] = None,
        generation_timeout: Optional[float] = None,
    ):
        """
        Initialize the kernel.

        Args:
            text_generator: Generative provider for semantic functions
            memory: Semantic memory available to skills
            generation_timeout: Deadline in seconds for each completion call
        """
        self.text_generator = text_generator
        self.memory = memory
        self.generation_timeout = generation_timeout
        self.registry = FunctionRegistry()

    def register_function(self, function: KernelFunction) -> KernelFunction:
        return self.registry.register(function)

    def register_native_function(
        self,
        skill_name: str,
        name: str,
        func: NativeCallable,
        parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
        description: str = "",
    ) -> NativeFunction:
        """Wrap a callable taking ``(params, context)`` and register it."""
        function = NativeFunction(skill_name, name, func, parameters, description)
        self.registry.register(function)
        return function

    def register_semantic_function(
        self,
        skill_name: str,
        name: str,
        template: Union[str, PromptTemplate],
        settings: Optional[GenerationSettings] = None,
        parameters: Optional[Sequence[Union[ParameterSpec, str]]] = None,
        description: str = "",
    ) -> SemanticFunction:
        """
        Register a prompt template as a function.

        Raises:
            TemplateSyntaxError: If the template cannot be parsed
            InvalidArgumentError: If the name is already registered
        """
        function = SemanticFunction(skill_name, name, template, settings, parameters, description)
        self.registry.register(function)
        return function

    def import_skill(self, skill: Any, skill_name: str) -> Dict[str, KernelFunction]:
        """
        Register every method of an object marked with ``@kernel_function``.

        Args:
            skill: Object exposing decorated methods
            skill_name: Skill name the functions are registered under

        Returns:
            Registered functions keyed by function name
        """
        functions: Dict[str, KernelFunction] = {}

        for _, member in inspect.getmembers(skill, callable):
            metadata = getattr(member, KERNEL_FUNCTION_ATTR, None)
            if metadata is None:
                continue

            function = self.register_native_function(
                skill_name,
                metadata["name"],
                member,
                parameters=metadata["parameters"],
                description=metadata["description"],
            )
            functions[function.name] = function

        if not functions:
            logger.warning(f"Skill {skill_name} exposes no kernel functions")
        else:
            logger.info(f"Imported skill {skill_name} with {len(functions)} functions")

        return functions

    def import_semantic_skill_from_directory(
        self, directory: str, skill_name: Optional[str] = None
    ) -> Dict[str, KernelFunction]:
        """
        Register every prompt function stored under a skill directory.

        Args:
            directory: Directory holding one sub-directory per function
            skill_name: Skill name, defaults to the directory name

        Returns:
            Registered functions keyed by function name
        """
        from .skill_loader import load_semantic_skill

        functions = {}
        for function in load_semantic_skill(directory, skill_name):
            self.registry.register(function)
            functions[function.name] = function

        logger.info(f"Loaded {len(functions)} semantic functions from {directory}")
        return functions

    def import_semantic_skills_from_directory(
        self, directory: str
    ) -> Dict[str, Dict[str, KernelFunction]]:
        """
        Register every skill stored under a skills root directory.

        Args:
            directory: Directory holding one skill directory per skill, each
                named after its skill

        Returns:
            Registered functions keyed by skill name, then function name
        """
        from .skill_loader import load_semantic_skills

        skills: Dict[str, Dict[str, KernelFunction]] = {}
        for skill_name, skill_functions in load_semantic_skills(directory).items():
            skills[skill_name] = {}
            for function in skill_functions:
                self.registry.register(function)
                skills[skill_name][function.name] = function

        logger.info(f"Loaded {len(skills)} semantic skills from {directory}")
        return skills

    def func(self, skill_name: str, function_name: str) -> KernelFunction:
        """Registered function by name; raises FunctionNotFoundError."""
        return self.registry.get(skill_name, function_name)

    def freeze(self) -> None:
        """Stop accepting registrations; call once setup is complete."""
        self.registry.freeze()

    def create_new_context(
        self, content: str = "", variables: Optional[Mapping[str, str]] = None
    ) -> ContextVariables:
        return ContextVariables(content, variables)

    def _resolve(self, function: Union[KernelFunction, str]) -> KernelFunction:
        if isinstance(function, KernelFunction):
            return function

        skill_name, _, function_name = function.partition(".")
        if not function_name:
            raise InvalidArgumentError(f"Expected 'Skill.Function', got {function!r}")
        return self.registry.get(skill_name, function_name)

    async def invoke(
        self,
        function: Union[KernelFunction, str],
        context: ContextVariables,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Run one function against a context.

        Args:
            function: Function or ``"Skill.Function"`` name
            context: Variables the function reads and may write
            cancellation_token: Optional caller abort signal

        Returns:
            The function's string result

        Raises:
            RAGKernelError: Kernel errors propagate with their own type, tagged
                with the failing function's name
            FunctionInvocationError: Wraps any other exception, chained
        """
        function = self._resolve(function)
        record = InvocationRecord(function.qualified_name)

        records = _active_records.get()
        if records is not None:
            records.append(record)

        try:
            result = await function.invoke(context, self, cancellation_token, record)

        except RAGKernelError as e:
            record.fail(e)
            if e.function_name is None:
                e.function_name = function.qualified_name
            self._record_failure(function, record, e)
            raise

        except Exception as e:
            record.fail(e)
            self._record_failure(function, record, e)
            raise FunctionInvocationError(
                f"{type(e).__name__}: {str(e)}", function_name=function.qualified_name
            ) from e

        record.complete()
        record_function_invocation(
            function.skill_name, function.name, record.state.value, record.duration
        )
        logger.debug(f"{function.qualified_name} completed in {record.duration:.3f}s")
        return result

    async def invoke_by_name(
        self,
        skill_name: str,
        function_name: str,
        context: ContextVariables,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        """Invoke a registered function; used for nested template calls."""
        return await self.invoke(self.registry.get(skill_name, function_name), context, cancellation_token)

    def _record_failure(
        self, function: KernelFunction, record: InvocationRecord, error: BaseException
    ) -> None:
        logger.error(
            f"{function.qualified_name} failed while {record.failed_in.value}: {str(error)}"
        )
        record_function_invocation(
            function.skill_name, function.name, record.state.value, record.duration
        )
        record_error(type(error).__name__, "kernel")

    async def run(
        self,
        *functions: Union[KernelFunction, str],
        input_str: Optional[str] = None,
        context: Optional[ContextVariables] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> KernelResult:
        """
        Run functions in order, piping each result into the next.

        After every function its result is written to both the ``input`` and
        ``result`` variables of the shared context.

        Args:
            *functions: Functions or ``"Skill.Function"`` names, in order
            input_str: Initial input, overrides the context's input if given
            context: Context to run in, a new one if omitted
            cancellation_token: Optional caller abort signal

        Returns:
            KernelResult with the final context, last result and the record of
            every invocation, nested calls included

        Raises:
            InvalidArgumentError: If no functions are given
            RAGKernelError: The first failure in the chain
        """
        if not functions:
            raise InvalidArgumentError("At least one function is required")

        chain = [self._resolve(function) for function in functions]

        if context is None:
            context = self.create_new_context()
        if input_str is not None:
            context.update(input_str)

        records: List[InvocationRecord] = []
        reset_token = _active_records.set(records)
        start_time = time.time()
        result = context.input

        try:
            for function in chain:
                result = await self.invoke(function, context, cancellation_token)
                context.update(result)
                context.set(RESULT_KEY, result)
        finally:
            _active_records.reset(reset_token)

        logger.info(
            f"Chain of {len(chain)} function(s) completed in {time.time() - start_time:.3f}s"
        )
        return KernelResult(context=context, result=result, invocations=records)


__all__ = [
    "FunctionRegistry",
    "Kernel",
    "KernelResult",
    "InvocationRecord",
    "InvocationState",
    "RESULT_KEY",
]
