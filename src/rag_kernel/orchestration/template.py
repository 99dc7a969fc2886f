"""
Prompt Template - Parsing and rendering of ``{{...}}`` prompt templates

Supported blocks:

    {{name}} / {{$name}}            variable reference
    {{Skill.Function}}              call sharing the caller's context
    {{Skill.Function $var}}         call with the input set to a variable
    {{Skill.Function 'literal'}}    call with the input set to a literal
    {{Skill.Function key=$var}}     call with a named variable set
    {{Skill.Function {{Other.F}}}}  call whose argument is another call

Templates are parsed once, when constructed, by a small recursive-descent
parser. Rendering walks the parsed nodes and evaluates calls depth-first,
left-to-right.

License: MIT
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field
import logging

from ..exceptions import TemplateRenderError, TemplateSyntaxError
from ..utils.cancellation import CancellationToken
from .context import ContextVariables

logger = logging.getLogger(__name__)

BLOCK_START = "{{"
BLOCK_END = "}}"

# (skill_name, function_name, context, cancellation_token) -> result
FunctionInvoker = Callable[
    [str, str, ContextVariables, Optional[CancellationToken]], Awaitable[str]
]


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class VariableNode:
    name: str


@dataclass(frozen=True)
class LiteralArg:
    value: str


@dataclass(frozen=True)
class FunctionCallNode:
    skill_name: str
    function_name: str
    # (parameter name or None for the input, value) in source order
    args: Tuple[Tuple[Optional[str], "ArgValue"], ...] = field(default_factory=tuple)

    @property
    def qualified_name(self) -> str:
        return f"{self.skill_name}.{self.function_name}"


ArgValue = Union[LiteralArg, VariableNode, FunctionCallNode]
TemplateNode = Union[TextNode, VariableNode, FunctionCallNode]


def _is_ident_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_ident_char(char: str) -> bool:
    return char.isalnum() or char == "_"


class _TemplateParser:
    """Recursive-descent parser producing template nodes."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def parse(self) -> List[TemplateNode]:
        nodes: List[TemplateNode] = []
        text_start = 0

        while self.pos < len(self.source):
            if self.source.startswith(BLOCK_START, self.pos):
                if self.pos > text_start:
                    nodes.append(TextNode(self.source[text_start : self.pos]))
                nodes.append(self._parse_block())
                text_start = self.pos
            else:
                self.pos += 1

        if text_start < len(self.source):
            nodes.append(TextNode(self.source[text_start:]))

        return nodes

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self.pos)

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.source[index] if index < len(self.source) else ""

    def _skip_whitespace(self) -> int:
        start = self.pos
        while self._peek() and self._peek().isspace():
            self.pos += 1
        return self.pos - start

    def _expect_block_end(self) -> None:
        self._skip_whitespace()
        if not self.source.startswith(BLOCK_END, self.pos):
            raise self._error("Expected '}}'")
        self.pos += len(BLOCK_END)

    def _read_identifier(self) -> str:
        start = self.pos
        if not _is_ident_start(self._peek()):
            raise self._error("Expected an identifier")
        while _is_ident_char(self._peek()):
            self.pos += 1
        return self.source[start : self.pos]

    def _read_dotted_name(self) -> List[str]:
        parts = [self._read_identifier()]
        while self._peek() == ".":
            self.pos += 1
            parts.append(self._read_identifier())
        return parts

    def _parse_block(self) -> Union[VariableNode, FunctionCallNode]:
        self.pos += len(BLOCK_START)
        self._skip_whitespace()

        if not self._peek():
            raise self._error("Unterminated block")

        if self._peek() == "$":
            self.pos += 1
            node = VariableNode(self._read_identifier())
            self._expect_block_end()
            return node

        parts = self._read_dotted_name()

        if len(parts) == 1:
            node = VariableNode(parts[0])
            self._expect_block_end()
            return node

        if len(parts) != 2:
            raise self._error("Function calls must be written as Skill.Function")

        return FunctionCallNode(parts[0], parts[1], tuple(self._parse_arguments()))

    def _parse_arguments(self) -> List[Tuple[Optional[str], ArgValue]]:
        args: List[Tuple[Optional[str], ArgValue]] = []
        has_positional = False

        while True:
            separated = self._skip_whitespace() > 0

            if self.source.startswith(BLOCK_END, self.pos):
                self.pos += len(BLOCK_END)
                return args

            if not self._peek():
                raise self._error("Unterminated block")

            if not separated:
                raise self._error("Arguments must be separated by whitespace")

            name = self._try_parse_argument_name()
            if name is None:
                if has_positional:
                    raise self._error("Only one positional argument is allowed")
                has_positional = True

            args.append((name, self._parse_value()))

    def _try_parse_argument_name(self) -> Optional[str]:
        """Consume ``name=`` if present and return the name."""
        if not _is_ident_start(self._peek()):
            return None

        end = self.pos
        while end < len(self.source) and _is_ident_char(self.source[end]):
            end += 1

        if end < len(self.source) and self.source[end] == "=":
            name = self.source[self.pos : end]
            self.pos = end + 1
            return name

        return None

    def _parse_value(self) -> ArgValue:
        char = self._peek()

        if char in ("'", '"'):
            return LiteralArg(self._read_string(char))

        if char == "$":
            self.pos += 1
            return VariableNode(self._read_identifier())

        if self.source.startswith(BLOCK_START, self.pos):
            return self._parse_block()

        if _is_ident_start(char):
            return VariableNode(self._read_identifier())

        raise self._error(f"Unexpected character {char!r}")

    def _read_string(self, quote: str) -> str:
        self.pos += 1
        chars = []

        while True:
            char = self._peek()
            if not char:
                raise self._error("Unterminated string literal")
            if char == "\\" and self._peek(1) in (quote, "\\"):
                chars.append(self._peek(1))
                self.pos += 2
                continue
            self.pos += 1
            if char == quote:
                return "".join(chars)
            chars.append(char)


class PromptTemplate:
    """
    A parsed prompt template.

    Raises TemplateSyntaxError on construction if the template is malformed.
    """

    def __init__(self, template: str):
        self.template = template
        self.nodes: List[TemplateNode] = _TemplateParser(template).parse()

    def referenced_variables(self) -> List[str]:
        """Names of variables referenced anywhere in the template, in order."""
        names: List[str] = []

        def visit(node) -> None:
            if isinstance(node, VariableNode):
                if node.name.lower() not in (n.lower() for n in names):
                    names.append(node.name)
            elif isinstance(node, FunctionCallNode):
                for _, value in node.args:
                    visit(value)

        for node in self.nodes:
            visit(node)
        return names

    def function_calls(self) -> List[str]:
        """Qualified names of every call in the template, depth-first."""
        calls: List[str] = []

        def visit(node) -> None:
            if isinstance(node, FunctionCallNode):
                for _, value in node.args:
                    visit(value)
                calls.append(node.qualified_name)

        for node in self.nodes:
            visit(node)
        return calls

    async def render(
        self,
        context: ContextVariables,
        invoke_function: Optional[FunctionInvoker] = None,
        defaults: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Substitute variables and function results into the template.

        Calls without arguments receive the caller's context itself, so their
        writes are visible to the rest of the chain. Calls with arguments
        receive a copy carrying the argument values.

        Args:
            context: Variables of the current chain
            invoke_function: Callback that runs a registered function
            defaults: Declared parameter defaults, by lower-cased name
            cancellation_token: Optional caller abort signal

        Returns:
            The rendered prompt

        Raises:
            TemplateRenderError: If a variable cannot be resolved or a call is
                present without an invoker
        """
        defaults = {k.lower(): v for k, v in (defaults or {}).items()}
        parts = []

        for node in self.nodes:
            if isinstance(node, TextNode):
                parts.append(node.text)
            elif isinstance(node, VariableNode):
                parts.append(self._resolve_variable(node.name, context, defaults))
            else:
                parts.append(
                    await self._evaluate_call(
                        node, context, invoke_function, defaults, cancellation_token
                    )
                )

        return "".join(parts)

    @staticmethod
    def _resolve_variable(
        name: str, context: ContextVariables, defaults: Dict[str, str]
    ) -> str:
        if context.has(name):
            return context.get(name)

        default = defaults.get(name.lower())
        if default is not None:
            return default

        raise TemplateRenderError("Template references an unset variable", variable_name=name)

    async def _evaluate_value(
        self,
        value: ArgValue,
        context: ContextVariables,
        invoke_function: Optional[FunctionInvoker],
        defaults: Dict[str, str],
        cancellation_token: Optional[CancellationToken],
    ) -> str:
        if isinstance(value, LiteralArg):
            return value.value
        if isinstance(value, VariableNode):
            return self._resolve_variable(value.name, context, defaults)
        return await self._evaluate_call(
            value, context, invoke_function, defaults, cancellation_token
        )

    async def _evaluate_call(
        self,
        node: FunctionCallNode,
        context: ContextVariables,
        invoke_function: Optional[FunctionInvoker],
        defaults: Dict[str, str],
        cancellation_token: Optional[CancellationToken],
    ) -> str:
        if invoke_function is None:
            raise TemplateRenderError(
                f"Template calls {node.qualified_name} but no function invoker is available"
            )

        call_context = context
        if node.args:
            call_context = context.clone()
            for name, value in node.args:
                resolved = await self._evaluate_value(
                    value, context, invoke_function, defaults, cancellation_token
                )
                call_context.set(name or ContextVariables.MAIN_KEY, resolved)

        logger.debug(f"Evaluating nested call {node.qualified_name}")
        return await invoke_function(
            node.skill_name, node.function_name, call_context, cancellation_token
        )
