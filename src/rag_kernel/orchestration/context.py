"""
Context Variables - Mutable string state threaded through a function chain

License: MIT
"""

from typing import Dict, Iterator, Mapping, Optional, Tuple
import logging

from ..exceptions import InvalidArgumentError, MissingContextVariableError

logger = logging.getLogger(__name__)


class ContextVariables:
    """
    Ordered, case-insensitive mapping of variable names to string values.

    One instance is created per top-level request and handed by reference to
    every function in the chain, so a value written by one function is
    visible to the next. The reserved ``input`` key holds the default unnamed
    parameter and, after each step of a chain, the previous result.
    """

    MAIN_KEY = "input"

    def __init__(self, content: str = "", variables: Optional[Mapping[str, str]] = None):
        """
        Initialize the variables.

        Args:
            content: Initial value of the input variable
            variables: Additional initial variables
        """
        # normalized key -> (display key, value), insertion ordered
        self._variables: Dict[str, Tuple[str, str]] = {}
        self.set(self.MAIN_KEY, content)
        if variables:
            self.merge(variables)

    @staticmethod
    def _normalize(key: str) -> str:
        if not key or not key.strip():
            raise InvalidArgumentError("Variable name cannot be empty")
        return key.strip().lower()

    @property
    def input(self) -> str:
        return self.get(self.MAIN_KEY)

    def update(self, content: str) -> "ContextVariables":
        """Replace the input variable and return self."""
        self.set(self.MAIN_KEY, content)
        return self

    def get(self, key: str, default: str = "") -> str:
        """Value of a variable, or ``default`` when it is not set."""
        entry = self._variables.get(self._normalize(key))
        return default if entry is None else entry[1]

    def set(self, key: str, value: Optional[str]) -> None:
        """
        Set a variable; last write wins.

        Args:
            key: Variable name, matched case-insensitively
            value: New value; None removes the variable
        """
        normalized = self._normalize(key)

        if value is None:
            self._variables.pop(normalized, None)
            return

        existing = self._variables.get(normalized)
        display_key = existing[0] if existing else key.strip()
        self._variables[normalized] = (display_key, str(value))

    def has(self, key: str) -> bool:
        return self._normalize(key) in self._variables

    def require(self, key: str, function_name: Optional[str] = None) -> str:
        """
        Value of a variable that must be present.

        Raises:
            MissingContextVariableError: If the variable is not set
        """
        if not self.has(key):
            raise MissingContextVariableError(
                "Required context variable is missing",
                function_name=function_name,
                variable_name=key,
            )
        return self.get(key)

    def merge(self, variables: Mapping[str, str]) -> "ContextVariables":
        """Set every variable from a mapping and return self."""
        for key, value in variables.items():
            self.set(key, value)
        return self

    def clone(self) -> "ContextVariables":
        """Independent copy with the same variables."""
        copy = ContextVariables()
        copy._variables = dict(self._variables)
        return copy

    def items(self) -> Iterator[Tuple[str, str]]:
        for display_key, value in self._variables.values():
            yield display_key, value

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def __getitem__(self, key: str) -> str:
        normalized = self._normalize(key)
        if normalized not in self._variables:
            raise KeyError(key)
        return self._variables[normalized][1]

    def __setitem__(self, key: str, value: str) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and bool(key.strip()) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        for display_key, _ in self._variables.values():
            yield display_key

    def __len__(self) -> int:
        return len(self._variables)

    def __str__(self) -> str:
        return self.input

    def __repr__(self) -> str:
        return f"ContextVariables({self.to_dict()!r})"
