"""
Test scope selection.

A scope is either unscoped (run every test) or an ordered list of selectors
of the form ``target``, ``target:class`` or ``target:class/method``, with an
optional trailing ``*`` on the class or method segment. Selectors are kept
as a tuple and only joined with commas when the runner is invoked.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from parasim.orchestrator.errors import InvalidScopeError

_SEGMENT = r"[A-Za-z0-9_.\-]+"
_SELECTOR_RE = re.compile(
    rf"^{_SEGMENT}"                      # target
    rf"(?::(?:{_SEGMENT}\*?|\*)"         # :class, :Prefix*, :*
    rf"(?:/(?:{_SEGMENT}\*?|\*))?)?$"    # /method, /testPrefix*, /*
)


def validate_selector(selector: str) -> str:
    """Return ``selector`` stripped, or raise InvalidScopeError."""
    selector = selector.strip()
    if not _SELECTOR_RE.match(selector):
        raise InvalidScopeError(selector)
    return selector


@dataclass(frozen=True)
class TestScope:
    """
    Test filter applied identically to every device in a run.

    Example:
        scope = TestScope.from_selectors(["AppTests:LoginTests", "AppTests:Cart*"])
        scope.expression  # "AppTests:LoginTests,AppTests:Cart*"
    """
    selectors: Tuple[str, ...] = ()

    __test__ = False  # not a pytest class

    @classmethod
    def unscoped(cls) -> "TestScope":
        return cls()

    @classmethod
    def scoped(cls, selectors: Iterable[str]) -> "TestScope":
        validated = tuple(validate_selector(s) for s in selectors)
        if not validated:
            raise ValueError("a scoped TestScope needs at least one selector")
        return cls(validated)

    @classmethod
    def from_selectors(cls, values: Optional[Iterable[str]] = None) -> "TestScope":
        """
        Accumulate selectors from command-line values.

        Each value may hold several comma-separated selectors. No values at
        all yields an unscoped TestScope.

        Raises:
            InvalidScopeError: If values were given but hold no selector,
                e.g. only commas or whitespace.
        """
        values = list(values or ())
        selectors = []
        for value in values:
            selectors.extend(part for part in value.split(",") if part.strip())
        if not values:
            return cls.unscoped()
        if not selectors:
            raise InvalidScopeError(",".join(values))
        return cls.scoped(selectors)

    @property
    def is_unscoped(self) -> bool:
        return not self.selectors

    @property
    def expression(self) -> str:
        """Comma-joined selectors; empty string when unscoped."""
        return ",".join(self.selectors)

    def __str__(self) -> str:
        return self.expression or "<all tests>"
