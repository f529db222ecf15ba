"""Abstract DOM capability consumed by the fill engine.

The engine never talks to a browser directly. It queries document contexts
(the main document plus nested frames) for elements, reads a plain
``ElementInfo`` description of each element and asks the element to fill,
check or select. ``playwright_dom`` provides the browser-backed
implementation; tests use an in-memory one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class OptionInfo:
    text: str
    value: str
    disabled: bool = False


@dataclass(frozen=True)
class ElementInfo:
    tag: str = ""
    input_type: str = ""
    name: str = ""
    id: str = ""
    value: str = ""
    label: str = ""
    placeholder: str = ""
    disabled: bool = False
    readonly: bool = False
    checked: bool = False
    visible: bool = True

    @property
    def usable(self) -> bool:
        return not self.disabled and self.input_type != "hidden"

    @property
    def caption(self) -> str:
        """Best human-readable text for the element: label, then placeholder, then value."""
        return self.label or self.placeholder or self.value


class DomElement(ABC):
    """One element inside a document context."""

    @abstractmethod
    async def info(self) -> ElementInfo:
        raise NotImplementedError

    @abstractmethod
    async def fill(self, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def check(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def select_option(self, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def options(self) -> List[OptionInfo]:
        raise NotImplementedError


class DocumentContext(ABC):
    """A document (main page or nested frame) that can be queried by selector."""

    name: str = "main"

    @abstractmethod
    async def query_all(self, selector: str) -> List[DomElement]:
        raise NotImplementedError

    @abstractmethod
    async def children(self) -> List["DocumentContext"]:
        raise NotImplementedError

    async def settle(self, timeout_ms: int) -> None:
        """Wait for the document to stop changing. No-op unless overridden."""
        return None
