"""Renderer contract: an opaque code-execution channel into a rendered page."""

from __future__ import annotations

from typing import Any, Protocol


class Renderer(Protocol):
    """Protocol for remote content renderers."""

    @property
    def is_launched(self) -> bool: ...

    @property
    def session_id(self) -> str | None: ...

    async def launch(self) -> None: ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate ``expression`` in the page and return its JSON-serializable result."""
        ...

    async def close(self) -> None: ...
