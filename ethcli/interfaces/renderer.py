"""Renderer protocol: final output of a command."""
from typing import Any, Protocol


class Renderer(Protocol):
    """Abstract interface for writing a result or an error."""

    def render(self, value: Any) -> None: ...

    def render_error(self, error: dict[str, Any]) -> None: ...
