"""Output modules."""
from .console import ConsoleRenderer
from .json_file import JsonRenderer, build_renderer

__all__ = ["ConsoleRenderer", "JsonRenderer", "build_renderer"]
