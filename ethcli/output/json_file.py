"""JSON output, to a file or to stdout."""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from ..config import CliConfig, OutputMode
from ..interfaces.renderer import Renderer
from .console import ConsoleRenderer

logger = logging.getLogger(__name__)


class JsonRenderer:
    """Write the result as a JSON document.

    Errors are written in the same place as results, wrapped in an
    ``{"error": {...}}`` object, so the consumer of the file always gets JSON.
    """

    def __init__(self, output_file: Path | None = None, stream: TextIO | None = None) -> None:
        self.output_file = output_file
        self._stream = stream

    def _write(self, document: Any) -> None:
        text = json.dumps(document, indent=2)
        if self.output_file is None:
            print(text, file=self._stream or sys.stdout)
            return

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        self.output_file.write_text(text + "\n")
        logger.info("Result written to %s", self.output_file)

    def render(self, value: Any) -> None:
        self._write(value)

    def render_error(self, error: dict[str, Any]) -> None:
        self._write({"error": error})


def build_renderer(config: CliConfig) -> Renderer:
    if config.output_mode is OutputMode.JSON:
        return JsonRenderer(config.output_file)
    return ConsoleRenderer()
