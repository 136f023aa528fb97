"""Human-readable terminal output."""
import json
import sys
from typing import Any, TextIO


class ConsoleRenderer:
    """Print scalars as-is and structures as indented JSON."""

    def __init__(self, stream: TextIO | None = None, err_stream: TextIO | None = None) -> None:
        self._stream = stream
        self._err_stream = err_stream

    def render(self, value: Any) -> None:
        stream = self._stream or sys.stdout
        if isinstance(value, (dict, list)):
            print(json.dumps(value, indent=2), file=stream)
        elif value is None:
            print("null", file=stream)
        else:
            print(value, file=stream)

    def render_error(self, error: dict[str, Any]) -> None:
        stream = self._err_stream or sys.stderr
        line = f"Error ({error.get('type', 'Error')}): {error.get('message', '')}"
        if "code" in error:
            line += f" [code {error['code']}]"
        print(line, file=stream)
        if "transactionHash" in error:
            print(f"Transaction hash: {error['transactionHash']}", file=stream)
