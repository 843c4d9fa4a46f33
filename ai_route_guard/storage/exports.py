"""
Conversation export sinks.
"""

from pathlib import Path
from typing import Union


class FileExportSink:
    """Writes each exported conversation to ``<directory>/<session_id>.json``."""

    def __init__(self, directory: Union[str, Path] = "exports"):
        self.directory = Path(directory)

    def __call__(self, session_id: str, payload: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{session_id}.json"
        path.write_text(payload, encoding="utf-8")
        return str(path)
