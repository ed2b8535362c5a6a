"""
Codebase context index.

Concatenates the active project's source files into one text file that is
handed to the edit-plan generator. Only files with configured extensions
are included; ignored names (VCS metadata, dependency folders, lockfiles,
the mirrors directory and the context file itself) are skipped at any depth.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from specme.core.config.models import SpecMeConfig
from specme.core.sandbox.files import atomic_write_text

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "--- SPEC ME DYNAMIC CONTEXT ---"


class ContextIndex(BaseModel):
    """Result of (re)building the context file."""

    file_count: int = 0
    context_path: Path
    skipped_large: list[str] = Field(default_factory=list)


class ContextBuilder:
    """
    Builds the codebase context file for a project root.

    Example:
        >>> builder = ContextBuilder(config)
        >>> builder.build("/work/app", "local:/work/app").file_count
        12
    """

    def __init__(self, config: SpecMeConfig) -> None:
        self.config = config
        self.extensions = {ext.lower() for ext in config.context.extensions}
        self.ignore = set(config.context.ignore) | {
            config.paths.mirrors_root.name,
            config.paths.context_path.name,
        }

    @property
    def context_path(self) -> Path:
        return self.config.paths.context_path

    def build(self, root: str, source_label: str) -> ContextIndex:
        """
        Rebuild the context file from ``root``.

        An empty or missing root writes a placeholder index instead of
        falling back to any other folder.
        """
        header = f"{CONTEXT_HEADER}\nSOURCE: {source_label}\n\n"
        if not root or not root.strip():
            logger.warning("Context build called with empty root, skipping indexing")
            return self._write_placeholder(header, "(No project indexed - root path is empty)")

        root_path = Path(root)
        if not root_path.is_dir():
            logger.warning("Context root does not exist or is not a directory: %s", root)
            return self._write_placeholder(header, "(No project indexed - path unavailable)")

        parts = [header]
        index = ContextIndex(context_path=self.context_path)
        for path in self._walk(root_path):
            rel = path.relative_to(root_path).as_posix()
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.debug("Skipping unreadable file %s: %s", rel, e)
                continue
            if size > self.config.context.max_file_bytes:
                index.skipped_large.append(rel)
                continue
            content = path.read_text(encoding="utf-8", errors="replace")
            parts.append(f"\n--- FILE: {rel} ---\n{content}\n")
            index.file_count += 1

        atomic_write_text(self.context_path, "".join(parts))
        logger.info("Context indexed: %d files from %s", index.file_count, source_label)
        return index

    def clear(self, source_label: str = "workspace") -> ContextIndex:
        """Reset the context file to an empty index."""
        return self.build("", source_label)

    def read(self) -> str:
        try:
            return self.context_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def _walk(self, directory: Path):
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name in self.ignore:
                continue
            if entry.is_symlink():
                continue
            if entry.is_dir():
                yield from self._walk(entry)
            elif entry.is_file() and entry.suffix.lower() in self.extensions:
                yield entry

    def _write_placeholder(self, header: str, note: str) -> ContextIndex:
        atomic_write_text(self.context_path, f"{header}{note}\n")
        return ContextIndex(file_count=0, context_path=self.context_path)
