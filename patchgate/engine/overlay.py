"""Diff overlay builder - reconstructs file contents implied by a patch, in memory only.

The reconstruction keeps added and context lines of each file section and drops
removed lines. It is not a real patch-apply against the base file: hunk headers
are not checked against any file state, so a diff that would not apply cleanly
still produces an overlay.
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SIMPLE_FILE_MARKER = "FILE:"
_SIMPLE_FILE_BLOCK = re.compile(
    r"^FILE:[ \t]*(?P<path>[^\n]+?)[ \t]*\n(?P<content>.*?)(?=^FILE:|\Z)",
    re.MULTILINE | re.DOTALL,
)


class OverlayError(Exception):
    """Patch text could not be turned into an overlay."""


@dataclass
class FilePatch:
    """Reconstructed content for one file."""

    path: str
    content: str


@dataclass
class OverlayResult:
    """Result of applying a patch to an overlay."""

    success: bool
    files: list[str] = field(default_factory=list)
    error: str | None = None


def _target_path(line: str) -> str | None:
    """Path from a '+++' header, or None for a deleted file."""
    path = line[4:].strip()
    if "\t" in path:
        path = path.split("\t", 1)[0]
    if path == "/dev/null":
        return None
    if path.startswith("b/"):
        path = path[2:]
    return path


def parse_unified_patch(patch_text: str) -> list[FilePatch]:
    """Parse git/unified diff sections into reconstructed files."""
    patches: list[FilePatch] = []
    current_path: str | None = None
    current_content: list[str] = []

    def flush() -> None:
        if current_path and current_content:
            patches.append(FilePatch(path=current_path, content="\n".join(current_content)))

    lines = patch_text.split("\n")
    while lines and lines[-1] == "":
        lines.pop()

    for line in lines:
        if line.startswith("diff --git"):
            flush()
            current_path, current_content = None, []
            continue
        if line.startswith("+++ "):
            flush()
            current_path, current_content = _target_path(line), []
            continue
        if line.startswith("--- "):
            continue
        if line.startswith("@@"):
            continue
        if current_path is None:
            continue

        if line.startswith("+"):
            current_content.append(line[1:])
        elif line.startswith("-") or line.startswith("\\"):
            # removed line / "\ No newline at end of file"
            continue
        else:
            current_content.append(line[1:] if line.startswith(" ") else line)

    flush()
    return patches


def parse_simple_patch(patch_text: str) -> list[FilePatch]:
    """Parse 'FILE: <path>' blocks; each block runs to the next marker or end of text."""
    patches: list[FilePatch] = []
    for match in _SIMPLE_FILE_BLOCK.finditer(patch_text):
        content = match.group("content").strip()
        if not content:
            continue
        patches.append(FilePatch(path=match.group("path").strip(), content=content))
    return patches


def parse_patch(patch_text: str) -> list[FilePatch]:
    """
    Parse patch text into reconstructed files.
    Falls back to the FILE: block format when no diff file headers yield content.
    Raises OverlayError when no file can be extracted.
    """
    if not isinstance(patch_text, str):
        raise OverlayError("Patch text must be a string")
    if not patch_text.strip():
        raise OverlayError("Patch text is empty")

    patches = parse_unified_patch(patch_text)
    if not patches and SIMPLE_FILE_MARKER in patch_text:
        patches = parse_simple_patch(patch_text)
    if not patches:
        raise OverlayError("No file changes found in patch")
    return patches


class FileOverlay:
    """
    Transient path -> content map owned by a single evaluation.
    Use as a context manager so it is released on every exit path.
    """

    def __init__(self) -> None:
        self._files: dict[str, str] = {}

    def __enter__(self) -> "FileOverlay":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def apply(self, patch_text: str) -> OverlayResult:
        """Parse the patch into this overlay. Never raises on bad input."""
        try:
            patches = parse_patch(patch_text)
        except OverlayError as exc:
            logger.info("Patch rejected by overlay parser: %s", exc)
            return OverlayResult(success=False, error=str(exc))

        for patch in patches:
            self._files[patch.path] = patch.content
        logger.debug("Overlay holds %d file(s): %s", len(self._files), list(self._files))
        return OverlayResult(success=True, files=[p.path for p in patches])

    def get_file(self, path: str) -> str | None:
        return self._files.get(path)

    def has_file(self, path: str) -> bool:
        return path in self._files

    def modified_files(self) -> list[str]:
        return list(self._files)

    def patch_summary(self) -> dict:
        return {"files_modified": len(self._files), "paths": self.modified_files()}

    def release(self) -> None:
        self._files.clear()

    def __len__(self) -> int:
        return len(self._files)


def build_overlay(patch_text: str) -> tuple[OverlayResult, FileOverlay | None]:
    """Build a standalone overlay from patch text; overlay is None when parsing fails."""
    overlay = FileOverlay()
    result = overlay.apply(patch_text)
    if not result.success:
        return result, None
    return result, overlay
