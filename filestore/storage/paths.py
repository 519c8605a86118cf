"""Helpers for building store paths from parts."""

from dataclasses import dataclass, field
from typing import List


def sanitize_path(path: str) -> str:
    """Remove parent directory references from a path."""
    return path.replace("..", "")


def build_path(parts: List[str], folder: bool = False) -> str:
    """
    Join path parts into a single absolute store path.

    Empty parts are skipped and duplicate slashes collapsed. Folder paths
    end with a trailing slash.
    """
    segments = []
    for part in parts:
        part = part.replace("//", "/").strip("/")
        if part:
            segments.append(part)
    path = "".join(f"/{segment}" for segment in segments)
    if folder:
        path += "/"
    return sanitize_path(path)


@dataclass
class PathParts:
    parts: List[str] = field(default_factory=list)

    def to_path(self, *additional_parts: str) -> str:
        return build_path([*self.parts, *additional_parts], folder=True)

    def to_file_path(self, *additional_parts: str) -> str:
        return build_path([*self.parts, *additional_parts])


def to_key(path: str) -> str:
    """Convert a store path into an object key (no leading slash)."""
    return path.lstrip("/")


def dir_prefix(key: str) -> str:
    """Return the key as a directory prefix ending in a single slash."""
    if not key:
        return ""
    return key.rstrip("/") + "/"
