from __future__ import annotations

import re
from typing import List, Optional

PATH_SEPARATOR = "/"


def build_folder_path(parent_path: Optional[str], name: str) -> str:
    """
    Build the materialized path of a folder from its parent's path.
    e.g. build_folder_path(None, "Docs") -> "/Docs",
    build_folder_path("/Docs", "2024") -> "/Docs/2024"
    """
    if not parent_path:
        return f"{PATH_SEPARATOR}{name}"
    return f"{parent_path}{PATH_SEPARATOR}{name}"


def parent_path_of(path: str) -> str:
    """Strip the last segment; returns "" for a root-level path"""
    return path[: path.rfind(PATH_SEPARATOR)] if PATH_SEPARATOR in path else ""


def renamed_path(old_path: str, new_name: str) -> str:
    return build_folder_path(parent_path_of(old_path), new_name)


def split_path(path: str) -> List[str]:
    """
    Split a materialized path into its segments, dropping empty ones.
    e.g. split_path("/A/B") -> ["A", "B"]
    """
    return [segment for segment in path.split(PATH_SEPARATOR) if segment]


def cumulative_paths(path: str) -> List[str]:
    """
    Every ancestor path of ``path`` from the root down, ending with ``path`` itself.
    e.g. cumulative_paths("/A/B") -> ["/A", "/A/B"]
    """
    paths: List[str] = []
    current = ""
    for segment in split_path(path):
        current = build_folder_path(current, segment)
        paths.append(current)
    return paths


def is_descendant_path(candidate: str, ancestor: str) -> bool:
    return candidate.startswith(ancestor + PATH_SEPARATOR)


def descendant_regex(path: str) -> str:
    """Anchored regex matching every path strictly below ``path``"""
    return f"^{re.escape(path)}{PATH_SEPARATOR}"


def exact_name_regex(name: str) -> str:
    """Anchored regex for a whole-name match of user input"""
    return f"^{re.escape(name)}$"


__all__ = [
    "PATH_SEPARATOR",
    "build_folder_path",
    "parent_path_of",
    "renamed_path",
    "split_path",
    "cumulative_paths",
    "is_descendant_path",
    "descendant_regex",
    "exact_name_regex",
]
