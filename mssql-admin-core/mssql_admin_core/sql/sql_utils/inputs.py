"""
Input variants accepted by the resolver.

Raw inputs (paths, strings, URLs, scriptable objects) are classified once
into one of the variants below and matched exhaustively afterwards.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union
from urllib.parse import urlparse

from ...errors import UnsupportedInputError
from .script_generator import is_scriptable

URL_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class DirectoryInput:
    path: Path


@dataclass(frozen=True)
class FileInput:
    path: Path


@dataclass(frozen=True)
class PathInput:
    """A string that names files, possibly with wildcards or a URL scheme."""

    value: str


@dataclass(frozen=True)
class UrlInput:
    url: str


@dataclass(frozen=True)
class ObjectInput:
    obj: Any


ScriptInput = Union[DirectoryInput, FileInput, PathInput, UrlInput, ObjectInput]
VARIANTS = (DirectoryInput, FileInput, PathInput, UrlInput, ObjectInput)


def classify_input(item: Any) -> ScriptInput:
    """Turn one raw input into its variant, or raise UnsupportedInputError."""
    if isinstance(item, VARIANTS):
        return item
    if isinstance(item, os.PathLike):
        path = Path(item)
        return DirectoryInput(path) if path.is_dir() else FileInput(path)
    if isinstance(item, str):
        if not item.strip():
            raise UnsupportedInputError("Empty path")
        if urlparse(item).scheme.lower() in URL_SCHEMES:
            return UrlInput(item)
        return PathInput(item)
    if is_scriptable(item):
        return ObjectInput(item)
    raise UnsupportedInputError(
        f"Unsupported input of type {type(item).__name__}; expected a path, URL or scriptable object"
    )
