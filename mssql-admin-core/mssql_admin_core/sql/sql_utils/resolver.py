"""
Input Resolver - Turns directories, files, paths, URLs and scriptable objects
into an ordered list of SQL sources.
"""

import glob
import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from ...config import AdminConfig
from ...errors import InvalidReferenceError, NotFoundError
from .downloader import ScriptDownloader
from .inputs import (
    DirectoryInput,
    FileInput,
    ObjectInput,
    PathInput,
    ScriptInput,
    UrlInput,
    classify_input,
)
from .models import SourceOrigin, SqlSource
from .script_generator import ObjectScriptGenerator, ScriptGenerator
from .temp_files import TempArtifactManager

logger = logging.getLogger(__name__)

LOCAL_FILE_SCHEMES = ("", "file")


def _has_glob_pattern(name: str) -> bool:
    """Check if a path contains glob pattern characters."""
    return any(c in name for c in ["*", "?", "["])


class InputResolver:
    """
    Resolves heterogeneous inputs into SQL sources, preserving input order.

    Resolution is fail-fast: the first bad input raises and no partial list is
    returned. Temporary files written before the failure stay registered with
    the TempArtifactManager, whose cleanup removes them.
    """

    def __init__(
        self,
        config: AdminConfig,
        temp_files: TempArtifactManager,
        downloader: Optional[ScriptDownloader] = None,
        script_generator: Optional[ScriptGenerator] = None,
    ):
        self.config = config
        self.temp_files = temp_files
        self.downloader = downloader or ScriptDownloader(timeout=config.download_timeout)
        self.script_generator = script_generator or ObjectScriptGenerator()

    def resolve(self, inputs: Iterable[Any]) -> List[SqlSource]:
        # Classify everything up front so a bad shape fails before any download
        variants = [classify_input(item) for item in inputs]
        sources: List[SqlSource] = []
        for variant in variants:
            sources.extend(self._resolve_one(variant))
        logger.debug(f"Resolved {len(variants)} inputs to {len(sources)} sources")
        return sources

    def _resolve_one(self, variant: ScriptInput) -> List[SqlSource]:
        if isinstance(variant, DirectoryInput):
            return self._resolve_directory(variant.path)
        if isinstance(variant, FileInput):
            return [self._resolve_file(variant.path)]
        if isinstance(variant, PathInput):
            return self._resolve_path(variant.value)
        if isinstance(variant, UrlInput):
            return [self._resolve_url(variant.url)]
        if isinstance(variant, ObjectInput):
            return [self._resolve_object(variant.obj)]
        raise TypeError(f"Unhandled input variant {variant!r}")

    def _is_script(self, path: Path) -> bool:
        return path.suffix.lower() in self.config.script_extensions

    def _resolve_directory(self, path: Path) -> List[SqlSource]:
        if not path.is_dir():
            raise NotFoundError(f"Directory not found: {path}", source=str(path))
        scripts = sorted(
            (entry for entry in path.iterdir() if entry.is_file() and self._is_script(entry)),
            key=lambda entry: entry.name,
        )
        logger.debug(f"Found {len(scripts)} scripts in {path}")
        return [SqlSource.from_file(entry) for entry in scripts]

    def _resolve_file(self, path: Path) -> SqlSource:
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}", source=str(path))
        return SqlSource.from_file(path)

    def _resolve_path(self, value: str) -> List[SqlSource]:
        parsed = urlparse(value)
        scheme = parsed.scheme.lower()
        # A single letter is a Windows drive, not a scheme
        if len(scheme) > 1 and scheme not in LOCAL_FILE_SCHEMES:
            raise InvalidReferenceError(
                f"{value} does not refer to the local filesystem", source=value
            )
        local = url2pathname(parsed.path) if scheme == "file" else value
        local = os.path.expanduser(local)

        if _has_glob_pattern(local):
            matches = sorted(glob.glob(local))
        else:
            matches = [local] if os.path.exists(local) else []

        sources = [SqlSource.from_file(Path(match)) for match in matches if not os.path.isdir(match)]
        if not sources:
            raise NotFoundError(f"No files found for {value}", source=value)
        return sources

    def _resolve_url(self, url: str) -> SqlSource:
        logger.info(f"Downloading {url}")
        text = self.downloader.download(url)
        path = self.temp_files.write(text, prefix=f"{self.config.temp_prefix}-download")
        return SqlSource.from_file(path, origin=SourceOrigin.URL, location=url, is_temporary=True)

    def _resolve_object(self, obj: Any) -> SqlSource:
        name = getattr(obj, "name", None) or type(obj).__name__
        text = self.script_generator.generate(obj)
        path = self.temp_files.write(text, prefix=f"{self.config.temp_prefix}-object")
        return SqlSource.from_file(path, origin=SourceOrigin.OBJECT, location=str(name), is_temporary=True)
