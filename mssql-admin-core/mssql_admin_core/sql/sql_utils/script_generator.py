"""
Script generation for scriptable in-memory objects.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from ...errors import GenerationError

logger = logging.getLogger(__name__)

BATCH_SEPARATOR = "GO"


@runtime_checkable
class Scriptable(Protocol):
    """An object that can describe itself as T-SQL, e.g. a table or login definition."""

    def script(self) -> Any: ...


class ScriptGenerator(Protocol):
    def generate(self, obj: Any) -> str: ...


def is_scriptable(obj: Any) -> bool:
    return isinstance(obj, Scriptable) and not isinstance(obj, type)


class ObjectScriptGenerator:
    """
    Default generator: calls ``obj.script()``.

    ``script()`` may return a string or an iterable of statements; statements
    are emitted as separate batches.
    """

    def generate(self, obj: Any) -> str:
        name = getattr(obj, "name", None) or type(obj).__name__
        try:
            scripted = obj.script()
        except Exception as e:
            raise GenerationError(f"Failed to generate script for {name}: {e}", source=name) from e

        if isinstance(scripted, str):
            text = scripted
        else:
            try:
                statements = [str(statement) for statement in scripted]
            except TypeError as e:
                raise GenerationError(
                    f"Script for {name} is neither text nor a list of statements",
                    source=name,
                ) from e
            text = f"\n{BATCH_SEPARATOR}\n".join(statements)

        if not text.strip():
            raise GenerationError(f"Script for {name} is empty", source=name)
        logger.debug(f"Generated {len(text)} characters of SQL for {name}")
        return text
