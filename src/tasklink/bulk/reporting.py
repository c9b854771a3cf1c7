# src/tasklink/bulk/reporting.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..core.ports import ProgressCallback

if TYPE_CHECKING:
    from .conversion import BulkConvertResult, ConvertPreCheck
    from .generation import BulkCreationResult, CreationPreCheck

logger = logging.getLogger(__name__)


def report_progress(on_progress: ProgressCallback | None, current: int, total: int, message: str) -> None:
    """A broken progress callback must not break the batch."""
    if on_progress is None:
        return
    try:
        on_progress(current, total, message)
    except Exception:
        logger.debug("on_progress callback failed.", exc_info=True)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def describe_creation_precheck(pre: CreationPreCheck) -> str:
    if pre.to_skip:
        return f"Will create {_plural(pre.to_create, 'task')}, skip {pre.to_skip} existing"
    return f"Will create {_plural(pre.to_create, 'task')}"


def describe_creation_result(result: BulkCreationResult) -> str:
    text = f"Created {_plural(result.created, 'task')}"
    if result.skipped:
        text += f", skipped {result.skipped}"
    if result.failed:
        text += f", {result.failed} failed"
    return text


def describe_convert_precheck(pre: ConvertPreCheck) -> str:
    if pre.already_tasks:
        return (
            f"Will convert {_plural(pre.to_convert, 'note')}, "
            f"skip {_plural(pre.already_tasks, 'already task')}"
        )
    return f"Will convert {_plural(pre.to_convert, 'note')}"


def describe_convert_result(result: BulkConvertResult) -> str:
    text = f"Converted {_plural(result.converted, 'note')}"
    if result.skipped:
        text += f", skipped {result.skipped}"
    if result.failed:
        text += f", {result.failed} failed"
    return text
