# src/tasklink/links/references.py

"""
Reference parsing and the permissive "does this task link to that note" rule.

Accepted reference forms:
- [[Target]] / [[Target|Alias]]
- [Label](Target)
- anything else is taken as a plain path

Matching is folder-agnostic on purpose: a task that references [[Report]]
counts as linked to Notes/Report.md, and [[Other/Report]] counts as linked to
Report.md. Two different notes sharing a basename therefore match each other.
"""

from __future__ import annotations

import re
from typing import Any

from ..core.models import TaskRecord

_WIKI_RE = re.compile(r"^\[\[([^\]|]+)(?:\|[^\]]+)?\]\]$")
_MD_LINK_RE = re.compile(r"^\[.*?\]\(([^)]+)\)$")
_MD_SUFFIX_RE = re.compile(r"(?:\.md)+$", re.IGNORECASE)


def extract_target(reference: Any) -> str:
    if not reference or not isinstance(reference, str):
        return ""
    ref = reference.strip()

    m = _WIKI_RE.match(ref)
    if m:
        return m.group(1).strip()

    m = _MD_LINK_RE.match(ref)
    if m:
        return m.group(1).strip()

    return ref


def normalize(path: str) -> str:
    # Strips every trailing ".md" so that normalize(normalize(p)) == normalize(p).
    return _MD_SUFFIX_RE.sub("", path or "").lower()


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1] or path


def stem(path: str) -> str:
    """Basename without the note extension, original case kept."""
    return _MD_SUFFIX_RE.sub("", basename(path))


def reference_matches(reference: str, source_path: str) -> bool:
    s = normalize(source_path)
    s_base = basename(s)

    p = normalize(extract_target(reference))
    if not p:
        return False
    p_base = basename(p)

    return p == s or p_base == s_base or p.endswith("/" + s_base) or s.endswith("/" + p_base)


def links_to(task: TaskRecord, source_path: str) -> bool:
    if not task.projects or not source_path:
        return False
    return any(reference_matches(ref, source_path) for ref in task.projects)


def build_wikilink(target_path: str) -> str:
    """Fallback reference used when no store is available to format one."""
    return f"[[{stem(target_path) or target_path}]]"
