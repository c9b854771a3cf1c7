# src/tasklink/vault/frontmatter.py

from __future__ import annotations

"""
YAML front matter of a Markdown note.

Reading uses NoteLoader: a SafeLoader that keeps timestamps and YAML 1.1 booleans
(yes/no/on/off) as the strings they were written as. Only true/false are booleans.

Writing an existing note goes through update_document, which re-renders only
the top-level keys whose value changed. Every other key keeps its original
lines byte for byte (quoting, flow lists, comments included).
"""

import re
from typing import Any

import yaml

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)

_BOOL_TAG = "tag:yaml.org,2002:bool"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class FrontmatterError(ValueError):
    pass


class NoteLoader(yaml.SafeLoader):
    pass


NoteLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag not in (_BOOL_TAG, _TIMESTAMP_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
NoteLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def _load(raw: str) -> Any:
    try:
        return yaml.load(raw, Loader=NoteLoader) if raw.strip() else {}
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid front matter: {e}") from e


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """
    Split a note into (metadata, body).

    A note without a front matter block has empty metadata and the whole text
    as body. A block that is not a YAML mapping raises FrontmatterError.
    """
    m = _FRONTMATTER_RE.match(text or "")
    if not m:
        return {}, text or ""

    data = _load(m.group(1))
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError("Front matter is not a mapping")
    return data, text[m.end():]


def _dump(metadata: dict[str, Any]) -> str:
    return yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True, default_flow_style=False)


def render_document(metadata: dict[str, Any], body: str) -> str:
    if not metadata:
        return body
    return f"---\n{_dump(metadata)}---\n{body}"


def _split_entries(raw: str) -> list[tuple[Any, str]] | None:
    """
    Cut a front matter block into (key, lines) chunks, one per top-level key.

    Leading comments / blank lines form a chunk with key None. Returns None when
    a chunk does not load as a single-key mapping (complex keys, anchors, ...).
    """
    chunks: list[list[str]] = [[]]
    for line in raw.splitlines(keepends=True):
        starts_entry = bool(line.strip()) and not line[0].isspace() and line[0] not in "#-"
        if starts_entry and (len(chunks) > 1 or chunks[0]):
            chunks.append([])
        chunks[-1].append(line)

    entries: list[tuple[Any, str]] = []
    for i, lines in enumerate(chunks):
        text = "".join(lines)
        if not text:
            continue
        first = lines[0]
        if i == 0 and (not first.strip() or first[0] in "#-" or first[0].isspace()):
            entries.append((None, text))
            continue
        try:
            loaded = yaml.load(text, Loader=NoteLoader)
        except yaml.YAMLError:
            return None
        if not isinstance(loaded, dict) or len(loaded) != 1:
            return None
        entries.append((next(iter(loaded)), text))
    return entries


def update_document(text: str, before: dict[str, Any], after: dict[str, Any]) -> str:
    """
    Rewrite the front matter of `text` from `before` to `after`.

    Unchanged keys keep their original lines; changed keys are re-rendered in
    place; removed keys are dropped; new keys are appended in `after` order.
    """
    m = _FRONTMATTER_RE.match(text or "")
    if not m:
        return render_document(after, text or "")

    entries = _split_entries(m.group(1))
    if entries is None:
        return render_document(after, text[m.end():])

    parts: list[str] = []
    seen: set[Any] = set()
    for key, chunk in entries:
        if key is None:
            parts.append(chunk)
            continue
        seen.add(key)
        if key not in after:
            continue
        if key in before and before[key] == after[key]:
            parts.append(chunk if chunk.endswith("\n") else chunk + "\n")
        else:
            parts.append(_dump({key: after[key]}))

    added = {k: v for k, v in after.items() if k not in seen}
    if added:
        parts.append(_dump(added))

    return text[: m.start(1)] + "".join(parts) + text[m.end(1):]
