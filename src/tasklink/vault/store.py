# src/tasklink/vault/store.py

from __future__ import annotations

import contextlib
import copy
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from ..core.errors import DocumentNotFoundError, MutationError
from ..core.ports import MetadataBag, MetadataMutator
from .frontmatter import FrontmatterError, render_document, split_frontmatter, update_document

logger = logging.getLogger(__name__)

NOTE_EXTENSION = ".md"


class FileVault:
    """
    DocumentStore over a plain folder of Markdown notes.

    Paths are vault-relative POSIX strings ("Projects/Report.md").
    Metadata is the YAML front matter, cached per file by (mtime, size).

    Writes go to a temp file first and are swapped in with os.replace, so a
    crash never leaves a half-written note. Front matter keys a mutation does not
    change keep their original text (see frontmatter.update_document).

    There are no await points inside mutate_metadata, which makes the
    read-modify-write atomic with respect to everything else running on the
    event loop.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()
        self._cache: dict[str, tuple[tuple[int, int], MetadataBag]] = {}
        logger.info("FileVault ready root=%s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    # ---- low-level helpers ----

    def _abs(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"Path escapes the vault: {path}")
        return self._root.joinpath(*rel.parts)

    def _rel(self, p: Path) -> str:
        return p.relative_to(self._root).as_posix()

    @staticmethod
    def _signature(p: Path) -> tuple[int, int]:
        st = p.stat()
        return st.st_mtime_ns, st.st_size

    def _write_atomic(self, p: Path, text: str) -> None:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_name(p.name + ".tmp")
        tmp.write_text(text, "utf-8")
        os.replace(tmp, p)

    # ---- listing ----

    def list_documents(self, extension: str | None = None) -> list[str]:
        out: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            # Skip hidden folders (.git, .obsidian, .local, ...).
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in filenames:
                if name.startswith(".") or name.endswith(".tmp"):
                    continue
                if extension and not name.endswith(extension):
                    continue
                out.append(self._rel(Path(dirpath) / name))
        out.sort()
        return out

    def snapshot(self, extensions: tuple[str, ...] | None = None) -> dict[str, tuple[int, int]]:
        """path -> (mtime_ns, size) for change polling."""
        snap: dict[str, tuple[int, int]] = {}
        for path in self.list_documents():
            if extensions and not path.endswith(extensions):
                continue
            with contextlib.suppress(OSError):
                snap[path] = self._signature(self._abs(path))
        return snap

    def exists(self, path: str) -> bool:
        try:
            return bool(path) and self._abs(path).is_file()
        except ValueError:
            return False

    # ---- reads ----

    def get_metadata(self, path: str) -> MetadataBag | None:
        """Front matter of a note, or None when the note does not exist."""
        if not self.exists(path):
            self._cache.pop(path, None)
            return None

        p = self._abs(path)
        sig = self._signature(p)
        cached = self._cache.get(path)
        if cached is not None and cached[0] == sig:
            return copy.deepcopy(cached[1])

        try:
            metadata, _ = split_frontmatter(p.read_text("utf-8"))
        except (OSError, UnicodeDecodeError, FrontmatterError):
            logger.warning("Unreadable front matter in %s", path, exc_info=True)
            metadata = {}

        self._cache[path] = (sig, metadata)
        return copy.deepcopy(metadata)

    def invalidate(self, path: str) -> None:
        self._cache.pop(path, None)

    async def read_text(self, path: str) -> str:
        if not self.exists(path):
            raise DocumentNotFoundError(path)
        return self._abs(path).read_text("utf-8")

    # ---- writes ----

    async def mutate_metadata(self, path: str, mutator: MetadataMutator) -> None:
        if not self.exists(path):
            raise DocumentNotFoundError(path)

        p = self._abs(path)
        try:
            text = p.read_text("utf-8")
            metadata, _ = split_frontmatter(text)
        except FrontmatterError as e:
            raise MutationError(f"Refusing to rewrite {path}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise MutationError(f"Cannot read {path}: {e}") from e

        before = copy.deepcopy(metadata)
        mutator(metadata)

        try:
            self._write_atomic(p, update_document(text, before, metadata))
        except (OSError, yaml.YAMLError) as e:
            raise MutationError(f"Cannot write {path}: {e}") from e
        finally:
            self._cache.pop(path, None)

        logger.debug("Metadata updated: %s", path)

    async def create_document(self, path: str, metadata: dict[str, Any], body: str = "") -> str:
        p = self._abs(path)
        if p.exists():
            raise FileExistsError(path)
        self._write_atomic(p, render_document(metadata, body))
        logger.debug("Document created: %s", path)
        return path

    # ---- references ----

    def make_reference(self, target_path: str, source_path: str | None = None) -> str:
        """
        Wikilink to target_path, shortest form that stays unambiguous:
        [[Report]] when only one note is named Report.md, else [[Notes/Report]].
        Non-note files keep their extension ([[Due.base]]).
        """
        name = target_path.rsplit("/", 1)[-1]
        is_note = name.lower().endswith(NOTE_EXTENSION)
        link_name = name[: -len(NOTE_EXTENSION)] if is_note else name
        link_path = target_path[: -len(NOTE_EXTENSION)] if is_note else target_path

        same_name = [p for p in self.list_documents() if p.rsplit("/", 1)[-1] == name]
        if len(same_name) > 1:
            return f"[[{link_path}]]"
        return f"[[{link_name}]]"

