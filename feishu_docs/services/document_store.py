"""
Document Store — the volatile catalog of spaces and documents seen during
this session, plus the Markdown file writer.

The catalog lives only as long as the store; files written under
``save_dir`` outlive it and stay searchable on disk.
"""

import dataclasses
import logging
import re
import threading
from pathlib import Path

from feishu_docs import config
from feishu_docs.models import Document, Space

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_file_name(name: str) -> str:
    """Replace path-hostile characters and whitespace runs with underscores."""
    return _WHITESPACE.sub("_", _UNSAFE_CHARS.sub("_", name))


class DocumentStore:
    """In-memory catalog keyed by space id and by auto-incrementing doc id."""

    def __init__(self, save_dir: Path | None = None):
        self.save_dir = Path(save_dir or config.DOCS_SAVE_PATH)
        self._spaces: dict[str, Space] = {}
        self._documents: dict[int, Document] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    # ── Spaces ────────────────────────────────────────────────────────

    def save_space(self, space_id: str, name: str) -> Space:
        with self._lock:
            space = Space(id=space_id, name=name)
            self._spaces[space_id] = space
            return space

    def get_space(self, space_id: str) -> Space | None:
        return self._spaces.get(space_id)

    def all_spaces(self) -> list[Space]:
        return list(self._spaces.values())

    # ── Documents ─────────────────────────────────────────────────────

    def save_document(self, record: Document) -> Document:
        """Store a copy of *record* under the next id; any supplied id is ignored."""
        with self._lock:
            doc = dataclasses.replace(record, id=self._next_id)
            self._next_id += 1
            self._documents[doc.id] = doc
            return doc

    def get_or_create(self, record: Document) -> Document:
        """Return the entry for ``record.token``, saving *record* if there is none."""
        with self._lock:
            existing = next(
                (d for d in self._documents.values() if d.token == record.token), None
            )
            if existing is not None:
                return existing
            doc = dataclasses.replace(record, id=self._next_id)
            self._next_id += 1
            self._documents[doc.id] = doc
            return doc

    def update_content(self, doc_id: int, content: str, path: Path | str) -> None:
        # Unknown ids are ignored
        with self._lock:
            doc = self._documents.get(doc_id)
            if doc is None:
                return
            doc.content = content
            doc.path = Path(path)

    def get(self, doc_id: int) -> Document | None:
        return self._documents.get(doc_id)

    def all_documents(self) -> list[Document]:
        return list(self._documents.values())

    def search_by_name(self, name: str) -> list[Document]:
        needle = name.lower()
        return [d for d in self._documents.values() if needle in d.name.lower()]

    def get_by_space(self, space_id: str) -> list[Document]:
        return [d for d in self._documents.values() if d.space_id == space_id]

    def get_by_token(self, token: str) -> Document | None:
        return next((d for d in self._documents.values() if d.token == token), None)

    # ── Files ─────────────────────────────────────────────────────────

    def write_markdown(self, title: str, markdown: str, space_name: str = "") -> Path:
        """
        Write *markdown* to ``<save_dir>/<space>/<title>.md`` and return the
        path.  Two titles that sanitize alike overwrite each other.
        """
        target_dir = self.save_dir
        if space_name:
            target_dir = target_dir / sanitize_file_name(space_name)
        target_dir.mkdir(parents=True, exist_ok=True)

        safe_title = sanitize_file_name(title) or "Untitled"
        dest = target_dir / f"{safe_title}.md"
        dest.write_text(markdown, encoding="utf-8")
        logger.info("Markdown written → %s", dest)
        return dest
