"""
Typed records passed between the client, the store, and the search engine.

API payloads are decoded into these once, at the client boundary, so the rest
of the package never has to probe raw dicts for field presence.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Space:
    """A knowledge space ("wiki")."""
    id: str
    name: str
    description: str = ""

    @classmethod
    def from_api(cls, item: dict) -> "Space":
        return cls(
            id=item.get("space_id") or item.get("id", ""),
            name=item.get("name", ""),
            description=item.get("description") or "",
        )


@dataclass
class Node:
    """One entry of a space's node tree."""
    node_token: str
    obj_token: str = ""
    obj_type: str = ""
    title: str = ""
    space_id: str = ""
    parent_node_token: str = ""
    has_child: bool = False

    @classmethod
    def from_api(cls, item: dict) -> "Node":
        return cls(
            node_token=item.get("node_token", ""),
            obj_token=item.get("obj_token", ""),
            obj_type=item.get("obj_type", ""),
            title=item.get("title", ""),
            space_id=item.get("space_id", ""),
            parent_node_token=item.get("parent_node_token", ""),
            has_child=bool(item.get("has_child", False)),
        )


@dataclass
class NodeInfo:
    obj_token: str
    obj_type: str
    title: str = ""


@dataclass
class DocumentContent:
    """Raw (un-normalized) content as returned by a content endpoint."""
    content: str = ""
    revision: int = 0


@dataclass
class WikiDownload:
    """Result of resolving a wiki node and fetching its content."""
    content: str
    title: str
    obj_type: str = ""
    obj_token: str = ""


@dataclass
class ItemResult:
    """Outcome of one item in a batch download."""
    node: Node
    ok: bool
    error: str = ""


@dataclass
class DownloadSummary:
    downloaded: int = 0
    total: int = 0
    failed: int = 0
    results: list[ItemResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[ItemResult]) -> "DownloadSummary":
        ok = sum(1 for r in results if r.ok)
        return cls(
            downloaded=ok,
            total=len(results),
            failed=len(results) - ok,
            results=results,
        )

    def merge(self, other: "DownloadSummary") -> "DownloadSummary":
        return DownloadSummary.from_results(self.results + other.results)

    def as_dict(self) -> dict:
        return {"downloaded": self.downloaded, "total": self.total, "failed": self.failed}


@dataclass
class Document:
    """Catalog record for a discovered or downloaded document."""
    token: str
    name: str
    obj_type: str = "doc"
    space_id: str = ""
    space_name: str = ""
    content: str | None = None
    path: Path | None = None
    id: int | None = None


@dataclass(frozen=True)
class SearchMatch:
    line_number: int
    line_text: str


@dataclass(frozen=True)
class FileMatches:
    """All matching lines of one Markdown file, path relative to the search root."""
    path: str
    matches: tuple[SearchMatch, ...]
