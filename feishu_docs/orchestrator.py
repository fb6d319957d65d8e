"""
Orchestrator — ties the client, converter, store, and search engine together
into the operations a caller (CLI, tool server) invokes.

Operations:
  1. list_spaces               — discover knowledge spaces
  2. list_documents            — catalog the nodes of one or all spaces
  3. download_document         — fetch one node, convert, write Markdown
  4. download_space_documents  — the same for every document in a space
  5. search_documents          — keyword search over the written Markdown
"""

import logging
from pathlib import Path

from feishu_docs import config
from feishu_docs.models import Document, DownloadSummary, FileMatches, Node, Space, WikiDownload
from feishu_docs.services.document_store import DocumentStore
from feishu_docs.services.feishu_client import FeishuClient
from feishu_docs.services.markdown_converter import normalize
from feishu_docs.services.search_engine import SearchEngine

logger = logging.getLogger(__name__)


class FeishuDocsAgent:
    """Owns one client, one catalog, and one save directory for a session."""

    def __init__(
        self,
        save_dir: Path | None = None,
        client: FeishuClient | None = None,
        store: DocumentStore | None = None,
        search_engine: SearchEngine | None = None,
        concurrency: int | None = None,
    ):
        self.client = client or FeishuClient()
        self.store = store or DocumentStore(save_dir)
        self.search_engine = search_engine or SearchEngine()
        self.concurrency = concurrency or config.DOWNLOAD_CONCURRENCY

    # ── Discovery ─────────────────────────────────────────────────────

    def list_spaces(self) -> list[Space]:
        spaces = list(self.client.iter_spaces())
        for space in spaces:
            self.store.save_space(space.id, space.name)
        logger.info("Found %d space(s).", len(spaces))
        return spaces

    def list_documents(self, space_id: str | None = None) -> list[Document]:
        """Catalog every node of one space, or of all visible spaces."""
        spaces = [self._resolve_space(space_id)] if space_id else self.list_spaces()
        documents = []
        for space in spaces:
            for node in self.client.list_all_nodes(space.id):
                documents.append(self._catalog(node, space))
        logger.info("Catalogued %d document(s).", len(documents))
        return documents

    def _resolve_space(self, space_id: str) -> Space:
        space = self.store.get_space(space_id)
        if space is None:
            self.list_spaces()
            space = self.store.get_space(space_id)
        if space is None:
            logger.warning("Space %s is not visible to the app; using its id as name.", space_id)
            space = self.store.save_space(space_id, space_id)
        return space

    def _catalog(self, node: Node, space: Space) -> Document:
        return self.store.get_or_create(
            Document(
                token=node.node_token,
                name=node.title or "Untitled",
                obj_type=node.obj_type,
                space_id=space.id,
                space_name=space.name,
            )
        )

    # ── Downloads ─────────────────────────────────────────────────────

    def _persist(self, doc: Document, downloaded: WikiDownload) -> Document:
        markdown = normalize(downloaded.content)
        path = self.store.write_markdown(downloaded.title, markdown, doc.space_name)
        self.store.update_content(doc.id, markdown, path)
        return doc

    def download_document(self, node_token: str) -> Document:
        """Download one wiki node and write it as Markdown."""
        downloaded = self.client.download_wiki_document(node_token)
        doc = self.store.get_or_create(
            Document(token=node_token, name=downloaded.title, obj_type=downloaded.obj_type)
        )
        return self._persist(doc, downloaded)

    def download_space_documents(self, space_id: str | None = None) -> DownloadSummary:
        """Download one space, or every visible space when *space_id* is omitted."""
        spaces = [self._resolve_space(space_id)] if space_id else self.list_spaces()
        summary = DownloadSummary()
        for space in spaces:

            def sink(node: Node, downloaded: WikiDownload, space=space) -> None:
                self._persist(self._catalog(node, space), downloaded)

            summary = summary.merge(
                self.client.download_space_documents(
                    space.id, sink=sink, concurrency=self.concurrency
                )
            )
        return summary

    # ── Search ────────────────────────────────────────────────────────

    def search_documents(self, keyword: str) -> list[FileMatches]:
        return self.search_engine.search(keyword, self.store.save_dir)

    def find_documents(self, name: str) -> list[Document]:
        """Catalog lookup by (case-insensitive) name fragment."""
        return self.store.search_by_name(name)

    def search_remote(self, keyword: str, space_id: str | None = None) -> list[dict]:
        return self.client.search_wiki(keyword, space_id).get("items") or []
