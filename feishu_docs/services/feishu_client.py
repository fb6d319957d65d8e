"""
Feishu Client — typed request pipeline over the Feishu open platform
(wiki v2 + doc v3 endpoints).

Every call resolves a tenant token first, then unwraps the response
envelope ``{code, msg, data}``.  Listing and content calls degrade to empty
results when the app lacks a permission, so one missing scope never aborts
a batch; node resolution fails loudly because a download cannot proceed
without it.
"""

import json
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator

import requests

from feishu_docs import config
from feishu_docs.errors import ApiError, NotSupportedError, PermissionDeniedError
from feishu_docs.models import (
    DocumentContent,
    DownloadSummary,
    ItemResult,
    Node,
    NodeInfo,
    Space,
    WikiDownload,
)
from feishu_docs.services.token_manager import Credentials, TokenManager

logger = logging.getLogger(__name__)

# Object types that carry document content worth downloading
DOCUMENT_TYPES = ("doc", "docx", "sheet", "bitable")

# Envelope codes meaning the app or the tenant lacks access
PERMISSION_CODES = {403, 91403, 131006, 1770032, 99991672, 99991679}
PERMISSION_MARKERS = ("access denied", "permission", "forbidden", "no access")
# Envelope codes meaning the bearer token itself was rejected
INVALID_TOKEN_CODES = {99991661, 99991663, 99991668}

SEARCH_PAGE_SIZE = 20


def is_permission_error(code, msg) -> bool:
    if code in PERMISSION_CODES:
        return True
    text = (msg or "").lower()
    return any(marker in text for marker in PERMISSION_MARKERS)


class FeishuClient:
    """All direct interactions with the Feishu open platform."""

    def __init__(
        self,
        token_manager: TokenManager | None = None,
        session: requests.Session | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        max_nodes: int | None = None,
    ):
        self.session = session or requests.Session()
        self.base_url = (base_url or config.FEISHU_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.page_size = page_size or config.PAGE_SIZE
        self.max_pages = max_pages or config.MAX_PAGES
        self.max_nodes = max_nodes or config.MAX_NODES
        self.tokens = token_manager or TokenManager(
            Credentials.from_config(),
            session=self.session,
            base_url=self.base_url,
            timeout=self.timeout,
        )

    # ── Request pipeline ──────────────────────────────────────────────

    def request(self, method: str, path: str, body=None, params=None):
        """Issue an authenticated call and return the envelope's ``data``."""
        token = self.tokens.get_token()
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)

        resp = self.session.request(
            method,
            url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=utf-8",
            },
            json=body,
            params=params,
            timeout=self.timeout,
        )

        try:
            payload = resp.json()
        except ValueError:
            logger.error("%s %s returned non-JSON (HTTP %s)", method, url, resp.status_code)
            raise ApiError(resp.status_code, "invalid JSON response", path)

        if not isinstance(payload, dict):
            raise ApiError(resp.status_code, "unexpected response shape", path)

        code = payload.get("code", -1)
        if code == 0:
            return payload.get("data") or {}

        msg = payload.get("msg") or "unknown error"
        logger.error("%s %s failed: %s (code %s)", method, url, msg, code)
        if code in INVALID_TOKEN_CODES:
            self.tokens.invalidate()
        if is_permission_error(code, msg):
            raise PermissionDeniedError(code, msg, path)
        raise ApiError(code, msg, path)

    def _paginate(self, fetch: Callable[[str], dict], context: str) -> Iterator[dict]:
        """
        Yield items across pages of a cursor-paged listing.

        Stops when the server says there is nothing more, when it claims
        more but hands back an empty or repeated cursor, or after
        ``max_pages`` pages, whichever comes first.
        """
        page_token = ""
        for _ in range(self.max_pages):
            page = fetch(page_token)
            yield from page.get("items") or []

            next_token = page.get("page_token") or ""
            if not page.get("has_more"):
                return
            if not next_token:
                logger.warning("%s: has_more without a page_token — stopping.", context)
                return
            if next_token == page_token:
                logger.warning("%s: page_token did not advance — stopping.", context)
                return
            page_token = next_token

        logger.warning("%s: stopped after %d pages.", context, self.max_pages)

    # ── Spaces & nodes ────────────────────────────────────────────────

    def get_spaces(self, page_size: int = 50, page_token: str = "") -> dict:
        """List knowledge spaces (one page).  Needs wiki:wiki:readonly."""
        params = {"page_size": page_size}
        if page_token:
            params["page_token"] = page_token
        try:
            return self.request("GET", "/wiki/v2/spaces", params=params)
        except PermissionDeniedError as exc:
            logger.warning("No permission to list spaces: %s", exc.msg)
            return {"items": [], "has_more": False}

    def get_nodes(
        self,
        space_id: str,
        parent_node_token: str | None = None,
        page_size: int = 50,
        page_token: str = "",
    ) -> dict:
        """List nodes under a space (or under a parent node), one page."""
        params = {"page_size": page_size}
        if parent_node_token:
            params["parent_node_token"] = parent_node_token
        if page_token:
            params["page_token"] = page_token
        try:
            return self.request("GET", f"/wiki/v2/spaces/{space_id}/nodes", params=params)
        except PermissionDeniedError as exc:
            logger.warning("No permission to list nodes of space %s: %s", space_id, exc.msg)
            return {"items": [], "has_more": False}

    def iter_spaces(self) -> Iterator[Space]:
        for item in self._paginate(
            lambda token: self.get_spaces(self.page_size, token), "spaces"
        ):
            yield Space.from_api(item)

    def iter_nodes(self, space_id: str, parent_node_token: str | None = None) -> Iterator[Node]:
        for item in self._paginate(
            lambda token: self.get_nodes(space_id, parent_node_token, self.page_size, token),
            f"nodes of {space_id}",
        ):
            node = Node.from_api(item)
            node.space_id = node.space_id or space_id
            yield node

    def list_all_nodes(self, space_id: str, recursive: bool = True) -> list[Node]:
        """
        Collect every node of a space, descending into children if asked.

        Each parent is listed at most once and the walk stops after
        ``max_nodes`` nodes, so a server that keeps inventing children
        cannot keep it going.
        """
        nodes: list[Node] = []
        seen: set[str] = set()
        parents = deque([None])
        while parents:
            parent = parents.popleft()
            for node in self.iter_nodes(space_id, parent):
                if node.node_token in seen:
                    continue
                seen.add(node.node_token)
                nodes.append(node)
                if len(nodes) >= self.max_nodes:
                    logger.warning(
                        "Space %s: stopped walking after %d nodes.", space_id, self.max_nodes
                    )
                    return nodes
                if recursive and node.has_child:
                    parents.append(node.node_token)
        return nodes

    def get_node_info(self, node_token: str) -> NodeInfo:
        """Resolve a wiki node to the object it points at."""
        try:
            data = self.request(
                "GET", "/wiki/v2/spaces/get_node", params={"node_token": node_token}
            )
        except PermissionDeniedError as exc:
            raise PermissionDeniedError(
                exc.code,
                f"wiki:wiki:readonly permission is required to resolve node {node_token}: {exc.msg}",
                exc.path,
            ) from exc

        node = data.get("node")
        if not node:
            raise ApiError(-1, f"Node not found: {node_token}")
        if not node.get("obj_token") or not node.get("obj_type"):
            raise ApiError(-1, f"Incomplete node info: {node_token}")
        return NodeInfo(
            obj_token=node["obj_token"],
            obj_type=node["obj_type"],
            title=node.get("title", ""),
        )

    # ── Documents ─────────────────────────────────────────────────────

    def get_document_meta(self, document_id: str) -> dict:
        return self.request("GET", f"/doc/v3/documents/{document_id}")

    def get_document_content(self, document_id: str) -> DocumentContent:
        try:
            data = self.request("GET", f"/doc/v3/documents/{document_id}/raw_content")
        except PermissionDeniedError as exc:
            logger.warning("No permission to read document %s: %s", document_id, exc.msg)
            return DocumentContent()
        return DocumentContent(
            content=data.get("content") or "",
            revision=int(data.get("revision") or 0),
        )

    def get_sheet_content(self, spreadsheet_token: str) -> DocumentContent:
        """
        Fetch every sheet of a spreadsheet and pack the grids as a JSON
        ``{"sheets": [{"sheetName", "values"}]}`` payload for the converter.
        """
        base = f"/sheets/v3/spreadsheets/{spreadsheet_token}"
        try:
            listing = self.request("GET", f"{base}/sheets/query")
            sheets = []
            revision = 0
            for sheet in listing.get("sheets") or []:
                data = self.request(
                    "GET",
                    f"/sheets/v2/spreadsheets/{spreadsheet_token}/values/{sheet['sheet_id']}",
                )
                value_range = data.get("valueRange") or {}
                revision = max(revision, int(data.get("revision") or 0))
                sheets.append({
                    "sheetName": sheet.get("title") or "Sheet",
                    "values": value_range.get("values") or [],
                })
        except PermissionDeniedError as exc:
            logger.warning("No permission to read spreadsheet %s: %s", spreadsheet_token, exc.msg)
            return DocumentContent()
        return DocumentContent(
            content=json.dumps({"sheets": sheets}, ensure_ascii=False),
            revision=revision,
        )

    def get_content_by_type(self, obj_token: str, obj_type: str) -> DocumentContent:
        kind = (obj_type or "").lower()
        if kind in ("doc", "docx"):
            return self.get_document_content(obj_token)
        if kind == "sheet":
            return self.get_sheet_content(obj_token)
        raise NotSupportedError(obj_type)

    def download_wiki_document(self, node_token: str) -> WikiDownload:
        """Resolve a node, then fetch its content according to its type."""
        info = self.get_node_info(node_token)
        try:
            content = self.get_content_by_type(info.obj_token, info.obj_type).content
        except NotSupportedError as exc:
            logger.warning("%s — saving node %s with empty content.", exc, node_token)
            content = ""
        return WikiDownload(
            content=content,
            title=info.title or "Untitled",
            obj_type=info.obj_type,
            obj_token=info.obj_token,
        )

    def download_space_documents(
        self,
        space_id: str,
        sink: Callable[[Node, WikiDownload], None] | None = None,
        concurrency: int = 1,
    ) -> DownloadSummary:
        """
        Download every document-bearing node of a space.

        Items go through a bounded stage (sequential unless *concurrency*
        says otherwise).  A failing item, whether in the fetch or in *sink*,
        is logged and counted; it never stops its siblings.
        """
        nodes = self.list_all_nodes(space_id)
        doc_nodes = [n for n in nodes if n.obj_type in DOCUMENT_TYPES]
        logger.info(
            "Space %s: %d nodes, %d document nodes.", space_id, len(nodes), len(doc_nodes)
        )

        def download_one(node: Node) -> ItemResult:
            try:
                downloaded = self.download_wiki_document(node.node_token)
                if sink is not None:
                    sink(node, downloaded)
            except Exception as exc:
                logger.exception("Failed to download '%s' (%s)", node.title, node.node_token)
                return ItemResult(node=node, ok=False, error=str(exc))
            return ItemResult(node=node, ok=True)

        if concurrency <= 1:
            results = [download_one(node) for node in doc_nodes]
        else:
            with ThreadPoolExecutor(max_workers=concurrency) as pool:
                results = list(pool.map(download_one, doc_nodes))

        summary = DownloadSummary.from_results(results)
        logger.info(
            "Space %s download finished: %d ok, %d failed.",
            space_id, summary.downloaded, summary.failed,
        )
        return summary

    # ── Search ────────────────────────────────────────────────────────

    def search_wiki(self, keyword: str, space_id: str | None = None) -> dict:
        """Free-text search against the remote wiki index."""
        params = {"query": keyword, "page_size": SEARCH_PAGE_SIZE}
        if space_id:
            params["space_id"] = space_id
        try:
            return self.request("GET", "/wiki/v2/search", params=params)
        except PermissionDeniedError as exc:
            logger.warning("No permission to search the wiki: %s", exc.msg)
            return {"items": []}
