"""
Search Engine — case-insensitive keyword search over the Markdown files on
disk.  It never consults the catalog, so hits survive restarts.
"""

import logging
from pathlib import Path

from feishu_docs import config
from feishu_docs.models import FileMatches, SearchMatch

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


class SearchEngine:
    """Stateless line search; *max_matches* caps hits per file (0 = no cap)."""

    def __init__(self, max_matches: int | None = None):
        self.max_matches = config.SEARCH_MAX_MATCHES if max_matches is None else max_matches

    def search(self, keyword: str, root_dir: Path | str) -> list[FileMatches]:
        root = Path(root_dir)
        if not root.is_dir():
            logger.debug("Search root %s does not exist.", root)
            return []

        needle = keyword.lower()
        results = []
        for md_file in sorted(root.rglob(f"*{MARKDOWN_SUFFIX}")):
            if not md_file.is_file():
                continue
            matches = self._scan(md_file, needle)
            if matches:
                results.append(
                    FileMatches(path=md_file.relative_to(root).as_posix(), matches=matches)
                )

        logger.info("Search '%s' under %s: %d file(s) matched.", keyword, root, len(results))
        return results

    def _scan(self, path: Path, needle: str) -> tuple[SearchMatch, ...]:
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return ()

        matches = []
        for number, line in enumerate(content.split("\n"), start=1):
            if needle in line.lower():
                matches.append(SearchMatch(line_number=number, line_text=line.strip()))
                if self.max_matches and len(matches) >= self.max_matches:
                    break
        return tuple(matches)
