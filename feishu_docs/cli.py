"""
CLI entry point for the Feishu docs exporter.

Usage:
  python -m feishu_docs spaces                      # List knowledge spaces
  python -m feishu_docs documents [--space ID]      # List documents
  python -m feishu_docs download <node_token>       # Download one document
  python -m feishu_docs download-space [--space ID] # Download whole space(s)
  python -m feishu_docs search <keyword>            # Search downloaded Markdown
  python -m feishu_docs find <name> [--space ID]    # Search document names
  python -m feishu_docs remote-search <keyword>     # Search the Feishu wiki index
"""

import argparse
import logging
import sys
from pathlib import Path

import requests

from feishu_docs import config
from feishu_docs.errors import FeishuError
from feishu_docs.orchestrator import FeishuDocsAgent


def setup_logging() -> None:
    handlers = [logging.StreamHandler()]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feishu-docs",
        description="Export Feishu wiki documents to Markdown and search them.",
    )
    parser.add_argument(
        "--save-dir",
        type=Path,
        default=None,
        help="Where Markdown is written (overrides DOCS_SAVE_PATH env var).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("spaces", help="List the knowledge spaces visible to the app.")

    documents = sub.add_parser("documents", help="List documents of one or all spaces.")
    documents.add_argument("--space", default=None, help="Space ID (default: all spaces).")

    download = sub.add_parser("download", help="Download one wiki node as Markdown.")
    download.add_argument("node_token", help="Wiki node token.")

    download_space = sub.add_parser("download-space", help="Download every document of a space.")
    download_space.add_argument("--space", default=None, help="Space ID (default: all spaces).")
    download_space.add_argument(
        "--concurrency", type=int, default=None,
        help="Documents fetched at once (default: DOWNLOAD_CONCURRENCY).",
    )

    search = sub.add_parser("search", help="Keyword search over downloaded Markdown.")
    search.add_argument("keyword")

    find = sub.add_parser("find", help="Catalog a space, then search its document names.")
    find.add_argument("name")
    find.add_argument("--space", default=None, help="Space ID (default: all spaces).")

    remote = sub.add_parser("remote-search", help="Search the Feishu wiki index.")
    remote.add_argument("keyword")
    remote.add_argument("--space", default=None, help="Restrict to one space ID.")

    return parser


def run(args: argparse.Namespace, agent: FeishuDocsAgent) -> int:
    if args.command == "spaces":
        spaces = agent.list_spaces()
        print(f"Found {len(spaces)} space(s):")
        for i, space in enumerate(spaces, start=1):
            print(f"  {i}. {space.name} (ID: {space.id})")

    elif args.command == "documents":
        docs = agent.list_documents(args.space)
        print(f"Found {len(docs)} document(s):")
        for doc in docs:
            print(f"  [{doc.space_name}] {doc.name} (type: {doc.obj_type}, token: {doc.token})")

    elif args.command == "download":
        doc = agent.download_document(args.node_token)
        print(f"Document \"{doc.name}\" written → {doc.path}")

    elif args.command == "download-space":
        if args.concurrency:
            agent.concurrency = args.concurrency
        summary = agent.download_space_documents(args.space)
        print(
            f"Total: {summary.total}  downloaded: {summary.downloaded}  "
            f"failed: {summary.failed}"
        )
        for result in summary.results:
            if not result.ok:
                print(f"  ✗ {result.node.title}: {result.error}")

    elif args.command == "search":
        hits = agent.search_documents(args.keyword)
        if not hits:
            print(f"No documents contain \"{args.keyword}\".")
        for hit in hits:
            print(hit.path)
            for match in hit.matches:
                print(f"  {match.line_number}: {match.line_text}")

    elif args.command == "find":
        agent.list_documents(args.space)
        docs = agent.find_documents(args.name)
        if not docs:
            print(f"No catalogued documents match \"{args.name}\".")
        for doc in docs:
            where = f" → {doc.path}" if doc.path else ""
            print(f"  {doc.name} (token: {doc.token}){where}")

    elif args.command == "remote-search":
        items = agent.search_remote(args.keyword, args.space)
        print(f"Found {len(items)} result(s):")
        for item in items:
            print(f"  {item.get('title', 'Untitled')} ({item.get('node_id') or item.get('obj_token', '')})")

    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging()
    agent = FeishuDocsAgent(save_dir=args.save_dir)

    try:
        code = run(args, agent)
    except (FeishuError, requests.RequestException, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
