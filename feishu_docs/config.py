"""
Central configuration for the Feishu docs exporter.

Credentials, endpoints, paths, and tuning knobs live here.  Values are read
from environment variables (or a .env file) with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# ── Feishu application ────────────────────────────────────────────────
FEISHU_APP_ID = os.getenv("FEISHU_APP_ID", "")
FEISHU_APP_SECRET = os.getenv("FEISHU_APP_SECRET", "")
FEISHU_BASE_URL = os.getenv("FEISHU_BASE_URL", "https://open.feishu.cn/open-apis")

# Seconds before an HTTP call to the open platform is abandoned
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))

# ── Pagination ────────────────────────────────────────────────────────
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "50"))
# Hard ceiling on pages fetched by any single listing loop
MAX_PAGES = int(os.getenv("MAX_PAGES", "1000"))
# Ceiling on nodes collected by a recursive space walk
MAX_NODES = int(os.getenv("MAX_NODES", "10000"))

# ── Local storage ─────────────────────────────────────────────────────
# Root directory for downloaded Markdown (one sub-folder per space)
DOCS_SAVE_PATH = Path(os.getenv("DOCS_SAVE_PATH", "./docs"))

# ── Batch behaviour ───────────────────────────────────────────────────
# Documents fetched in parallel during a space download (1 = sequential)
DOWNLOAD_CONCURRENCY = int(os.getenv("DOWNLOAD_CONCURRENCY", "1"))
# Per-file cap on local search hits (0 = unlimited)
SEARCH_MAX_MATCHES = int(os.getenv("SEARCH_MAX_MATCHES", "0"))

# ── Logging ───────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "feishu_docs.log")
