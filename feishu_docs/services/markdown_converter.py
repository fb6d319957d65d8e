"""
Markdown Converter — turns whatever a content endpoint returned into
Markdown text.

The raw payload is decoded once into one of four shapes:

  - PlainText      — text that is not JSON; already final Markdown
  - BlockDocument  — an ordered list of rich-text blocks
  - SheetDocument  — one or more spreadsheet grids
  - Opaque         — any other JSON value, rendered as indented JSON

``normalize`` never raises.  If rendering blows up, it returns a diagnostic
string that embeds the original payload instead.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet"


@dataclass(frozen=True)
class Block:
    kind: str
    text: str = ""
    level: int = 1
    language: str = ""
    items: tuple[str, ...] = ()


@dataclass(frozen=True)
class BlockDocument:
    blocks: tuple[Block, ...]


@dataclass(frozen=True)
class Sheet:
    name: str = DEFAULT_SHEET_NAME
    rows: tuple[tuple[Any, ...], ...] = ()


@dataclass(frozen=True)
class SheetDocument:
    sheets: tuple[Sheet, ...]


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Opaque:
    value: Any = field(default=None)


Payload = Union[PlainText, BlockDocument, SheetDocument, Opaque]


# ── Decoding ──────────────────────────────────────────────────────────

def _text_of(value) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get("text", ""))
    return str(value)


def _decode_block(raw: dict) -> Block:
    kind = raw.get("type", "")
    level = raw.get("level") or 1
    return Block(
        kind=kind,
        text=_text_of(raw.get("text")),
        level=int(level),
        language=raw.get("language") or "",
        items=tuple(_text_of(item) for item in raw.get("items") or []),
    )


def _find_blocks(value) -> list | None:
    if not isinstance(value, dict):
        return None
    if isinstance(value.get("blocks"), list):
        return value["blocks"]
    inner = value.get("content")
    if isinstance(inner, dict) and isinstance(inner.get("blocks"), list):
        return inner["blocks"]
    return None


def _find_sheets(value) -> list | None:
    if not isinstance(value, dict):
        return None
    if isinstance(value.get("valueRange"), dict):
        return [value["valueRange"]]
    if isinstance(value.get("sheets"), list):
        return value["sheets"]
    return None


def _decode_sheet(raw) -> Sheet:
    if not isinstance(raw, dict):
        return Sheet()
    name = raw.get("sheetName") or raw.get("title") or DEFAULT_SHEET_NAME
    rows = tuple(
        tuple(row) if isinstance(row, list) else (row,)
        for row in raw.get("values") or []
    )
    return Sheet(name=str(name), rows=rows)


def parse_payload(raw) -> Payload:
    """Decode a raw payload (text or already-parsed JSON) into a Payload."""
    value = raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except ValueError:
            return PlainText(raw)

    blocks = _find_blocks(value)
    if blocks is not None:
        return BlockDocument(
            tuple(_decode_block(b) for b in blocks if isinstance(b, dict))
        )

    sheets = _find_sheets(value)
    if sheets is not None:
        return SheetDocument(tuple(_decode_sheet(s) for s in sheets))

    return Opaque(value)


# ── Rendering ─────────────────────────────────────────────────────────

def _render_block(block: Block) -> str:
    if block.kind == "paragraph":
        return f"{block.text}\n\n"
    if block.kind == "heading":
        level = min(max(block.level, 1), 6)
        return f"{'#' * level} {block.text}\n\n"
    if block.kind == "code":
        return f"```{block.language}\n{block.text}\n```\n\n"
    if block.kind == "list":
        return "".join(f"- {item}\n" for item in block.items) + "\n"
    # Unknown block kinds are skipped
    return ""


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        # Rich-text cells come back as a list of segments
        value = "".join(_text_of(seg) for seg in value)
    text = str(value)
    return text.replace("|", "\\|").replace("\r\n", " ").replace("\n", " ")


def _table_row(cells) -> str:
    return "| " + " | ".join(_cell(c) for c in cells) + " |\n"


def _render_sheet(sheet: Sheet) -> str:
    out = f"## {sheet.name}\n\n"
    if not sheet.rows:
        return out
    header, *body = sheet.rows
    out += _table_row(header)
    out += "| " + " | ".join("---" for _ in header) + " |\n"
    for row in body:
        out += _table_row(row)
    return out + "\n"


def render(payload: Payload) -> str:
    if isinstance(payload, PlainText):
        return payload.text
    if isinstance(payload, BlockDocument):
        return "".join(_render_block(b) for b in payload.blocks)
    if isinstance(payload, SheetDocument):
        return "".join(_render_sheet(s) for s in payload.sheets)
    if isinstance(payload, Opaque):
        return json.dumps(payload.value, indent=2, ensure_ascii=False)
    raise TypeError(f"unknown payload type: {type(payload).__name__}")


def normalize(raw) -> str:
    """Convert a fetched payload to Markdown.  Never raises."""
    try:
        return render(parse_payload(raw))
    except Exception as exc:
        logger.warning("Content conversion failed: %s", exc)
        if isinstance(raw, str):
            original = raw
        else:
            try:
                original = json.dumps(raw, ensure_ascii=False, default=str)
            except (TypeError, ValueError):
                original = repr(raw)
        return f"Failed to convert content: {exc}\n\nOriginal content:\n{original}"
