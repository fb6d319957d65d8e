"""Unit tests for feishu_docs.services.markdown_converter."""

import json

import pytest

from feishu_docs.services.markdown_converter import (
    BlockDocument,
    Opaque,
    PlainText,
    SheetDocument,
    normalize,
    parse_payload,
    render,
)


class TestParsePayload:

    def test_non_json_text_is_plain_text(self):
        assert parse_payload("# Title\n\nbody") == PlainText("# Title\n\nbody")

    def test_blocks_at_top_level(self):
        payload = parse_payload({"blocks": [{"type": "paragraph", "text": "A"}]})
        assert isinstance(payload, BlockDocument)
        assert payload.blocks[0].text == "A"

    def test_blocks_nested_under_content(self):
        raw = json.dumps({"content": {"blocks": [{"type": "heading", "text": "H"}]}})
        assert isinstance(parse_payload(raw), BlockDocument)

    def test_value_range_is_a_single_sheet(self):
        payload = parse_payload({"valueRange": {"values": [["a"]]}})
        assert isinstance(payload, SheetDocument)
        assert len(payload.sheets) == 1

    def test_anything_else_is_opaque(self):
        assert parse_payload('{"x": 1}') == Opaque({"x": 1})


class TestBlocks:

    def test_paragraph_then_heading(self):
        raw = {"blocks": [
            {"type": "paragraph", "text": "A"},
            {"type": "heading", "level": 2, "text": "B"},
        ]}
        assert normalize(raw) == "A\n\n## B\n\n"

    def test_heading_defaults_to_level_one(self):
        assert normalize({"blocks": [{"type": "heading", "text": "T"}]}) == "# T\n\n"

    def test_code_block_with_and_without_language(self):
        raw = {"blocks": [
            {"type": "code", "language": "python", "text": "print(1)"},
            {"type": "code", "text": "plain"},
        ]}
        assert normalize(raw) == "```python\nprint(1)\n```\n\n```\nplain\n```\n\n"

    def test_list_items(self):
        raw = {"blocks": [{"type": "list", "items": [{"text": "one"}, {"text": "two"}]}]}
        assert normalize(raw) == "- one\n- two\n\n"

    def test_unknown_blocks_are_skipped(self):
        raw = {"blocks": [
            {"type": "callout", "text": "ignored"},
            {"type": "paragraph", "text": "kept"},
        ]}
        assert normalize(raw) == "kept\n\n"

    def test_json_text_is_parsed(self):
        raw = json.dumps({"blocks": [{"type": "paragraph", "text": "中文"}]})
        assert normalize(raw) == "中文\n\n"


class TestSheets:

    def test_single_sheet_table(self):
        raw = {"valueRange": {"sheetName": "Data", "values": [["a", "b"], ["1", "2"]]}}
        out = normalize(raw)
        assert out == "## Data\n\n| a | b |\n| --- | --- |\n| 1 | 2 |\n\n"
        table = [line for line in out.splitlines() if line.startswith("|")]
        assert table == ["| a | b |", "| --- | --- |", "| 1 | 2 |"]

    def test_sheet_name_defaults(self):
        assert normalize({"sheets": [{"values": [["x"]]}]}).startswith("## Sheet\n\n")

    def test_empty_sheet_contributes_only_heading(self):
        raw = {"sheets": [{"sheetName": "Empty", "values": []}, {"sheetName": "Full", "values": [["h"]]}]}
        assert normalize(raw) == "## Empty\n\n## Full\n\n| h |\n| --- |\n\n"

    def test_cells_are_made_table_safe(self):
        raw = {"valueRange": {"values": [["a|b", None], [[{"text": "rich"}, {"text": " text"}], "x\ny"]]}}
        out = normalize(raw)
        assert "| a\\|b |  |" in out
        assert "| rich text | x y |" in out


class TestFallbacks:

    def test_plain_text_returned_unchanged(self):
        text = "not { json"
        assert normalize(text) == text

    def test_opaque_object_round_trips_as_indented_json(self):
        value = {"title": "x", "nested": {"n": [1, 2, 3]}}
        out = normalize(value)
        assert json.loads(out) == value
        assert out == json.dumps(value, indent=2, ensure_ascii=False)

    def test_scalar_json_text(self):
        assert normalize("42") == "42"

    def test_never_raises_on_bad_block_data(self):
        raw = {"blocks": [{"type": "heading", "level": "big", "text": "T"}]}
        out = normalize(raw)
        assert out.startswith("Failed to convert content")
        assert '"level": "big"' in out

    def test_render_rejects_unknown_payload(self):
        with pytest.raises(TypeError):
            render(object())

    def test_is_deterministic(self):
        raw = {"sheets": [{"sheetName": "S", "values": [["a"], ["b"]]}]}
        assert normalize(raw) == normalize(raw)
