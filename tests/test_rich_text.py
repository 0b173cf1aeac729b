"""Tests for portable text conversion."""

from sanity2strapi.services.rich_text import convert_blocks


def block(style="normal", children=None, mark_defs=None):
    return {
        "_type": "block",
        "style": style,
        "markDefs": mark_defs or [],
        "children": children or [],
    }


class TestBlocks:
    """Test block-level conversion."""

    def test_heading_with_bold_text(self):
        result = convert_blocks([block("h2", [{"_type": "span", "text": "Hi", "marks": ["strong"]}])])
        assert result == [{
            "type": "heading",
            "level": 2,
            "children": [{"type": "text", "text": "Hi", "bold": True}],
        }]

    def test_quote_and_paragraph(self):
        result = convert_blocks([
            block("blockquote", [{"text": "Said"}]),
            block(children=[{"text": "Plain"}]),
        ])
        assert [b["type"] for b in result] == ["quote", "paragraph"]
        assert result[1]["children"] == [{"type": "text", "text": "Plain"}]

    def test_non_block_items_are_skipped(self):
        result = convert_blocks([
            {"_type": "image", "asset": {"_ref": "image-x"}},
            block(children=[{"text": "kept"}]),
            "stray",
        ])
        assert len(result) == 1
        assert result[0]["children"][0]["text"] == "kept"

    def test_single_block_object(self):
        assert convert_blocks(block("h1"))[0]["level"] == 1

    def test_non_list_value(self):
        assert convert_blocks("just text") == []
        assert convert_blocks(None) == []


class TestSpans:
    """Test inline span conversion."""

    def test_multiple_decorators(self):
        span = {"text": "x", "marks": ["em", "underline", "strike-through", "code"]}
        node = convert_blocks([block(children=[span])])[0]["children"][0]
        assert node == {
            "type": "text",
            "text": "x",
            "italic": True,
            "underline": True,
            "strikethrough": True,
            "code": True,
        }

    def test_link_drops_decorations(self):
        span = {"text": "docs", "marks": ["strong", "l1"]}
        mark_defs = [{"_key": "l1", "_type": "link", "href": "https://example.com"}]

        node = convert_blocks([block(children=[span], mark_defs=mark_defs)])[0]["children"][0]

        assert node == {
            "type": "link",
            "url": "https://example.com",
            "children": [{"type": "text", "text": "docs"}],
        }

    def test_unknown_mark_is_ignored(self):
        node = convert_blocks([block(children=[{"text": "x", "marks": ["ghost"]}])])[0]["children"][0]
        assert node == {"type": "text", "text": "x"}
