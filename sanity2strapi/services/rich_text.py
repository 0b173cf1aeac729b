"""Portable text to structured blocks conversion."""

import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


HEADING_STYLE = re.compile(r"^h(\d)$")
QUOTE_STYLE = "blockquote"

DECORATORS = {
    "strong": "bold",
    "em": "italic",
    "underline": "underline",
    "strike-through": "strikethrough",
    "code": "code",
}


def convert_blocks(value: Any) -> List[Dict[str, Any]]:
    """
    Convert a portable text value into a list of structured blocks.

    Items whose ``_type`` is set to anything other than ``block`` (inline
    images, embeds) are skipped.
    """
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []

    blocks = []
    for item in value:
        if not isinstance(item, dict):
            continue
        if item.get("_type", "block") != "block":
            logger.debug(f"Skipping non-text block of type {item.get('_type')}")
            continue
        blocks.append(convert_block(item))
    return blocks


def convert_block(block: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one portable block by its style marker."""
    style = block.get("style") or ""
    children = convert_spans(block.get("children"), block.get("markDefs"))

    heading = HEADING_STYLE.match(style)
    if heading:
        return {"type": "heading", "level": int(heading.group(1)), "children": children}
    if style == QUOTE_STYLE:
        return {"type": "quote", "children": children}
    return {"type": "paragraph", "children": children}


def convert_spans(spans: Any, mark_defs: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    if not isinstance(spans, list):
        return []
    definitions = {
        d.get("_key"): d for d in (mark_defs or [])
        if isinstance(d, dict) and d.get("_key")
    }
    return [convert_span(span, definitions) for span in spans if isinstance(span, dict)]


def convert_span(span: Dict[str, Any], definitions: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convert one inline span.

    A mark that resolves to a link definition turns the whole span into a
    link node with a single plain text child. Decorations on the same span
    are dropped.
    """
    text = span.get("text") or ""
    node: Dict[str, Any] = {"type": "text", "text": text}

    for mark in span.get("marks") or []:
        flag = DECORATORS.get(mark)
        if flag:
            node[flag] = True

        definition = definitions.get(mark)
        if definition and definition.get("_type") == "link":
            return {
                "type": "link",
                "url": definition.get("href"),
                "children": [{"type": "text", "text": text}],
            }

    return node
