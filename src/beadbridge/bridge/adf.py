"""
Atlassian Document Format (ADF) helpers.

JIRA REST v3 carries rich text as an ADF node tree. Inbound descriptions
are flattened to markdown for bead descriptions; outbound comments are
wrapped in a one-paragraph document.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)


def adf_paragraph(text: str) -> dict[str, Any]:
    """Build a minimal ADF document holding one paragraph of text."""
    return {
        "version": 1,
        "type": "doc",
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }


def adf_to_markdown(raw: Any) -> str:
    """Convert an ADF document to markdown.

    Handles paragraphs, headings, bullet and ordered lists, code blocks
    and blockquotes, with strong/em/code/link marks, hard breaks and
    inline cards. Unknown nodes are skipped.

    Args:
        raw: ADF document as a dict, or JSON str/bytes

    Returns:
        Markdown text, stripped; "" for empty or malformed input
    """
    if raw is None or raw == "" or raw == b"":
        return ""
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (ValueError, TypeError):
            logger.debug("Undecodable ADF document")
            return ""
    if not isinstance(raw, Mapping):
        return ""

    parts: list[str] = []
    for node in _children(raw):
        _render_block(parts, node)
    return "".join(parts).strip()


def _children(node: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    content = node.get("content")
    if not isinstance(content, list):
        return []
    return [child for child in content if isinstance(child, Mapping)]


def _attrs(node: Mapping[str, Any]) -> Mapping[str, Any]:
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, Mapping) else {}


def _render_block(out: list[str], node: Mapping[str, Any]) -> None:
    node_type = node.get("type")

    if node_type == "doc":
        for child in _children(node):
            _render_block(out, child)

    elif node_type == "paragraph":
        _render_inline(out, _children(node))
        out.append("\n\n")

    elif node_type == "heading":
        level = _attrs(node).get("level")
        if not isinstance(level, int) or level <= 0:
            level = 1
        out.append("#" * level + " ")
        _render_inline(out, _children(node))
        out.append("\n\n")

    elif node_type in ("bulletList", "orderedList"):
        ordered = node_type == "orderedList"
        for index, item in enumerate(_children(node), start=1):
            if item.get("type") != "listItem":
                continue
            out.append(f"{index}. " if ordered else "- ")
            for position, child in enumerate(_children(item)):
                if position > 0:
                    out.append("   " if ordered else "  ")
                _render_inline(out, _children(child))
            out.append("\n")
        out.append("\n")

    elif node_type == "codeBlock":
        language = _attrs(node).get("language") or ""
        out.append(f"```{language}\n")
        _render_inline(out, _children(node))
        out.append("\n```\n\n")

    elif node_type == "blockquote":
        for child in _children(node):
            out.append("> ")
            _render_inline(out, _children(child))
            out.append("\n")
        out.append("\n")


def _render_inline(out: list[str], nodes: list[Mapping[str, Any]]) -> None:
    for node in nodes:
        node_type = node.get("type")
        if node_type == "text":
            out.append(_apply_marks(str(node.get("text") or ""), node.get("marks")))
        elif node_type == "hardBreak":
            out.append("\n")
        elif node_type == "inlineCard":
            url = _attrs(node).get("url")
            if url:
                out.append(str(url))


def _apply_marks(text: str, marks: Any) -> str:
    if not isinstance(marks, list):
        return text
    for mark in marks:
        if not isinstance(mark, Mapping):
            continue
        mark_type = mark.get("type")
        if mark_type == "strong":
            text = f"**{text}**"
        elif mark_type == "em":
            text = f"_{text}_"
        elif mark_type == "code":
            text = f"`{text}`"
        elif mark_type == "link":
            href = _attrs(mark).get("href")
            if href:
                text = f"[{text}]({href})"
    return text
