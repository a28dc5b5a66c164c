"""
Structural parse of an Obsidian Markdown note.

Only the structure the indexer needs is recognized: front matter, the first
heading, wiki-link targets, tags and block markers. This is not a renderer.
"""

import re

from pydantic import BaseModel, Field

from .frontmatter import Frontmatter, parse_frontmatter
from .links import BlockReference, extract_block_references, extract_wikilinks, iter_prose_lines
from ...utils import (
    ATX_HEADING_PATTERN,
    INLINE_CODE_PATTERN,
    SETEXT_UNDERLINE_PATTERN,
    TAG_PATTERN,
    WIKILINK_PATTERN,
)

UNTITLED = "Untitled"

EMPHASIS_PATTERN = re.compile(r'(\*{1,3}|_{1,3})(\S(?:.*?\S)?)\1')


class ParsedMarkdown(BaseModel):
    """Result of parse_markdown."""

    title: str
    content: str
    raw_content: str
    frontmatter: Frontmatter | None = None
    wikilinks: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    block_ids: list[BlockReference] = Field(default_factory=list)


def heading_text(raw: str) -> str:
    """Plain text of a heading: inline code ticks and emphasis markers removed."""
    text = INLINE_CODE_PATTERN.sub(lambda m: m.group(0).strip("`"), raw)
    text = EMPHASIS_PATTERN.sub(r"\2", text)
    return text.strip()


def first_heading(body: str) -> str | None:
    """Text of the first non-empty ATX or setext heading outside fenced code."""
    previous: tuple[int, str] | None = None

    for line_number, line in iter_prose_lines(body):
        if (
            previous is not None
            and previous[0] == line_number - 1
            and previous[1].strip()
            and SETEXT_UNDERLINE_PATTERN.match(line)
        ):
            text = heading_text(previous[1])
            if text:
                return text

        atx = ATX_HEADING_PATTERN.match(line)
        if atx:
            text = heading_text(atx.group(2) or "")
            if text:
                return text
            previous = None
            continue

        previous = (line_number, line)

    return None


def derive_title(body: str) -> str:
    """First heading, else the first non-empty line without leading '#', else "Untitled"."""
    heading = first_heading(body)
    if heading:
        return heading

    for line in body.splitlines():
        candidate = line.strip().lstrip("#").strip()
        if candidate:
            return candidate

    return UNTITLED


def extract_inline_tags(body: str) -> list[str]:
    """`#tag` occurrences outside code and wiki-link spans, in order of appearance."""
    tags: list[str] = []
    for _, line in iter_prose_lines(body):
        line = INLINE_CODE_PATTERN.sub(" ", line)
        line = WIKILINK_PATTERN.sub(" ", line)
        for match in TAG_PATTERN.finditer(line):
            tag = match.group(1).rstrip("/")
            # Obsidian does not treat purely numeric tokens as tags
            if tag and not tag.isdigit():
                tags.append(tag)
    return tags


def parse_markdown(content: str) -> ParsedMarkdown:
    """Parse a note into title, body, links, tags and block markers.

    Wiki-link targets and tags are deduplicated in order of first appearance;
    front-matter tags come first.
    """
    frontmatter, body = parse_frontmatter(content)

    tags: dict[str, None] = {}
    if frontmatter is not None:
        tags.update(dict.fromkeys(frontmatter.tags))
    tags.update(dict.fromkeys(extract_inline_tags(body)))

    wikilinks = dict.fromkeys(link.target for link in extract_wikilinks(body))

    return ParsedMarkdown(
        title=derive_title(body),
        content=body,
        raw_content=content,
        frontmatter=frontmatter,
        wikilinks=list(wikilinks),
        tags=list(tags),
        block_ids=extract_block_references(body),
    )
