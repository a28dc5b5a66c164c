"""
Obsidian link syntax.

| syntax                | kind            | example                  |
|-----------------------|-----------------|--------------------------|
| `[[link]]`            | WikiLink        | `[[My Note]]`            |
| `[[link\\|alias]]`    | WikiLink        | `[[My Note\\|shown]]`    |
| `[[note#heading]]`    | WikiLink        | `[[Note#Section]]`       |
| `[[note#^blockid]]`   | BlockReference  | `[[Note#^abc123]]`       |
| `![[embed]]`          | Embed           | `![[image.png]]`         |
| `[text](url)`         | External        | `[Docs](https://...)`    |

Extraction works line by line so line numbers are 1-based and stable.
Lines inside fenced code blocks are skipped.
"""

from typing import Iterator

from pydantic import BaseModel

from .. import ExtractedLink, LinkKind
from ...utils import (
    BLOCK_ID_PATTERN,
    BLOCK_REF_TARGET_PATTERN,
    EMBED_PATTERN,
    EXTERNAL_LINK_PATTERN,
    FENCE_PATTERN,
    WIKILINK_PATTERN,
)


class BlockReference(BaseModel):
    """A `^blockid` marker and the line it sits on."""

    id: str
    line_number: int


def iter_prose_lines(content: str) -> Iterator[tuple[int, str]]:
    """Yield (line_number, line) for lines outside fenced code blocks."""
    fence: str | None = None
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = FENCE_PATTERN.match(line)
        if fence is None:
            if match:
                fence = match.group(1)
                continue
            yield line_number, line
        elif match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
            fence = None


def parse_link_text(link_text: str) -> tuple[str, str | None]:
    """Split `target|display` and drop any `#heading` or `#^block` anchor from the target."""
    target, sep, display = link_text.partition("|")
    target = target.split("#", 1)[0].strip()
    if sep:
        return target, display.strip()
    return target, None


def extract_wikilinks(content: str) -> list[ExtractedLink]:
    """Extract `[[...]]` links, excluding embeds.

    A span shaped like `[[note#^id]]` is reported once, as a BlockReference
    whose target is the note name; every other span is a WikiLink.
    """
    links: list[ExtractedLink] = []

    for line_number, line in iter_prose_lines(content):
        # Remove embeds first so their inner [[...]] is not counted twice
        line_without_embeds = EMBED_PATTERN.sub("", line)

        for match in WIKILINK_PATTERN.finditer(line_without_embeds):
            link_text = match.group(1)

            block = BLOCK_REF_TARGET_PATTERN.fullmatch(link_text)
            if block:
                note = block.group(1).strip()
                block_id = block.group(2)
                links.append(ExtractedLink(
                    target=note,
                    kind=LinkKind.BLOCK_REFERENCE,
                    display_text=f"{note}#^{block_id}",
                    line_number=line_number,
                ))
                continue

            target, display = parse_link_text(link_text)
            if not target:
                # [[#Heading]] points into the current note
                continue
            links.append(ExtractedLink(
                target=target,
                kind=LinkKind.WIKI_LINK,
                display_text=display,
                line_number=line_number,
            ))

    return links


def extract_embeds(content: str) -> list[ExtractedLink]:
    """Extract `![[...]]` embeds."""
    links: list[ExtractedLink] = []
    for line_number, line in iter_prose_lines(content):
        for match in EMBED_PATTERN.finditer(line):
            target, _ = parse_link_text(match.group(1))
            if target:
                links.append(ExtractedLink(target=target, kind=LinkKind.EMBED, line_number=line_number))
    return links


def extract_external_links(content: str) -> list[ExtractedLink]:
    """Extract `[text](http(s)://...)` links."""
    links: list[ExtractedLink] = []
    for line_number, line in iter_prose_lines(content):
        for match in EXTERNAL_LINK_PATTERN.finditer(line):
            display, url = match.group(1), match.group(2)
            links.append(ExtractedLink(
                target=url,
                kind=LinkKind.EXTERNAL,
                display_text=display or None,
                line_number=line_number,
            ))
    return links


def extract_block_references(content: str) -> list[BlockReference]:
    """Extract bare `^blockid` markers."""
    return [
        BlockReference(id=match.group(1), line_number=line_number)
        for line_number, line in iter_prose_lines(content)
        for match in BLOCK_ID_PATTERN.finditer(line)
    ]
