"""
Obsidian Markdown adapter.

Converts `.md` / `.markdown` notes into CognitiveObjects and back:

- load: UTF-8 decode, front matter, title, tags, aliases, custom properties
- save: YAML front matter (only when there is metadata), title heading, body
- extract_links: wiki-links, block references, embeds and external links
"""

from pathlib import PurePath
from typing import Any

import yaml

from .. import ExtractedLink, ObjectAdapter
from ...object import CognitiveObject
from ...property import PropertyValue
from ...serialization import TextFileSource
from ...utils import DecodeError, MissingAttributeError, content_hash, normalize_relative_path, now_millis
from .frontmatter import Frontmatter, parse_frontmatter, yaml_to_property_value
from .links import (
    BlockReference,
    extract_block_references,
    extract_embeds,
    extract_external_links,
    extract_wikilinks,
)
from .parser import ParsedMarkdown, derive_title, parse_markdown

# Properties stored on the object but not written to front matter
INTERNAL_PROPERTIES = frozenset({"title", "content", "type"})


class ObsidianAdapter(ObjectAdapter):
    """Stateless adapter for Obsidian-flavoured Markdown."""

    def supported_extensions(self) -> tuple[str, ...]:
        return ("md", "markdown")

    def load(self, relative_path: str | PurePath, raw: bytes) -> CognitiveObject:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Markdown file must be UTF-8 encoded: {relative_path}") from e

        parsed = parse_markdown(text)

        obj = CognitiveObject()
        obj.set_title(parsed.title)
        obj.set_content(parsed.content)

        fm = parsed.frontmatter
        if fm is not None:
            if fm.node_type:
                obj.set_type(fm.node_type)
            for alias in fm.aliases:
                obj.add_alias(alias)
            for key, value in fm.properties.items():
                obj.set_property(key, yaml_to_property_value(value))
            if fm.created is not None:
                obj.set_property("created", PropertyValue.string(fm.created))

        for tag in parsed.tags:
            obj.add_tag(tag)

        obj.add_source(TextFileSource(
            path=normalize_relative_path(relative_path),
            content_hash=content_hash(raw),
            last_modified=now_millis(),
        ))
        return obj

    def save(self, obj: CognitiveObject) -> bytes:
        title = obj.title
        content = obj.content
        if not title and content is None:
            raise MissingAttributeError(f"object {obj.id} has neither title nor content")

        output = ""

        metadata = self._build_frontmatter(obj)
        if metadata:
            dumped = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True, default_flow_style=False)
            output += f"---\n{dumped}---\n\n"

        body = content or ""
        # Skip the heading when the body already yields this title on load
        if title and derive_title(body) != title:
            output += f"# {title}\n\n"
            body = _strip_leading_heading(body, title)

        output += body
        return output.encode("utf-8")

    def extract_links(self, obj: CognitiveObject) -> list[ExtractedLink]:
        content = obj.content
        if not content:
            return []
        links = extract_wikilinks(content)
        links.extend(extract_embeds(content))
        links.extend(extract_external_links(content))
        return links

    @staticmethod
    def _build_frontmatter(obj: CognitiveObject) -> dict[str, Any]:
        metadata: dict[str, Any] = {}

        object_type = obj.get_type()
        if object_type:
            metadata["type"] = object_type
        if obj.tags:
            metadata["tags"] = list(obj.tags)
        if obj.aliases:
            metadata["aliases"] = list(obj.aliases)

        for key, value in obj.properties.items():
            if key in INTERNAL_PROPERTIES or value.is_null():
                continue
            metadata[key] = value.to_python()

        return metadata


def _strip_leading_heading(body: str, title: str) -> str:
    """Drop the first non-blank line if it is a heading repeating the title."""
    lines = body.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        if line.lstrip().startswith("#") and line.strip().lstrip("#").strip() == title:
            return "".join(lines[index + 1:]).lstrip("\n")
        break
    return body


__all__ = [
    "BlockReference",
    "Frontmatter",
    "ObsidianAdapter",
    "ParsedMarkdown",
    "extract_block_references",
    "parse_frontmatter",
    "parse_markdown",
]
