"""
Physical representations backing a cognitive object.

An object may be backed by a text file, a binary file, or be computed by a
rule (virtual). An object with no sources, or only virtual ones, has no
file-system backing.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class TextFileSource(BaseModel):
    """A text file (e.g. a Markdown note) relative to the vault root."""

    source_type: Literal["text"] = "text"
    path: str
    content_hash: str
    last_modified: int

    def has_changed(self, new_hash: str) -> bool:
        return self.content_hash != new_hash


class BinaryFileSource(BaseModel):
    """A binary attachment (PDF, image, audio) relative to the vault root."""

    source_type: Literal["binary"] = "binary"
    path: str
    content_hash: str
    mime_type: str
    size_bytes: int
    last_modified: int

    def has_changed(self, new_hash: str) -> bool:
        return self.content_hash != new_hash


class VirtualSource(BaseModel):
    """An object produced by a rule rather than read from disk."""

    source_type: Literal["virtual"] = "virtual"
    rule_name: str
    computed_at: int


SerializationSource = Annotated[
    Union[TextFileSource, BinaryFileSource, VirtualSource],
    Field(discriminator="source_type"),
]


def source_path(source: SerializationSource) -> str | None:
    """File path of a file-backed source, None for virtual sources."""
    if isinstance(source, VirtualSource):
        return None
    return source.path


def source_hash(source: SerializationSource) -> str | None:
    """Content fingerprint of a file-backed source, None for virtual sources."""
    if isinstance(source, VirtualSource):
        return None
    return source.content_hash


def is_virtual_source(source: SerializationSource) -> bool:
    return isinstance(source, VirtualSource)
