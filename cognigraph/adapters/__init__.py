"""
Object adapter layer.

An adapter bridges one file format and the cognitive object model: it loads
raw bytes into a CognitiveObject, saves an object back to bytes, and extracts
the relationships an object's content expresses. The registry dispatches to
an adapter by file extension (first match wins).

Adding a format means implementing ObjectAdapter and registering an instance;
nothing else in the sync pipeline changes.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import PurePath
from typing import Iterator

from pydantic import BaseModel

from ..object import CognitiveObject
from ..utils import extension_of


class LinkKind(str, Enum):
    """Kind of an extracted link. The value doubles as the edge provenance tag."""

    WIKI_LINK = "WikiLink"
    BLOCK_REFERENCE = "BlockReference"
    EMBED = "Embed"
    EXTERNAL = "External"


class ExtractedLink(BaseModel):
    """A link found in an object's content. Transient, never persisted on the object."""

    target: str
    kind: LinkKind
    display_text: str | None = None
    line_number: int | None = None


class ObjectAdapter(ABC):
    """Format bridge between raw bytes and cognitive objects.

    Implementations must be stateless so a single instance can be shared
    across threads.
    """

    @abstractmethod
    def supported_extensions(self) -> tuple[str, ...]:
        """Extensions handled by this adapter, without the leading dot."""

    @abstractmethod
    def load(self, relative_path: str | PurePath, raw: bytes) -> CognitiveObject:
        """Parse file content into a fresh object.

        Raises:
            DecodeError: If the bytes are not valid text where text is required
            ParseError: For irrecoverable structural problems
        """

    @abstractmethod
    def save(self, obj: CognitiveObject) -> bytes:
        """Serialize an object back to file content.

        Raises:
            MissingAttributeError: If required attributes are absent
        """

    @abstractmethod
    def extract_links(self, obj: CognitiveObject) -> list[ExtractedLink]:
        """Links expressed by the object's current content. Never touches disk."""

    def supports(self, ext: str) -> bool:
        ext = ext.lstrip(".").lower()
        return any(e.lower() == ext for e in self.supported_extensions())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(extensions={list(self.supported_extensions())})"


class AdapterRegistry:
    """Ordered collection of adapters resolved by first match on extension."""

    def __init__(self, adapters: list[ObjectAdapter] | None = None):
        self._adapters: list[ObjectAdapter] = list(adapters or [])

    def register(self, adapter: ObjectAdapter) -> None:
        self._adapters.append(adapter)

    def find_adapter(self, ext: str) -> ObjectAdapter | None:
        """Adapter for an extension (case-insensitive, dot optional)."""
        if not ext:
            return None
        for adapter in self._adapters:
            if adapter.supports(ext):
                return adapter
        return None

    def find_adapter_for_path(self, path: str | PurePath) -> ObjectAdapter | None:
        return self.find_adapter(extension_of(path))

    def extensions(self) -> set[str]:
        """Every extension claimed by a registered adapter, lowercased."""
        return {e.lower() for adapter in self._adapters for e in adapter.supported_extensions()}

    def __len__(self) -> int:
        return len(self._adapters)

    def __iter__(self) -> Iterator[ObjectAdapter]:
        return iter(self._adapters)


def default_registry() -> AdapterRegistry:
    """Registry with the Obsidian Markdown adapter."""
    from .obsidian import ObsidianAdapter

    return AdapterRegistry([ObsidianAdapter()])


__all__ = [
    "AdapterRegistry",
    "ExtractedLink",
    "LinkKind",
    "ObjectAdapter",
    "default_registry",
]
