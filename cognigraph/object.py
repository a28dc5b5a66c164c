"""
The cognitive object: a format-agnostic representation of one note or resource.

Layers of an object:
- identity: id, created_at, updated_at
- serialization: sources (physical representations)
- attributes: schema-less properties
- relations: tags, aliases, outbound links
- inference: inferred_type, equivalence_classes (written only by rule evaluation)
"""

import uuid
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

from .property import PropertyValue
from .serialization import SerializationSource, TextFileSource, is_virtual_source
from .utils import now_millis, path_to_uuid, tag_to_uuid


class ObjectId(str):
    """Immutable, value-compared object identity."""

    __slots__ = ()

    @classmethod
    def generate(cls) -> "ObjectId":
        """Random identity for objects with no stable external identity."""
        return cls(str(uuid.uuid4()))

    @classmethod
    def from_path(cls, relative_path: str | PurePath) -> "ObjectId":
        """Deterministic identity derived from a vault-relative path."""
        return cls(path_to_uuid(relative_path))

    @classmethod
    def for_tag(cls, tag: str) -> "ObjectId":
        """Namespaced pseudo-identity for a tag."""
        return cls(tag_to_uuid(tag))

    def __repr__(self) -> str:
        return f"ObjectId({str.__repr__(self)})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class CognitiveObject(BaseModel):
    """A node of the knowledge graph before projection into storage.

    Every mutating method calls touch(); adding a tag, alias or link that is
    already present is a no-op and leaves updated_at untouched.
    """

    id: ObjectId = Field(default_factory=ObjectId.generate, frozen=True)
    created_at: int = Field(default_factory=now_millis)
    updated_at: int = Field(default_factory=now_millis)
    sources: list[SerializationSource] = Field(default_factory=list)
    properties: dict[str, PropertyValue] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    links: list[ObjectId] = Field(default_factory=list)
    inferred_type: str | None = None
    equivalence_classes: list[str] = Field(default_factory=list)

    @classmethod
    def with_id(cls, object_id: str) -> "CognitiveObject":
        return cls(id=ObjectId(object_id))

    def touch(self) -> None:
        """Bump updated_at; never moves backwards."""
        self.updated_at = max(now_millis(), self.updated_at)

    # ---- properties ----

    def set_property(self, name: str, value: Any) -> None:
        """Set (or overwrite) a property. Raw values go through PropertyValue.from_json."""
        if not isinstance(value, PropertyValue):
            value = PropertyValue.from_json(value)
        self.properties[name] = value
        self.touch()

    def get_property(self, name: str) -> PropertyValue | None:
        return self.properties.get(name)

    def remove_property(self, name: str) -> PropertyValue | None:
        removed = self.properties.pop(name, None)
        if removed is not None:
            self.touch()
        return removed

    @property
    def title(self) -> str | None:
        value = self.get_property("title")
        return value.as_string() if value else None

    def set_title(self, title: str) -> None:
        self.set_property("title", PropertyValue.string(title))

    @property
    def content(self) -> str | None:
        value = self.get_property("content")
        return value.as_string() if value else None

    def set_content(self, content: str) -> None:
        self.set_property("content", PropertyValue.string(content))

    def get_type(self) -> str | None:
        """The explicit "type" property, ignoring inference."""
        value = self.get_property("type")
        return value.as_string() if value else None

    def set_type(self, object_type: str) -> None:
        self.set_property("type", PropertyValue.string(object_type))

    def object_type(self) -> str | None:
        """Effective type: the inferred type wins over the explicit one."""
        return self.inferred_type or self.get_type()

    # ---- relations ----

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)
            self.touch()

    def remove_tag(self, tag: str) -> bool:
        if tag in self.tags:
            self.tags.remove(tag)
            self.touch()
            return True
        return False

    def add_alias(self, alias: str) -> None:
        if alias not in self.aliases:
            self.aliases.append(alias)
            self.touch()

    def add_link(self, target: str) -> None:
        target = ObjectId(target)
        if target not in self.links:
            self.links.append(target)
            self.touch()

    # ---- sources ----

    def add_source(self, source: SerializationSource) -> None:
        self.sources.append(source)
        self.touch()

    def text_source(self) -> TextFileSource | None:
        """First text-file source, if any."""
        for source in self.sources:
            if isinstance(source, TextFileSource):
                return source
        return None

    @property
    def path(self) -> str | None:
        source = self.text_source()
        return source.path if source else None

    def has_file(self) -> bool:
        return any(not is_virtual_source(s) for s in self.sources)

    def is_virtual(self) -> bool:
        return not self.sources or all(is_virtual_source(s) for s in self.sources)
