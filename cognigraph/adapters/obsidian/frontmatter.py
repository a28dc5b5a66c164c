"""
YAML front matter parsing for Obsidian notes.

Obsidian conventions:

| key       | meaning                   |
|-----------|---------------------------|
| `tags`    | tag list                  |
| `aliases` | alternative note names    |
| `type`    | node type                 |
| `created` | creation date             |

Any other key is kept as a custom property.
"""

import base64
import datetime as _dt
import re
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field

from ...property import PropertyValue
from ...utils import FrontMatterParseError

logger = structlog.get_logger(__name__)

FRONTMATTER_DELIMITER = "---"
KNOWN_KEYS = frozenset({"tags", "aliases", "type", "created"})
LIST_SPLIT_PATTERN = re.compile(r'[,\s]+')


class Frontmatter(BaseModel):
    """Structured metadata from the head of a note."""

    tags: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    node_type: str | None = None
    created: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return (
            not self.tags
            and not self.aliases
            and self.node_type is None
            and self.created is None
            and not self.properties
        )


def _string_list(value: Any, split: bool) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        if not split:
            return [value.strip()] if value.strip() else []
        return [part for part in LIST_SPLIT_PATTERN.split(value) if part]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


def _scalar_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (_dt.date, _dt.datetime)):
        return value.isoformat()
    return str(value)


def decode_frontmatter(yaml_text: str) -> Frontmatter:
    """Decode the YAML region between the delimiters.

    Raises:
        FrontMatterParseError: If the region is not valid YAML, holds a value
            YAML cannot construct (such as 2024-02-30), or is not a mapping
    """
    try:
        data = yaml.safe_load(yaml_text)
    except (yaml.YAMLError, ValueError, TypeError, OverflowError) as e:
        raise FrontMatterParseError(str(e)) from e

    if data is None:
        return Frontmatter()
    if not isinstance(data, dict):
        raise FrontMatterParseError(f"front matter must be a mapping, got {type(data).__name__}")

    return Frontmatter(
        tags=[t.lstrip("#") for t in _string_list(data.get("tags"), split=True)],
        aliases=_string_list(data.get("aliases"), split=False),
        node_type=_scalar_string(data.get("type")),
        created=_scalar_string(data.get("created")),
        properties={str(k): v for k, v in data.items() if str(k) not in KNOWN_KEYS},
    )


def parse_frontmatter(content: str) -> tuple[Frontmatter | None, str]:
    """Split a note into front matter and body.

    The content must start with the delimiter line; the block ends at the
    next newline followed by the delimiter. When the block is missing or does
    not decode, returns (None, content) with the content untouched.
    """
    if not content.startswith(FRONTMATTER_DELIMITER):
        return None, content

    start = len(FRONTMATTER_DELIMITER)
    end = content.find("\n" + FRONTMATTER_DELIMITER, start)
    if end == -1:
        return None, content

    yaml_text = content[start:end]
    remaining = content[end + 1 + len(FRONTMATTER_DELIMITER):]

    try:
        frontmatter = decode_frontmatter(yaml_text.strip())
    except FrontMatterParseError as e:
        logger.debug("frontmatter_parse_failed", error=str(e))
        return None, content

    return frontmatter, remaining.lstrip()


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(v) for v in value), key=str)
    if isinstance(value, (_dt.date, _dt.datetime)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


def yaml_to_property_value(value: Any) -> PropertyValue:
    """Convert a decoded YAML value into a PropertyValue.

    | YAML            | PropertyValue                          |
    |-----------------|----------------------------------------|
    | null            | Null                                   |
    | bool            | Boolean                                |
    | int             | Integer                                |
    | float           | Float                                  |
    | str             | String                                 |
    | date / datetime | DateTime                               |
    | sequence        | List                                   |
    | mapping         | Json (binary as base64, sets as lists) |
    | anything else   | Null                                   |
    """
    if isinstance(value, (_dt.date, _dt.datetime)):
        return PropertyValue.datetime(value.isoformat())
    if isinstance(value, (list, tuple)):
        return PropertyValue.list_([yaml_to_property_value(v) for v in value])
    if isinstance(value, dict):
        return PropertyValue.from_json(_jsonable(value))
    if value is None or isinstance(value, (bool, int, float, str)):
        return PropertyValue.from_json(value)
    return PropertyValue.null()
