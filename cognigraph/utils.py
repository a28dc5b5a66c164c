"""
Utility functions and compiled regex patterns for cognigraph.

Contains the exception taxonomy, fingerprint and identity helpers,
pre-compiled patterns and vault path validation.
"""

import hashlib
import os
import re
import time
import uuid
from pathlib import Path, PurePath
from typing import Iterator

# Pre-compiled regex patterns for performance
WIKILINK_PATTERN = re.compile(r'\[\[([^\]]+)\]\]')
EMBED_PATTERN = re.compile(r'!\[\[([^\]]+)\]\]')
EXTERNAL_LINK_PATTERN = re.compile(r'\[([^\]]*)\]\((https?://[^)]+)\)')
BLOCK_ID_PATTERN = re.compile(r'(?<![\w#])\^([\w\-]+)')
BLOCK_REF_TARGET_PATTERN = re.compile(r'([^#\]|]+)#\^([\w\-]+)(?:\|[^\]]+)?')
TAG_PATTERN = re.compile(r'(?:^|[^\w#&/])#([\w\-/]+)')
ATX_HEADING_PATTERN = re.compile(r'^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$')
SETEXT_UNDERLINE_PATTERN = re.compile(r'^ {0,3}(=+|-+)[ \t]*$')
FENCE_PATTERN = re.compile(r'^ {0,3}(`{3,}|~{3,})')
INLINE_CODE_PATTERN = re.compile(r'`[^`\n]*`')

# Namespace for deterministic, path-derived object identities
PATH_NAMESPACE = uuid.UUID("6f1c2b7e-3d4a-5e8f-9a0b-1c2d3e4f5a6b")
TAG_ID_PREFIX = "tag:"


# ============== Exceptions ==============

class CognigraphError(Exception):
    """Base class for all cognigraph errors."""
    pass


class DecodeError(CognigraphError):
    """Raised when bytes are not valid text where text is required."""
    pass


class ParseError(CognigraphError):
    """Raised for irrecoverable structural problems in a document."""
    pass


class FrontMatterParseError(ParseError):
    """Raised when a front-matter block cannot be decoded.

    Always recovered locally: the document is treated as body text.
    """
    pass


class MissingAttributeError(CognigraphError):
    """Raised by an adapter when an object lacks attributes needed to save it."""
    pass


class StorageError(CognigraphError):
    """Raised when the graph store fails."""
    pass


class PathValidationError(CognigraphError):
    """Raised when path validation fails."""
    pass


class VaultNotOpenError(CognigraphError):
    """Raised when a session operation needs an open vault."""
    pass


# ============== Helper Functions ==============

def content_hash(content: str | bytes) -> str:
    """Deterministic fingerprint of text or bytes, used only for change detection."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.blake2b(content, digest_size=8).hexdigest()


def normalize_relative_path(relative_path: str | PurePath) -> str:
    """Render a vault-relative path with forward slashes."""
    return PurePath(relative_path).as_posix()


def path_to_uuid(relative_path: str | PurePath) -> str:
    """Deterministic UUID-shaped identity for a vault-relative path.

    The same path always maps to the same identity, across calls and
    process restarts.
    """
    return str(uuid.uuid5(PATH_NAMESPACE, normalize_relative_path(relative_path)))


def tag_to_uuid(tag: str) -> str:
    """Namespaced pseudo-identity that lets tags take part in the graph."""
    return f"{TAG_ID_PREFIX}{tag}"


def extension_of(path: str | PurePath) -> str:
    """File extension without the leading dot, or an empty string."""
    return PurePath(path).suffix.lstrip(".")


def is_hidden(relative_path: PurePath) -> bool:
    """True if any component of a relative path starts with a dot."""
    return any(part.startswith(".") for part in relative_path.parts)


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def walk_vault(root: Path, skip_dirs: frozenset[str] = frozenset(), follow_symlinks: bool = True) -> Iterator[Path]:
    """Yield every non-hidden file under root in sorted order.

    Hidden directories and those named in skip_dirs are not entered.
    Symlinked directories are followed once; cycles are cut.
    """
    seen_dirs: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=follow_symlinks):
        real = os.path.realpath(dirpath)
        if real in seen_dirs:
            dirnames[:] = []
            continue
        seen_dirs.add(real)

        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in skip_dirs)
        for name in sorted(filenames):
            if not name.startswith("."):
                yield Path(dirpath) / name


# ============== Security Validation ==============

def validate_path_within_vault(path_str: str, vault_path: Path) -> Path:
    """Validate that a path is safely within the vault directory.

    Args:
        path_str: The path string to validate (relative to the vault)
        vault_path: The vault root path

    Returns:
        The validated absolute Path

    Raises:
        PathValidationError: If the path attempts to escape the vault
    """
    # Reject empty paths
    if not path_str or not path_str.strip():
        raise PathValidationError("Path cannot be empty")

    # Reject paths with ".." components (path traversal attempt)
    if ".." in PurePath(path_str).parts:
        raise PathValidationError("Path traversal detected: '..' is not allowed")

    # Reject absolute paths
    if path_str.startswith("/") or (len(path_str) > 1 and path_str[1] == ":"):
        raise PathValidationError("Absolute paths are not allowed")

    # Build the full path and resolve it
    full_path = (vault_path / path_str).resolve()
    vault_resolved = vault_path.resolve()

    # Verify the resolved path is within the vault
    try:
        full_path.relative_to(vault_resolved)
    except ValueError:
        raise PathValidationError(f"Path escapes vault directory: {path_str}")

    return full_path
