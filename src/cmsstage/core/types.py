"""Core type definitions."""

from enum import StrEnum
from typing import NewType

# URL path for content lookup (e.g., "/about", "/docs/guide")
URLPath = NewType("URLPath", str)

GUEST_GROUP = "guest"
ROOT_SECTION = "root"
DEFAULT_LAYOUT = "default.html"


class HostKind(StrEnum):
    """Classification of the requested host."""

    CANONICAL = "canonical"
    CMS = "cms"


def normalize_path(path: str) -> URLPath:
    """Normalize path to have a single leading slash and no trailing slash."""
    stripped = path.strip("/")
    return URLPath(f"/{stripped}")
