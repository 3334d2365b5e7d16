"""Domain routing decision.

Chooses between public render, canonical redirect and editor render from
the caching mode, the requested host, the requester's editor capability and
the session edit mode. Only the canonical host is cacheable, so when caching
is enabled ordinary viewers on any other host are redirected there. With
caching disabled the host distinction collapses and only edit mode matters.
"""

from dataclasses import dataclass
from enum import StrEnum

from cmsstage.core.types import HostKind


class RenderMode(StrEnum):
    PUBLIC = "public"
    REDIRECT = "redirect"
    EDITOR = "editor"


@dataclass(frozen=True)
class DomainPolicy:
    """Host classification against the configured canonical host."""

    canonical_host: str
    scheme: str = "http"

    def classify(self, host: str) -> HostKind:
        """Classify a request host as canonical or CMS.

        A canonical host configured without a port matches any port.
        """
        canonical = self.canonical_host.lower()
        candidate = host.lower()
        if ":" not in canonical:
            candidate = candidate.split(":", 1)[0]
        return HostKind.CANONICAL if candidate == canonical else HostKind.CMS

    def canonical_url(self, target: str) -> str:
        """Build the canonical URL for a request target.

        ``target`` is the encoded path plus optional query, kept verbatim.
        """
        if not target.startswith("/"):
            target = f"/{target}"
        return f"{self.scheme}://{self.canonical_host}{target}"


def decide_render_mode(
    caching_enabled: bool,
    host: HostKind,
    is_editor: bool,
    edit_mode: bool,
) -> RenderMode:
    """Decide the rendering context for an authorized request.

    Args:
        caching_enabled: Process-wide caching mode
        host: Classified request host
        is_editor: Requester holds the editor capability
        edit_mode: Session edit mode (ignored for non-editors)

    Returns:
        RenderMode for the request
    """
    match (caching_enabled, host, is_editor, edit_mode and is_editor):
        case (True, HostKind.CANONICAL, _, _):
            return RenderMode.PUBLIC
        case (True, HostKind.CMS, False, _):
            return RenderMode.REDIRECT
        case (True, HostKind.CMS, True, False):
            return RenderMode.PUBLIC
        case (True, HostKind.CMS, True, True):
            return RenderMode.EDITOR
        case (False, _, False, _):
            return RenderMode.PUBLIC
        case (False, _, True, False):
            return RenderMode.PUBLIC
        case (False, _, True, True):
            return RenderMode.EDITOR
    raise AssertionError("unreachable")
