"""Access evaluation for content nodes.

Rules, in precedence order:
  - archived content is hidden (not found) from everyone but editors
  - unpublished content is hidden the same way unless a preview is requested
  - protected sections require a group intersecting the section's grants
  - everything else is allowed

Editors see archived and draft content but never bypass section protection.
Hidden lifecycle states are reported as not found, never as denied.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from cmsstage.core.catalog import Catalog, ContentNodeType
from cmsstage.core.types import GUEST_GROUP


@dataclass(frozen=True)
class Requester:
    """Identity and session state of the requesting user."""

    groups: frozenset[str] = field(default_factory=frozenset)
    is_editor: bool = False
    edit_mode: bool = False
    login: str | None = None

    @property
    def effective_groups(self) -> frozenset[str]:
        """Groups including the implicit guest group."""
        return self.groups | {GUEST_GROUP}

    @property
    def in_edit_mode(self) -> bool:
        """Session edit mode, meaningful only for editors."""
        return self.is_editor and self.edit_mode


GUEST = Requester()


class Verdict(StrEnum):
    ALLOWED = "allowed"
    DENIED = "denied"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class AccessDecision:
    """Result of authorizing a node for a requester."""

    verdict: Verdict
    reason: str = ""
    annotations: frozenset[str] = frozenset()

    @property
    def allowed(self) -> bool:
        return self.verdict is Verdict.ALLOWED


def authorize(
    catalog: Catalog,
    node: ContentNodeType,
    requester: Requester,
    *,
    preview: bool = False,
) -> AccessDecision:
    """Decide whether a requester may see a node.

    Args:
        catalog: Catalog owning the node's section tree
        node: Resolved content node
        requester: Requesting identity
        preview: Treat unpublished content as published (editor preview only)

    Returns:
        AccessDecision with verdict, reason and renderer annotations
    """
    annotations: set[str] = set()

    if node.archived:
        if not requester.is_editor:
            return AccessDecision(Verdict.NOT_FOUND, reason=f"{node.path} is archived")
        annotations.add("archived")

    if not node.published and not preview:
        if not requester.is_editor:
            return AccessDecision(Verdict.NOT_FOUND, reason=f"{node.path} is not published")
        annotations.add("draft")

    groups = requester.effective_groups
    for section in catalog.section_chain(node.section):
        if section.protected and not (groups & (section.groups or frozenset())):
            return AccessDecision(
                Verdict.DENIED,
                reason=f"Section '{section.name}' requires one of: {', '.join(sorted(section.groups or ()))}",
            )

    return AccessDecision(Verdict.ALLOWED, annotations=frozenset(annotations))
