"""Classified content failures.

Portlet code, route handlers and templates raise these to steer the
page-level outcome. Anything else raised is treated as a generic failure.
"""


class ContentError(Exception):
    """Base class for classified content failures."""


class NotFoundError(ContentError):
    """Requested content does not exist (or must not be revealed)."""


class AccessDeniedError(ContentError):
    """Requester is not permitted to see the content."""
