"""Requester identity from trusted upstream headers.

Authentication and the edit-mode toggle live upstream; this module only
reads what they hand over: group membership, the editor capability, the
login name and the session edit-mode cookie.
"""

from aiohttp import web

from cmsstage.config import AuthConfig
from cmsstage.core.access import Requester

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class HeaderRequesterResolver:
    """Builds a Requester from request headers and cookies."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def resolve(self, request: web.Request) -> Requester:
        groups_raw = request.headers.get(self._config.groups_header, "")
        groups = frozenset(g.strip() for g in groups_raw.split(",") if g.strip())
        is_editor = request.headers.get(self._config.editor_header, "").strip().lower() in _TRUTHY
        edit_mode = request.cookies.get(self._config.edit_mode_cookie) == "edit"
        return Requester(
            groups=groups,
            is_editor=is_editor,
            edit_mode=is_editor and edit_mode,
            login=request.headers.get(self._config.user_header) or None,
        )
