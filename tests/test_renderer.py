"""Tests for response rendering."""

from pathlib import Path

import pytest
from cmsstage.core.access import GUEST, Requester
from cmsstage.core.domains import RenderMode
from cmsstage.core.outcome import AccessDenied, NotFound, Redirect, Success
from cmsstage.core.portlets import FragmentStatus, PageExecution, PortletOutcome
from cmsstage.core.renderer import Renderer, compute_etag
from cmsstage.core.templates import TemplateEngine
from markupsafe import Markup

from tests.factories import make_file, make_page, select, select_id, title_of

EDITOR = Requester(is_editor=True, edit_mode=True)


@pytest.fixture
def renderer(tmp_path: Path) -> Renderer:
    return Renderer(TemplateEngine(), tmp_path, cache_max_age=120)


def _page_success(title: str = "Test Page", html: str = '<p id="hi">hello</p>', **kwargs) -> Success:
    execution = PageExecution(
        data={},
        outcomes=[PortletOutcome("Test", "main", FragmentStatus.RENDERED, html=Markup(html))],
    )
    return Success(node=make_page("/page", title), execution=execution, **kwargs)


class TestRenderPage:
    """Tests for successful page rendering."""

    def test__public_page__has_title_and_content(self, renderer: Renderer) -> None:
        """Render the layout with page title and container content."""
        response = renderer.render(_page_success(), GUEST)

        assert response.status == 200
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert title_of(response.text) == "Test Page"
        assert select_id(response.text, "hi") == ["hello"]
        assert select(response.text, "iframe") == []

    def test__editor_mode__wraps_page_in_frame(self, renderer: Renderer) -> None:
        """Editor mode embeds the public render inside an iframe."""
        response = renderer.render(_page_success(), EDITOR, mode=RenderMode.EDITOR)

        assert response.status == 200
        assert title_of(response.text) == "Test Page"
        assert '<iframe id="cms-page"' in response.text
        assert "srcdoc=" in response.text
        assert "&lt;title&gt;Test Page&lt;/title&gt;" in response.text

    def test__annotations__shown_to_editors(self, renderer: Renderer) -> None:
        """Archived pages carry a status notice for editors."""
        outcome = _page_success("Archived", annotations=frozenset({"archived"}))

        response = renderer.render(outcome, Requester(is_editor=True))

        assert "cms-notice" in response.text
        assert "archived" in response.text

    def test__cacheable__sets_public_cache_headers(self, renderer: Renderer) -> None:
        """Cacheable responses are public with an ETag."""
        response = renderer.render(_page_success(), GUEST, cacheable=True)

        assert response.headers["Cache-Control"] == "public, max-age=120"
        assert response.headers["ETag"] == compute_etag(response.body)

    def test__not_cacheable__is_private(self, renderer: Renderer) -> None:
        """Non-cacheable responses are never stored by shared caches."""
        response = renderer.render(_page_success(), GUEST)

        assert response.headers["Cache-Control"] == "private, no-store"
        assert "ETag" not in response.headers

    def test__editor_mode__never_cacheable(self, renderer: Renderer) -> None:
        """Editor renders drop cacheability."""
        response = renderer.render(_page_success(), EDITOR, mode=RenderMode.EDITOR, cacheable=True)

        assert response.headers["Cache-Control"] == "private, no-store"

    def test__custom_layout__is_used(self, tmp_path: Path) -> None:
        """Pages name their layout."""
        layouts = tmp_path / "layouts"
        layouts.mkdir()
        (layouts / "plain.html").write_text("<title>{{ page.title }}</title>{{ containers.main }}")
        renderer = Renderer(TemplateEngine(layouts), tmp_path)
        outcome = Success(node=make_page("/page", "Plain", layout="plain.html"))

        response = renderer.render(outcome, GUEST)

        assert response.text == "<title>Plain</title>"

    def test__unknown_layout__falls_back_to_default(self, renderer: Renderer) -> None:
        """A page naming a missing layout renders with the default layout."""
        outcome = Success(node=make_page("/page", "Lost Layout", layout="nope.html"))

        response = renderer.render(outcome, GUEST)

        assert response.status == 200
        assert title_of(response.text) == "Lost Layout"

    def test__broken_layout__falls_back_to_default(self, tmp_path: Path) -> None:
        """A layout failing at render time is replaced by the default layout."""
        layouts = tmp_path / "layouts"
        layouts.mkdir()
        (layouts / "broken.html").write_text("{{ page.title.missing.deeper }}")
        renderer = Renderer(TemplateEngine(layouts), tmp_path)
        outcome = Success(node=make_page("/page", "Broken", layout="broken.html"))

        response = renderer.render(outcome, GUEST)

        assert response.status == 200
        assert title_of(response.text) == "Broken"


class TestRenderFile:
    """Tests for file rendering."""

    def test__file__served_inline(self, tmp_path: Path, renderer: Renderer) -> None:
        """Serve file bytes inline with its content type and filename."""
        (tmp_path / "test.txt").write_text("hello file")

        response = renderer.render(Success(node=make_file("/test.txt")), GUEST)

        assert response.status == 200
        assert response.body == b"hello file"
        assert response.headers["Content-Type"] == "text/plain"
        assert response.headers["Content-Disposition"] == 'inline; filename="test.txt"'

    def test__missing_source__is_not_found(self, renderer: Renderer) -> None:
        """A file node without its source on disk is not found."""
        response = renderer.render(Success(node=make_file("/gone.txt", "gone.txt")), GUEST)

        assert response.status == 404


class TestRenderFailures:
    """Tests for redirects and error pages."""

    def test__redirect(self, renderer: Renderer) -> None:
        """Redirect to the location with 302."""
        response = renderer.render(Redirect("http://mysite.com/?path=page"), GUEST)

        assert response.status == 302
        assert response.headers["Location"] == "http://mysite.com/?path=page"

    def test__not_found__guest_gets_generic_page(self, renderer: Renderer) -> None:
        """Guests get a non-revealing not-found page."""
        response = renderer.render(NotFound("/foo", "There is no page at /foo"), GUEST)

        assert response.status == 404
        assert title_of(response.text) == "Not Found"
        assert select(response.text, "h1") == ["Page Not Found"]
        assert "/foo" not in response.text

    def test__not_found__editor_gets_detail(self, renderer: Renderer) -> None:
        """Editors see which path was not found."""
        response = renderer.render(NotFound("/foo", "There is no page at /foo"), Requester(is_editor=True))

        assert response.status == 404
        assert title_of(response.text) == "Page Not Found"
        assert select(response.text, "h2") == ["There is no page at /foo"]

    def test__access_denied__guest(self, renderer: Renderer) -> None:
        """Guests get a plain access-denied page."""
        response = renderer.render(AccessDenied("/secret", "Section 'secret' requires one of: Secret"), GUEST)

        assert response.status == 403
        assert title_of(response.text) == "Access Denied"
        assert "Secret" not in response.text

    def test__access_denied__editor_gets_reason(self, renderer: Renderer) -> None:
        """Editors see the denial reason."""
        response = renderer.render(
            AccessDenied("/secret", "Section 'secret' requires one of: Secret"),
            Requester(is_editor=True),
        )

        assert response.status == 403
        assert "requires one of: Secret" in response.text
