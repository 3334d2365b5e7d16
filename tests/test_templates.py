"""Tests for the template engine."""

from pathlib import Path

import pytest
from cmsstage.core.templates import TemplateEngine
from jinja2 import TemplateError, TemplateNotFound, UndefinedError


class TestRenderFragment:
    """Tests for TemplateEngine.render_fragment()."""

    def test__variables__are_rendered(self) -> None:
        """Render context variables."""
        engine = TemplateEngine()

        html = engine.render_fragment("<h1>{{ foo }}</h1>", {"foo": "42"})

        assert html == "<h1>42</h1>"

    def test__variables__are_autoescaped(self) -> None:
        """Escape HTML in context values."""
        engine = TemplateEngine()

        html = engine.render_fragment("<p>{{ text }}</p>", {"text": "<script>"})

        assert html == "<p>&lt;script&gt;</p>"

    def test__markdown__is_converted(self) -> None:
        """Convert markdown fragments to HTML."""
        engine = TemplateEngine()

        html = engine.render_fragment("# {{ title }}\n\nSome *text*.", {"title": "Hello"}, markdown=True)

        assert "<h1>Hello</h1>" in html
        assert "<em>text</em>" in html

    def test__syntax_error__raises_template_error(self) -> None:
        """Broken templates raise a Jinja2 TemplateError."""
        engine = TemplateEngine()

        with pytest.raises(TemplateError):
            engine.render_fragment("{% if %}", {})

    def test__strict__undefined_raises(self) -> None:
        """Strict engines reject undefined variables."""
        engine = TemplateEngine(strict=True)

        with pytest.raises(UndefinedError):
            engine.render_fragment("{{ missing }}", {})

    def test__lenient__undefined_renders_empty(self) -> None:
        """Default engines render undefined variables as empty."""
        engine = TemplateEngine()

        assert engine.render_fragment("[{{ missing }}]", {}) == "[]"


class TestRenderLayout:
    """Tests for TemplateEngine.render_layout()."""

    def test__bundled_default_layout(self) -> None:
        """Render the bundled default layout."""
        engine = TemplateEngine()

        html = engine.render_layout(
            "default.html",
            {"page": {"title": "Home"}, "containers": {"main": "<p>hi</p>"}, "annotations": []},
        )

        assert "<title>Home</title>" in html

    def test__site_layout__overrides_bundled(self, tmp_path: Path) -> None:
        """Layouts in the site directory win over bundled ones."""
        (tmp_path / "default.html").write_text("<title>custom {{ page.title }}</title>")
        engine = TemplateEngine(tmp_path)

        html = engine.render_layout("default.html", {"page": {"title": "Home"}})

        assert html == "<title>custom Home</title>"

    def test__unknown_layout__raises(self, tmp_path: Path) -> None:
        """Unknown layouts raise TemplateNotFound."""
        engine = TemplateEngine(tmp_path)

        with pytest.raises(TemplateNotFound):
            engine.render_layout("missing.html", {})


class TestCheckLayout:
    """Tests for TemplateEngine.check_layout()."""

    def test__bundled_layout__passes(self) -> None:
        """Bundled layouts are always known."""
        TemplateEngine().check_layout("default.html")

    def test__unknown_layout__raises_value_error(self, tmp_path: Path) -> None:
        """Unknown layouts are reported by name."""
        engine = TemplateEngine(tmp_path)

        with pytest.raises(ValueError, match="Unknown layout 'nope.html'"):
            engine.check_layout("nope.html")

    def test__syntax_error__raises_value_error(self, tmp_path: Path) -> None:
        """Layouts that fail to compile are rejected."""
        (tmp_path / "broken.html").write_text("{% if %}")
        engine = TemplateEngine(tmp_path)

        with pytest.raises(ValueError, match="Invalid layout 'broken.html'"):
            engine.check_layout("broken.html")
