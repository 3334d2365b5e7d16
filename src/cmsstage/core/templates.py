"""Template rendering.

Wraps a Jinja2 environment for portlet fragments, page layouts and the
built-in error and editor pages. Markdown fragments are converted with
mistune after template evaluation.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import mistune
from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from cmsstage.assets import get_templates_dir


class TemplateEngine:
    """Renders template sources and named layouts against a data context.

    Layouts are looked up in ``layouts_dir`` first, then in the bundled
    templates shipped with the package.
    """

    def __init__(self, layouts_dir: Path | None = None, *, strict: bool = False) -> None:
        """Initialize engine.

        Args:
            layouts_dir: Directory with site layouts, searched before bundled templates
            strict: Raise on undefined template variables instead of rendering empty
        """
        search_path = [str(layouts_dir)] if layouts_dir is not None else []
        loader = ChoiceLoader(
            [
                FileSystemLoader(search_path),
                FileSystemLoader(str(get_templates_dir())),
            ]
        )
        options: dict[str, Any] = {}
        if strict:
            options["undefined"] = StrictUndefined
        self._env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "htm", "xml"], default_for_string=True),
            **options,
        )
        self._markdown = mistune.create_markdown(escape=False)

    def render_fragment(
        self,
        source: str,
        context: Mapping[str, Any],
        *,
        markdown: bool = False,
    ) -> Markup:
        """Render a portlet template source.

        Raises:
            jinja2.TemplateError: On syntax or evaluation errors
        """
        html = self._env.from_string(source).render(context)
        if markdown:
            html = str(self._markdown(html))
        return Markup(html)

    def render_layout(self, name: str, context: Mapping[str, Any]) -> str:
        """Render a named layout or bundled page.

        Raises:
            jinja2.TemplateNotFound: If no loader knows the layout
        """
        return self._env.get_template(name).render(context)

    def check_layout(self, name: str) -> None:
        """Ensure a layout exists and compiles.

        Raises:
            ValueError: If the layout is unknown or has a syntax error
        """
        try:
            self._env.get_template(name)
        except TemplateNotFound as e:
            raise ValueError(f"Unknown layout '{name}'") from e
        except TemplateSyntaxError as e:
            raise ValueError(f"Invalid layout '{name}': {e}") from e
