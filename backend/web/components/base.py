"""
Base Component Class for Lumen UI components.

Pages are rendered from small Python classes instead of a template engine.
Every component escapes user-provided text on output.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all UI components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[str]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a CSS class string, e.g. classes("nav-link", active=True)."""
        out = list(args)
        out.extend(key for key, value in conditionals.items() if value)
        return " ".join(out)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build HTML attributes from keyword arguments.

        A trailing underscore marks reserved names (class_ -> class); inner
        underscores become hyphens (aria_invalid -> aria-invalid). True renders
        a boolean attribute, None and False are omitted.
        """
        result = []
        for key, value in attrs.items():
            if key.endswith("_"):
                key = key[:-1]
            else:
                key = key.replace("_", "-")
            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')
        return " ".join(result)
