"""
Layout component for Lumen.

Wraps pre-rendered page content into a complete HTML document with the
role-based navigation.
"""

from typing import Optional

from backend.identity_access.domain import Profile

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        profile: Optional[Profile] = None,
        show_nav: bool = True,
        current_path: str = "/",
        refresh: Optional[int] = None,
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            profile: Signed-in user's profile, if resolved
            show_nav: Whether to render the navigation bar
            current_path: Current URL path for active link highlighting
            refresh: Seconds until the browser reloads the page (loading states)
        """
        self.title = title
        self.content = content
        self.profile = profile
        self.show_nav = show_nav
        self.current_path = current_path
        self.refresh = refresh

    def render(self) -> str:
        nav_html = Navigation(self.profile, self.current_path).render() if self.show_nav else ""
        return (
            '<!DOCTYPE html><html lang="en"><head>'
            f"{self._render_head()}"
            "</head><body>"
            '<a href="#main-content" class="skip-link">Skip to main content</a>'
            f"{nav_html}"
            '<div id="live-region" class="sr-only" role="status" aria-live="polite" aria-atomic="true"></div>'
            f'<main id="main-content" class="main-content">{self.content}</main>'
            "</body></html>"
        )

    def _render_head(self) -> str:
        refresh = f'<meta http-equiv="refresh" content="{int(self.refresh)}">' if self.refresh else ""
        return (
            '<meta charset="UTF-8">'
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
            f"{refresh}"
            f"<title>{self.escape(self.title)} - Lumen</title>"
        )
