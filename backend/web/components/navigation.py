"""
Navigation component for Lumen.

Role-based top navigation: anonymous visitors see sign-in links, signed-in
users see the dashboards their role may open plus a sign-out button.
"""

from typing import List, Optional, Tuple

from backend.identity_access.domain import ADMIN_AREA, STAFF_AREA, STUDENT_AREA, Profile, Role

from .base import Component

# (href, label, roles allowed to see the link)
NAV_ITEMS: List[Tuple[str, str, frozenset]] = [
    ("/student/dashboard", "My learning", STUDENT_AREA),
    ("/staff/dashboard", "Staff", STAFF_AREA),
    ("/admin/dashboard", "Administration", ADMIN_AREA),
]


class Navigation(Component):
    def __init__(self, profile: Optional[Profile] = None, current_path: str = "/"):
        self.profile = profile
        self.current_path = current_path or "/"

    def render(self) -> str:
        if self.profile is None:
            return self._render_public_nav()
        links = [self._render_link(href, label) for href, label in self.visible_items(self.profile.role)]
        return (
            '<nav class="site-nav" aria-label="Main">'
            '<a class="brand" href="/">Lumen</a>'
            f'<ul class="nav-links">{"".join(links)}</ul>'
            f'<span class="nav-user">{self.escape(self.profile.display_name)}</span>'
            '<form method="post" action="/auth/logout" class="nav-logout">'
            '<button type="submit">Sign out</button></form>'
            "</nav>"
        )

    @staticmethod
    def visible_items(role: Role) -> List[Tuple[str, str]]:
        return [(href, label) for href, label, roles in NAV_ITEMS if role in roles]

    def _render_link(self, href: str, label: str) -> str:
        active = self.current_path == href or self.current_path.startswith(href + "/")
        attrs = self.attributes(
            href=href,
            class_=self.classes("nav-link", active=active),
            aria_current="page" if active else None,
        )
        return f"<li><a {attrs}>{self.escape(label)}</a></li>"

    def _render_public_nav(self) -> str:
        return (
            '<nav class="site-nav" aria-label="Main">'
            '<a class="brand" href="/">Lumen</a>'
            '<ul class="nav-links">'
            f'{self._render_link("/auth/login", "Sign in")}'
            f'{self._render_link("/auth/signup", "Create an account")}'
            "</ul></nav>"
        )
