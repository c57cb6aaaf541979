"""
Server-rendered components: attribute building, escaping and role-based
navigation.
"""
from __future__ import annotations

from backend.identity_access.domain import Profile, Role
from backend.web.components import Component, Layout, LoginForm, Navigation, SignupForm


def _profile(role: Role) -> Profile:
    return Profile(id="u1", email="jane.doe@example.com", display_name="jane.doe", role=role)


def test_attributes_handles_reserved_names_and_booleans():
    attrs = Component.attributes(class_="btn", for_="email", aria_invalid="true", disabled=True, hidden=False, title=None)
    assert attrs == 'class="btn" for="email" aria-invalid="true" disabled'


def test_escape_and_classes():
    assert Component.escape("<b>") == "&lt;b&gt;"
    assert Component.escape(None) == ""
    assert Component.classes("nav-link", active=True, muted=False) == "nav-link active"


def test_navigation_shows_only_reachable_dashboards():
    assert [h for h, _ in Navigation.visible_items(Role.STUDENT)] == ["/student/dashboard"]
    assert [h for h, _ in Navigation.visible_items(Role.STAFF)] == ["/student/dashboard", "/staff/dashboard"]
    assert len(Navigation.visible_items(Role.ADMIN)) == 3


def test_navigation_marks_active_link_and_offers_sign_out():
    html = Navigation(_profile(Role.STAFF), "/staff/dashboard").render()
    assert 'aria-current="page"' in html
    assert 'action="/auth/logout"' in html
    assert "/admin/dashboard" not in html


def test_anonymous_navigation_links_to_sign_in():
    html = Navigation(None).render()
    assert 'href="/auth/login"' in html
    assert "/auth/logout" not in html


def test_login_form_escapes_error_and_keeps_email():
    html = LoginForm(error="<script>x</script>", email="a@b.example").render()
    assert "<script>x</script>" not in html
    assert 'role="alert"' in html
    assert 'value="a@b.example"' in html


def test_password_is_never_echoed():
    html = SignupForm(email="a@b.example", full_name="A").render()
    assert 'type="password"' in html
    password_input = html.split('id="password"', 1)[1].split(">", 1)[0]
    assert "value=" not in password_input


def test_layout_adds_refresh_for_loading_pages():
    html = Layout("Loading", "<p>wait</p>", refresh=1).render()
    assert '<meta http-equiv="refresh" content="1">' in html
    assert "<title>Loading - Lumen</title>" in html
