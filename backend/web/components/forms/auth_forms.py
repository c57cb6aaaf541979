"""
Authentication forms: sign-in, sign-up and password reset.

Errors from a failed attempt are shown inline above the fields; the typed
email (and name) are kept so the user only re-enters the password.
"""

from typing import Optional

from ..base import Component
from .fields import SubmitButton, TextInputField


def _alert(message: Optional[str]) -> str:
    if not message:
        return ""
    return f'<div class="form-error" role="alert">{Component.escape(message)}</div>'


class LoginForm(Component):
    def __init__(self, *, error: Optional[str] = None, email: str = ""):
        self.error = error
        self.email = email

    def render(self) -> str:
        email = TextInputField("email", "Email", required=True)
        password = TextInputField("password", "Password", required=True)
        return (
            "<h1>Sign in</h1>"
            f"{_alert(self.error)}"
            '<form method="post" action="/auth/login" class="auth-form">'
            f'{email.render(value=self.email, input_type="email", autocomplete="email")}'
            f'{password.render(input_type="password", autocomplete="current-password")}'
            f'<div class="form-actions">{SubmitButton("Sign in").render()}</div>'
            "</form>"
            '<form method="post" action="/auth/oauth" class="auth-form auth-form--federated">'
            f'{SubmitButton("Continue with provider").render()}'
            "</form>"
            '<p><a href="/auth/signup">Create an account</a> · <a href="/auth/forgot">Forgot password?</a></p>'
        )


class SignupForm(Component):
    def __init__(self, *, error: Optional[str] = None, email: str = "", full_name: str = ""):
        self.error = error
        self.email = email
        self.full_name = full_name

    def render(self) -> str:
        name = TextInputField("full_name", "Full name")
        email = TextInputField("email", "Email", required=True)
        password = TextInputField("password", "Password", required=True, help_text="At least 6 characters.")
        return (
            "<h1>Create an account</h1>"
            f"{_alert(self.error)}"
            '<form method="post" action="/auth/signup" class="auth-form">'
            f'{name.render(value=self.full_name, autocomplete="name")}'
            f'{email.render(value=self.email, input_type="email", autocomplete="email")}'
            f'{password.render(input_type="password", autocomplete="new-password", minlength="6")}'
            f'<div class="form-actions">{SubmitButton("Sign up").render()}</div>'
            "</form>"
            '<p><a href="/auth/login">Already registered? Sign in</a></p>'
        )


class ForgotPasswordForm(Component):
    def __init__(self, *, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message
        self.error = error

    def render(self) -> str:
        notice = f'<p class="notice" role="status">{self.escape(self.message)}</p>' if self.message else ""
        email = TextInputField("email", "Email", required=True)
        return (
            "<h1>Reset your password</h1>"
            f"{notice}{_alert(self.error)}"
            '<form method="post" action="/auth/forgot" class="auth-form">'
            f'{email.render(input_type="email", autocomplete="email")}'
            f'<div class="form-actions">{SubmitButton("Send reset link").render()}</div>'
            "</form>"
            '<p><a href="/auth/login">Back to sign in</a></p>'
        )
