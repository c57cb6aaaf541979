"""
Form components for Lumen.
"""

from .fields import FormField, SubmitButton, TextInputField
from .auth_forms import ForgotPasswordForm, LoginForm, SignupForm

__all__ = [
    "FormField",
    "TextInputField",
    "SubmitButton",
    "LoginForm",
    "SignupForm",
    "ForgotPasswordForm",
]
