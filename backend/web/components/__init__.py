# Lumen component system
# Pure Python components for server-rendered HTML

from .base import Component
from .layout import Layout
from .navigation import Navigation
from .forms import FormField, TextInputField, SubmitButton, LoginForm, SignupForm, ForgotPasswordForm

__all__ = [
    "Component",
    "Layout",
    "Navigation",
    "FormField",
    "TextInputField",
    "SubmitButton",
    "LoginForm",
    "SignupForm",
    "ForgotPasswordForm",
]
