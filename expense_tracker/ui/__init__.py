from .auth_page import AuthForm, get_auth_form, render_auth_page
from .dashboard import DashboardController, DashboardUI, get_dashboard_ui, render_dashboard

__all__ = [
    "AuthForm",
    "DashboardController",
    "DashboardUI",
    "get_auth_form",
    "get_dashboard_ui",
    "render_auth_page",
    "render_dashboard",
]
