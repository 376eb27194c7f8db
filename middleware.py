"""
Edge gate. Runs before every request and decides, from the session and the
role table alone, whether the request may reach its view:

    signed out, non-public path      -> /login?redirectedFrom=<path>
    signed in, /login or /signup     -> the dashboard for the profile's role
    role-guarded path, wrong role    -> /unauthorized
"""

from urllib.parse import urlencode

from flask import current_app, redirect, request
from flask_login import current_user

from permissions import (
    AUTH_PAGES,
    LOGIN_PATH,
    UNAUTHORIZED_PATH,
    dashboard_for_role,
    is_public_route,
    required_roles_for_path,
)
from services.auth_state import load_auth_state

SKIPPED_ENDPOINTS = ('static',)


def login_redirect(pathname):
    return redirect(f"{LOGIN_PATH}?{urlencode({'redirectedFrom': pathname})}")


def gate_request():
    """Returns a redirect response to short-circuit the request, or None."""
    if request.endpoint in SKIPPED_ENDPOINTS:
        return None

    pathname = request.path
    state = load_auth_state()

    if not state.is_authenticated and not is_public_route(pathname):
        return login_redirect(pathname)

    if state.is_authenticated and pathname in AUTH_PAGES:
        if state.profile and state.profile.role:
            return redirect(dashboard_for_role(state.profile.role))

    allowed_roles = required_roles_for_path(pathname)
    if allowed_roles is not None:
        if not state.is_authenticated:
            return login_redirect(pathname)
        role = state.profile.role if state.profile else None
        if state.error or role not in allowed_roles:
            current_app.logger.info(
                f"Edge gate: user {current_user.id} with role {role!r} denied {pathname}")
            return redirect(UNAUTHORIZED_PATH)

    return None


def register_edge_gate(app):
    app.before_request(gate_request)
