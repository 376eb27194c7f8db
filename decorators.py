from functools import wraps
from flask import jsonify, redirect, render_template, request, url_for, current_app
from flask_login import current_user

from error_handler import wants_json
from permissions import HEAD_TEACHER, STUDENT, TEACHING_ROLES, UNAUTHORIZED_PATH, is_authorized_for_route
from services.auth_state import get_auth_state


def role_required(*roles, fallback_endpoint='auth.login'):
    """
    Restricts a view to profiles holding one of ``roles``.

    Signed-out users go to ``fallback_endpoint``; signed-in users without a
    profile see the profile-pending page; any other role goes to /unauthorized.
    """
    allowed = frozenset(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                if wants_json():
                    return jsonify({'success': False, 'error': 'Not authenticated'}), 401
                return redirect(url_for(fallback_endpoint, redirectedFrom=request.path))
            state = get_auth_state()
            if state.profile is None:
                if state.error:
                    current_app.logger.error(f"Auth error for user {current_user.id}: {state.error}")
                if wants_json():
                    return jsonify({'success': False, 'error': state.error or 'Profile not found'}), 403
                return render_template('shared/profile_pending.html', error=state.error), 403
            if allowed and state.profile.role not in allowed:
                current_app.logger.info(
                    f"Role '{state.profile.role}' denied on {request.path} (allowed: {sorted(allowed)})")
                if wants_json():
                    return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403
                return redirect(UNAUTHORIZED_PATH)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def profile_required(f):
    """Any signed-in user with a profile, whatever the role."""
    return role_required()(f)


def student_required(f):
    """Restricts access to students."""
    return role_required(STUDENT)(f)


def teacher_required(f):
    """Restricts access to teachers and head teachers."""
    return role_required(*TEACHING_ROLES)(f)


def head_teacher_required(f):
    """Restricts access to head teachers."""
    return role_required(HEAD_TEACHER)(f)


def route_guard(f):
    """Re-checks the route table for the request path and renders Access Denied on failure."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        state = get_auth_state()
        if not state.profile or not is_authorized_for_route(state.profile.role, request.path):
            return render_template('shared/access_denied.html'), 403
        return f(*args, **kwargs)
    return decorated_function


def role_guard(*roles):
    """Template helper: does the current profile hold one of ``roles``?"""
    state = get_auth_state()
    return state.profile is not None and state.profile.role in roles
