"""
Per-request authentication state.

Pages and guards never read current_user and the profile table separately;
they ask for the AuthState, which bundles the signed-in user, their profile
and a few facts about the session. The state is built lazily once per
request and rebuilt when Flask-Login reports a sign-in or sign-out.
"""

from datetime import datetime

from flask import current_app, g, session
from flask_login import current_user, login_user, logout_user, user_logged_in, user_logged_out
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from models import User, UserProfile
from services.activity_log import log_activity
from services.rls import apply_rls_context

SESSION_SIGNED_IN_AT = 'signed_in_at'
SESSION_REMEMBER = 'remember'

INVALID_CREDENTIALS = 'Invalid login credentials'
ALREADY_REGISTERED = 'User already registered'
NOT_AUTHENTICATED = 'Not authenticated'
PROFILE_NOT_FOUND = 'Profile not found'
INSUFFICIENT_PERMISSIONS = 'Insufficient permissions'
PROFILE_FETCH_FAILED = 'Failed to fetch profile'


class AuthState:
    """Snapshot of who is asking. ``loading`` is always False server-side."""

    def __init__(self, user=None, profile=None, session=None, error=None):
        self.user = user
        self.profile = profile
        self.session = session
        self.loading = False
        self.error = error

    @property
    def is_authenticated(self):
        return self.user is not None

    @property
    def role(self):
        return self.profile.role if self.profile else None

    def to_dict(self):
        profile = None
        if self.profile:
            profile = {
                'id': self.profile.id,
                'school_id': self.profile.school_id,
                'role': self.profile.role,
                'full_name': self.profile.full_name,
                'email': self.profile.email,
                'class_id': self.profile.class_id,
                'subject': self.profile.subject,
            }
        return {
            'user': {'id': self.user.id, 'email': self.user.email} if self.user else None,
            'profile': profile,
            'session': self.session,
            'loading': self.loading,
            'error': self.error,
        }

    def __repr__(self):
        return f"AuthState(user={self.user!r}, role={self.role!r}, error={self.error!r})"


def fetch_user_profile(user_id):
    """Return (profile, error). A missing profile is not an error."""
    try:
        return db.session.get(UserProfile, user_id), None
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching user profile {user_id}: {e}")
        return None, PROFILE_FETCH_FAILED


def load_auth_state():
    """Build the state for the current request and cache it on ``g``."""
    if not current_user or not current_user.is_authenticated:
        apply_rls_context(None)
        state = AuthState()
    else:
        # user_profiles rows are only visible once the RLS user is bound
        apply_rls_context(current_user.id)
        profile, error = fetch_user_profile(current_user.id)
        session_info = {
            'user_id': current_user.id,
            'signed_in_at': session.get(SESSION_SIGNED_IN_AT),
            'remember': session.get(SESSION_REMEMBER, False),
        }
        state = AuthState(user=current_user._get_current_object(), profile=profile,
                          session=session_info, error=error)
    g.auth_state = state
    return state


def get_auth_state():
    if 'auth_state' not in g:
        return load_auth_state()
    return g.auth_state


def refresh_profile():
    """Re-read the profile of the signed-in user."""
    g.pop('auth_state', None)
    return load_auth_state()


def normalize_email(email):
    return (email or '').strip().lower()


def sign_in(email, password, remember=False):
    """Check credentials and start a session. Returns (user, error)."""
    email = normalize_email(email)
    user = User.query.filter_by(email=email).first()
    if not user or not password or not check_password_hash(user.password_hash, password):
        log_activity(
            user_id=None,
            action='login_failed',
            details={'email': email, 'reason': 'invalid_credentials'},
            success=False,
            error_message=INVALID_CREDENTIALS,
        )
        return None, INVALID_CREDENTIALS

    apply_rls_context(user.id)
    user.login_count += 1
    user.last_sign_in_at = datetime.utcnow()
    db.session.commit()

    session[SESSION_SIGNED_IN_AT] = user.last_sign_in_at.isoformat()
    session[SESSION_REMEMBER] = bool(remember)
    login_user(user, remember=bool(remember))
    return user, None


def sign_up(email, password, profile_data=None):
    """
    Register a new account. The profile is created alongside it when
    ``profile_data`` carries a school, role and name; otherwise the account
    waits for a profile to be set up. Returns (user, error).
    """
    from services.queries import create_user_profile

    email = normalize_email(email)
    if User.query.filter_by(email=email).first():
        return None, ALREADY_REGISTERED

    user = User(email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    db.session.flush()
    # The new profile row must pass the profiles_insert policy as its own user
    apply_rls_context(user.id)

    profile_data = profile_data or {}
    if profile_data.get('full_name') and profile_data.get('school_id') and profile_data.get('role'):
        create_user_profile(user, profile_data, commit=False)

    db.session.commit()
    log_activity(
        user_id=user.id,
        action='signup',
        details={'role': profile_data.get('role'), 'school_id': profile_data.get('school_id')},
    )
    current_app.logger.info(f"New account registered: {email}")
    return user, None


def sign_out():
    logout_user()
    session.pop(SESSION_SIGNED_IN_AT, None)
    session.pop(SESSION_REMEMBER, None)


def require_auth():
    """Return (user, profile, error) for the current request."""
    state = get_auth_state()
    if not state.is_authenticated:
        return None, None, NOT_AUTHENTICATED
    return state.user, state.profile, state.error


def require_role(allowed_roles):
    """Like require_auth, but also insists the profile's role is allowed."""
    user, profile, error = require_auth()
    if error or not profile:
        return user, profile, error or PROFILE_NOT_FOUND
    if profile.role not in allowed_roles:
        return None, None, INSUFFICIENT_PERMISSIONS
    return user, profile, None


def _on_signed_in(sender, user, **extra):
    g.pop('auth_state', None)
    log_activity(
        user_id=user.id,
        action='login',
        details={'role': user.role, 'login_count': user.login_count},
    )
    current_app.logger.info(f"SIGNED_IN user={user.id}")


def _on_signed_out(sender, user, **extra):
    g.pop('auth_state', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        log_activity(user_id=user.id, action='logout', details={'role': user.role})
        current_app.logger.info(f"SIGNED_OUT user={user.id}")


def init_auth_state(app):
    user_logged_in.connect(_on_signed_in, app)
    user_logged_out.connect(_on_signed_out, app)

    @app.context_processor
    def inject_auth_state():
        return {'auth': get_auth_state()}
