"""
Services package for the progress tracker.
Contains business logic that is separate from routes and models.
"""

from .activity_log import log_activity, get_user_activity_log
from .auth_state import AuthState, get_auth_state, sign_in, sign_out, sign_up
from .queries import (
    check_user_permission,
    create_progress,
    delete_progress,
    get_class_students,
    get_progress,
    get_user_classes,
    update_progress,
)
from .analytics import (
    cleanup_old_analytics,
    get_class_analytics,
    get_school_analytics,
    get_student_analytics,
    save_class_analytics,
    save_school_analytics,
    save_student_analytics,
)

__all__ = [
    'log_activity',
    'get_user_activity_log',
    'AuthState',
    'get_auth_state',
    'sign_in',
    'sign_out',
    'sign_up',
    'check_user_permission',
    'create_progress',
    'delete_progress',
    'get_class_students',
    'get_progress',
    'get_user_classes',
    'update_progress',
    'cleanup_old_analytics',
    'get_class_analytics',
    'get_school_analytics',
    'get_student_analytics',
    'save_class_analytics',
    'save_school_analytics',
    'save_student_analytics',
]
