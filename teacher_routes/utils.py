"""
Shared utilities and helper functions for teacher routes.
"""

from flask import abort

from services.auth_state import get_auth_state
from services.queries import can_access_class, get_class, get_class_students, get_user_classes


def current_profile():
    return get_auth_state().profile


def get_authorized_class(class_id):
    """Load a class the current teacher may see, or abort with 404/403."""
    school_class = get_class(class_id)
    if school_class is None:
        abort(404)
    if not can_access_class(current_profile(), school_class):
        abort(403)
    return school_class


def class_choices(profile):
    return [(c.id, f"{c.name} - {c.subject}") for c in get_user_classes(profile)]


def student_choices(profile, class_id=None):
    """Students in the teacher's classes, optionally narrowed to one class."""
    choices = []
    for school_class in get_user_classes(profile):
        if class_id and school_class.id != class_id:
            continue
        for student in get_class_students(school_class.id):
            choices.append((student.id, f"{student.full_name} ({school_class.name})"))
    return choices
