# Core Flask imports
from flask import Blueprint, render_template, request, flash, redirect, url_for, current_app
from flask_login import current_user
from pymongo.errors import PyMongoError

# Database imports
from extensions import db

# Authentication and decorators
from decorators import head_teacher_required

# Application imports
from error_handler import AppError
from permissions import ROLES, ROLE_LABELS, TEACHING_ROLES
from services.activity_log import log_activity
from services.analytics import get_class_analytics, get_school_analytics, refresh_school_analytics
from services.auth_state import get_auth_state
from services.queries import assign_teacher, get_class_students, get_progress, get_school, get_school_members, \
    get_user_classes

head_teacher_blueprint = Blueprint('head_teacher', __name__)


def _school_profile():
    return get_auth_state().profile


@head_teacher_blueprint.route('/')
@head_teacher_blueprint.route('')
@head_teacher_required
def overview():
    """School overview: classes, staff, recent progress and stored school analytics."""
    profile = _school_profile()
    school = get_school(profile.school_id)
    classes = get_user_classes(profile)
    teachers = [m for m in get_school_members(profile.school_id) if m.role in TEACHING_ROLES]

    school_analytics = None
    class_analytics = {}
    try:
        school_analytics = get_school_analytics(profile.school_id)
        for document in get_class_analytics(profile.school_id):
            class_analytics.setdefault(document['class_id'], document)
    except PyMongoError as e:
        current_app.logger.error(f"Could not load analytics for school {profile.school_id}: {e}")

    return render_template('head_teacher/dashboard.html',
                           profile=profile,
                           school=school,
                           classes=classes,
                           teachers=teachers,
                           student_counts={c.id: len(get_class_students(c.id)) for c in classes},
                           recent=get_progress(limit=20, profile=profile),
                           school_analytics=school_analytics,
                           class_analytics=class_analytics)


@head_teacher_blueprint.route('/analytics/refresh', methods=['POST'])
@head_teacher_required
def refresh_analytics():
    profile = _school_profile()
    document = refresh_school_analytics(profile.school_id)
    if document is None:
        flash('Analytics are unavailable right now. Please try again later.', 'warning')
    else:
        log_activity(current_user.id, 'analytics_refreshed', {'school_id': profile.school_id})
        flash('School analytics refreshed.', 'success')
    return redirect(url_for('head_teacher.overview'))


@head_teacher_blueprint.route('/members')
@head_teacher_required
def members():
    """Everyone in the head teacher's school, optionally filtered by role."""
    profile = _school_profile()
    role = request.args.get('role')
    if role not in ROLES:
        role = None
    return render_template('head_teacher/members.html',
                           profile=profile,
                           members=get_school_members(profile.school_id, role=role),
                           selected_role=role,
                           role_choices=[(r, ROLE_LABELS[r]) for r in ROLES])


@head_teacher_blueprint.route('/classes/<int:class_id>/teacher', methods=['POST'])
@head_teacher_required
def set_class_teacher(class_id):
    profile = _school_profile()
    teacher_id = request.form.get('teacher_id', type=int)
    try:
        school_class = assign_teacher(class_id, teacher_id, profile=profile)
    except AppError as e:
        db.session.rollback()
        flash(e.message, 'danger')
    else:
        log_activity(current_user.id, 'teacher_assigned', {'class_id': class_id, 'teacher_id': teacher_id})
        flash(f'Teacher updated for {school_class.name}.', 'success')
    return redirect(url_for('head_teacher.overview'))
