"""
Teacher dashboard and class views.
"""

from flask import Blueprint, render_template, request, current_app
from pymongo.errors import PyMongoError

from decorators import route_guard, teacher_required
from permissions import get_role_permissions
from services.analytics import get_class_analytics, get_student_analytics
from services.queries import get_class_students, get_progress, get_user_classes
from .utils import current_profile, get_authorized_class

bp = Blueprint('dashboard', __name__)

RECENT_PROGRESS_LIMIT = 20


@bp.route('/')
@bp.route('')
@teacher_required
@route_guard
def teacher_dashboard():
    """Classes the teacher can see and the latest progress across them."""
    profile = current_profile()
    classes = get_user_classes(profile)
    recent = get_progress(limit=RECENT_PROGRESS_LIMIT, profile=profile)
    student_counts = {c.id: len(get_class_students(c.id)) for c in classes}
    return render_template('teacher/dashboard.html',
                           profile=profile,
                           permissions=get_role_permissions(profile.role),
                           classes=classes,
                           student_counts=student_counts,
                           recent=recent)


@bp.route('/classes/<int:class_id>')
@teacher_required
def class_detail(class_id):
    """Students, progress and stored analytics for one class."""
    profile = current_profile()
    school_class = get_authorized_class(class_id)
    students = get_class_students(class_id)
    records = get_progress(
        class_id=class_id,
        student_id=request.args.get('student_id', type=int),
        date_from=request.args.get('from') or None,
        date_to=request.args.get('to') or None,
        profile=profile,
    )

    class_analytics = None
    student_analytics = {}
    try:
        documents = get_class_analytics(school_class.school_id, class_id)
        class_analytics = documents[0] if documents else None
        for document in get_student_analytics(school_class.school_id, class_id=class_id):
            student_analytics.setdefault(document['student_id'], document)
    except PyMongoError as e:
        current_app.logger.error(f"Could not load analytics for class {class_id}: {e}")

    return render_template('teacher/class_detail.html',
                           profile=profile,
                           school_class=school_class,
                           students=students,
                           records=records,
                           class_analytics=class_analytics,
                           student_analytics=student_analytics)
