# Core Flask imports
from flask import Blueprint, render_template, request, current_app
from pymongo.errors import PyMongoError

# Authentication and decorators
from decorators import route_guard, student_required

# Application imports
from services.analytics import get_student_analytics
from services.auth_state import get_auth_state
from services.queries import get_progress, get_user_classes

student_blueprint = Blueprint('student', __name__)


def summarize_progress(records):
    """Average percentage and best result for a list of progress records."""
    if not records:
        return {'count': 0, 'average': None, 'best': None}
    percentages = [r.percentage for r in records]
    return {
        'count': len(records),
        'average': round(sum(percentages) / len(percentages), 2),
        'best': max(records, key=lambda r: r.percentage),
    }


@student_blueprint.route('/dashboard')
@student_blueprint.route('')
@student_required
@route_guard
def student_dashboard():
    profile = get_auth_state().profile
    records = get_progress(
        student_id=profile.id,
        date_from=request.args.get('from') or None,
        date_to=request.args.get('to') or None,
    )

    analytics = None
    try:
        documents = get_student_analytics(profile.school_id, class_id=profile.class_id, student_id=profile.id)
        analytics = documents[0] if documents else None
    except PyMongoError as e:
        current_app.logger.error(f"Could not load analytics for student {profile.id}: {e}")

    return render_template('student/dashboard.html',
                           profile=profile,
                           classes=get_user_classes(profile),
                           records=records,
                           summary=summarize_progress(records),
                           analytics=analytics)
