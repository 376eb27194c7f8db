"""
JSON endpoints. /api/auth/* is public; everything else goes through the
edge gate like any page and is scoped to the caller's profile.
"""

from flask import Blueprint, jsonify, request, current_app, abort
from pymongo.errors import PyMongoError

from decorators import profile_required, teacher_required
from services.analytics import get_class_analytics, get_student_analytics, serialize_document
from services.auth_state import get_auth_state, require_auth
from services.queries import check_user_permission, get_class, get_progress

api_blueprint = Blueprint('api', __name__)


@api_blueprint.route('/auth/session')
def auth_session():
    """Current auth state: user, profile, session facts and any profile error."""
    return jsonify(get_auth_state().to_dict())


@api_blueprint.route('/progress')
@profile_required
def progress_list():
    user, profile, error = require_auth()
    if error:
        return jsonify({'success': False, 'error': error}), 403
    records = get_progress(
        class_id=request.args.get('class_id', type=int),
        student_id=request.args.get('student_id', type=int),
        date_from=request.args.get('from') or None,
        date_to=request.args.get('to') or None,
        profile=profile,
    )
    return jsonify({'success': True, 'progress': [r.to_dict() for r in records]})


@api_blueprint.route('/analytics/classes/<int:class_id>')
@teacher_required
def class_analytics(class_id):
    profile = get_auth_state().profile
    if not check_user_permission('class', class_id, profile=profile):
        abort(403)
    school_class = get_class(class_id)
    try:
        documents = get_class_analytics(school_class.school_id, class_id)
        students = get_student_analytics(school_class.school_id, class_id=class_id)
    except PyMongoError as e:
        current_app.logger.error(f"Could not load analytics for class {class_id}: {e}")
        return jsonify({'success': False, 'error': 'Analytics unavailable'}), 503
    return jsonify({
        'success': True,
        'class': serialize_document(documents[0]) if documents else None,
        'students': [serialize_document(d) for d in students],
    })
