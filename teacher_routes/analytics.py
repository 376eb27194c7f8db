"""
Class analytics: recompute the MongoDB documents for a class on demand.
"""

from flask import Blueprint, redirect, url_for, flash, current_app
from flask_login import current_user

from decorators import teacher_required
from services.activity_log import log_activity
from services.analytics import refresh_class_analytics
from .utils import get_authorized_class

bp = Blueprint('analytics', __name__)


@bp.route('/classes/<int:class_id>/analytics/refresh', methods=['POST'])
@teacher_required
def refresh_class(class_id):
    school_class = get_authorized_class(class_id)
    document = refresh_class_analytics(school_class.id)
    if document is None:
        flash('Analytics are unavailable right now. Please try again later.', 'warning')
    else:
        log_activity(current_user.id, 'analytics_refreshed', {'class_id': class_id})
        current_app.logger.info(f"Analytics refreshed for class {class_id} by user {current_user.id}")
        flash(f'Analytics for {school_class.name} refreshed.', 'success')
    return redirect(url_for('teacher.dashboard.class_detail', class_id=class_id))
