"""
Audit trail: sign-ins, sign-outs, profile changes, progress writes and
analytics refreshes, one ActivityLog row each.
"""

import json

from flask import current_app, has_request_context
from sqlalchemy.exc import SQLAlchemyError

from error_handler import get_client_info
from extensions import db
from models import ActivityLog


def _request_client():
    if not has_request_context():
        return None, None
    client = get_client_info()
    return client['ip_address'], client['user_agent']


def log_activity(user_id, action, details=None, ip_address=None, user_agent=None, success=True, error_message=None):
    """
    Record ``action`` for ``user_id``. Client address and agent default to the
    current request. The entry is committed with whatever the session already
    holds, so callers log after their own commit. A failed write rolls the
    session back, pending work included, and returns None.
    """
    request_ip, request_agent = _request_client()
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        details=json.dumps(details, default=str) if details else None,
        ip_address=ip_address or request_ip,
        user_agent=user_agent or request_agent,
        success=success,
        error_message=error_message,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Could not record '{action}' for user {user_id}: {e}")
        return None
    return entry


def get_user_activity_log(user_id=None, action=None, start_date=None, end_date=None, limit=100):
    """Newest entries first, optionally narrowed by user, action and time window."""
    filters = []
    if user_id:
        filters.append(ActivityLog.user_id == user_id)
    if action:
        filters.append(ActivityLog.action == action)
    if start_date:
        filters.append(ActivityLog.timestamp >= start_date)
    if end_date:
        filters.append(ActivityLog.timestamp <= end_date)
    return (ActivityLog.query.filter(*filters)
            .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all())
