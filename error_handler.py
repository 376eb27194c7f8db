"""
Error types and handlers for the progress tracker.

Query helpers raise the AppError family; routes let them propagate and the
handlers registered here turn them into a JSON body for /api/ requests or a
flash message and redirect for pages.
"""

import traceback
from urllib.parse import urlsplit

from flask import flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from extensions import db


class AppError(Exception):
    """Base class for errors the application reports to the user."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = 404


class PermissionDeniedError(AppError):
    status_code = 403


class ValidationError(AppError):
    status_code = 422


def wants_json():
    return request.path.startswith('/api/') or request.is_json


def local_referrer(default_endpoint='auth.home'):
    """The Referer when it points back at this host, else ``default_endpoint``."""
    referrer = request.referrer
    if referrer:
        parts = urlsplit(referrer)
        if parts.scheme in ('http', 'https') and parts.netloc == request.host:
            return referrer
    return url_for(default_endpoint)


def get_client_info():
    """Extract client information from the request."""
    return {
        'user_agent': request.headers.get('User-Agent', 'Unknown'),
        'ip_address': request.environ.get('HTTP_X_FORWARDED_FOR', request.remote_addr or 'Unknown'),
    }


def log_application_error(logger, error, context=None):
    """Log an unexpected error with request context and traceback."""
    user_id = current_user.id if current_user and current_user.is_authenticated else None
    client = get_client_info()
    message = f"{type(error).__name__}: {error}"
    if context:
        message = f"{message} | Context: {context}"
    logger.error(
        "%s | user=%s url=%s method=%s ip=%s",
        message, user_id, request.url, request.method, client['ip_address'],
    )
    logger.error("Traceback: %s", traceback.format_exc())


def register_error_handlers(app):
    """Attach the error handlers to ``app``."""

    @app.errorhandler(AppError)
    def handle_app_error(error):
        db.session.rollback()
        app.logger.warning(f"{type(error).__name__} on {request.path}: {error.message}")
        if wants_json():
            return jsonify({'success': False, 'error': error.message}), error.status_code
        flash(error.message, 'danger')
        return redirect(local_referrer())

    @app.errorhandler(401)
    def unauthorized_error(error):
        """Handle 401 Unauthorized errors by redirecting to login page."""
        if wants_json():
            return jsonify({'success': False, 'error': 'Not authenticated'}), 401
        flash('Please log in to access this page.', 'warning')
        return redirect(url_for('auth.login', redirectedFrom=request.path))

    @app.errorhandler(403)
    def forbidden_error(error):
        if wants_json():
            return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403
        return render_template('shared/error.html',
                               error_code=403,
                               error_message="You don't have permission to access this resource."), 403

    @app.errorhandler(404)
    def not_found_error(error):
        if wants_json():
            return jsonify({'success': False, 'error': 'Not found'}), 404
        return render_template('shared/error.html',
                               error_code=404,
                               error_message="The page you're looking for doesn't exist."), 404

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        flash('CSRF token missing or invalid. Please try again.', 'danger')
        return redirect(request.url or url_for('auth.home'))

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        log_application_error(app.logger, getattr(error, 'original_exception', None) or error)
        if wants_json():
            return jsonify({'success': False, 'error': 'Internal server error'}), 500
        return render_template('shared/error.html',
                               error_code=500,
                               error_message="An internal server error occurred. Please try again later."), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        log_application_error(app.logger, error)
        if wants_json():
            return jsonify({'success': False, 'error': 'An unexpected error occurred'}), 500
        return render_template('shared/error.html',
                               error_code=500,
                               error_message="An unexpected error occurred. Please try again later."), 500
