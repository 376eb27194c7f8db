import logging
import os

from flask import Flask
from flask.logging import default_handler

from config import ProductionConfig, DevelopmentConfig, TestingConfig

# Import extensions to avoid circular imports
from extensions import db, migrate, login_manager, csrf

# Import models here so they are registered before create_all and migrations
from models import User

from decorators import role_guard
from error_handler import register_error_handlers
from middleware import register_edge_gate
from permissions import ROLE_LABELS
from services.analytics import init_mongo
from services.auth_state import init_auth_state
from services.rls import init_rls

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'


def configure_logging(app):
    """Format Flask's stderr handler and apply the configured LOG_LEVEL."""
    default_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))


def create_app(config_class=None, mongo_client=None):
    """
    Factory function to create the Flask application.
    Automatically selects configuration based on environment.
    """
    if config_class is None:
        # Auto-detect environment and select appropriate config
        env = os.environ.get('FLASK_ENV', 'production').lower()
        if env == 'development':
            config_class = DevelopmentConfig
        elif env == 'testing':
            config_class = TestingConfig
        else:
            config_class = ProductionConfig  # Default to production for security

    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    init_rls(app)
    init_mongo(app, mongo_client)
    init_auth_state(app)

    # Production schemas come from migrations; local and test databases are created directly
    if app.config.get('DEBUG') or app.config.get('TESTING'):
        with app.app_context():
            if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') \
                    and ':memory:' not in app.config['SQLALCHEMY_DATABASE_URI']:
                os.makedirs(app.instance_path, exist_ok=True)
            db.create_all()
            app.logger.debug("Database tables created")

    # User loader function for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Import and register blueprints
    from authroutes import auth_blueprint
    from studentroutes import student_blueprint
    from teacher_routes import teacher_blueprint
    from headteacherroutes import head_teacher_blueprint
    from apiroutes import api_blueprint

    app.register_blueprint(auth_blueprint)
    app.register_blueprint(student_blueprint, url_prefix='/student')
    app.register_blueprint(teacher_blueprint, url_prefix='/teacher')
    app.register_blueprint(head_teacher_blueprint, url_prefix='/head-teacher')
    app.register_blueprint(api_blueprint, url_prefix='/api')

    register_edge_gate(app)
    register_error_handlers(app)

    # Custom template filters
    @app.template_filter('role_label')
    def role_label_filter(role):
        """Display name for a role ('head_teacher' -> 'Head Teacher')."""
        return ROLE_LABELS.get(role, role or 'Unknown')

    @app.template_filter('percentage')
    def percentage_filter(value):
        if value is None:
            return '-'
        return f"{value:.1f}%"

    app.jinja_env.globals['role_guard'] = role_guard

    @app.after_request
    def add_security_headers(response):
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "script-src 'self' https://cdn.jsdelivr.net; "
            "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "img-src 'self' data:; "
            "font-src 'self' https://cdn.jsdelivr.net"
        )
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        return response

    app.logger.info(f"Application created with {config_class.__name__}")
    return app
