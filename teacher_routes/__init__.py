"""
Teacher Routes Package

Routes for teachers and head teachers, organised by functional area. Each
module keeps its own blueprint, nested under teacher_blueprint.
"""

from flask import Blueprint

# Create the main teacher blueprint
teacher_blueprint = Blueprint('teacher', __name__)

from . import (
    dashboard,
    progress,
    analytics,
)

teacher_blueprint.register_blueprint(dashboard.bp)
teacher_blueprint.register_blueprint(progress.bp)
teacher_blueprint.register_blueprint(analytics.bp)
