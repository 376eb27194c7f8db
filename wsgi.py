"""
WSGI entry point for the progress tracker, used by WSGI servers such as Gunicorn:

    gunicorn wsgi:application
"""

from app import create_app

# Configuration is chosen from FLASK_ENV; production unless told otherwise
application = create_app()
