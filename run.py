"""
Local development server for the progress tracker.

    FLASK_ENV=development python run.py
"""

from app import create_app
from config import DevelopmentConfig

app = create_app(config_class=DevelopmentConfig)

if __name__ == '__main__':
    app.run(debug=True, host='127.0.0.1', port=5000)
