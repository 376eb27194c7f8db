#!/usr/bin/env python3
"""
Analytics Maintenance Script
============================

Recomputes the MongoDB analytics documents and prunes stale ones. Meant to
be run from cron.

Usage:
    python analytics_maintenance.py refresh [school_id]
    python analytics_maintenance.py cleanup [days_to_keep]
"""

import sys

from pymongo.errors import PyMongoError

from app import create_app
from models import School
from services.analytics import cleanup_old_analytics, refresh_school_analytics


def refresh(school_id=None, app=None):
    """Refresh one school, or every school when ``school_id`` is None."""
    app = app or create_app()

    with app.app_context():
        if school_id is None:
            school_ids = [school.id for school in School.query.order_by(School.id).all()]
        else:
            school_ids = [school_id]

        refreshed = 0
        for sid in school_ids:
            if refresh_school_analytics(sid) is None:
                print(f"School {sid}: not refreshed (missing school or document store unavailable)")
            else:
                refreshed += 1
                print(f"School {sid}: refreshed")
        app.logger.info(f"Analytics refresh finished: {refreshed}/{len(school_ids)} schools")
        return refreshed


def cleanup(days_to_keep=None, app=None):
    app = app or create_app()

    with app.app_context():
        try:
            result = cleanup_old_analytics(days_to_keep)
        except PyMongoError as e:
            print(f"Error cleaning up analytics: {e}")
            return None
        for collection, deleted in result.items():
            print(f"{collection}: {deleted}")
        return result


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(__doc__)
        return

    command = args.pop(0).lower()
    if command == 'refresh':
        refresh(int(args[0]) if args else None)
    elif command == 'cleanup':
        cleanup(int(args[0]) if args else None)
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == '__main__':
    main()
