#!/usr/bin/env python3
"""
Admin User Manager Script
=========================

Sets up schools, classes and accounts from the command line, for first-time
installs and support work.

Usage:
    python admin_user_manager.py list
    python admin_user_manager.py create-school <name> [address]
    python admin_user_manager.py create-class <school_id> <name> <subject> [teacher_id]
    python admin_user_manager.py create-user <email> <password> <role> <school_id> <full_name> [class_id] [subject]
    python admin_user_manager.py reset-password <email> <new_password>
"""

import sys
import traceback

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from app import create_app
from error_handler import AppError
from extensions import db
from models import School, SchoolClass, User
from permissions import ROLES
from services.auth_state import normalize_email
from services.queries import create_class, create_school, create_user_profile


def list_users(app=None):
    """List schools, their classes and every account with its profile."""
    app = app or create_app()

    with app.app_context():
        schools = School.query.order_by(School.id).all()
        print("=" * 80)
        print(f"SCHOOLS ({len(schools)})")
        print("=" * 80)
        for school in schools:
            print(f"{school.id}. {school.name}")
            for school_class in SchoolClass.query.filter_by(school_id=school.id).order_by(SchoolClass.name):
                teacher = school_class.teacher.full_name if school_class.teacher else 'unassigned'
                print(f"   class {school_class.id}: {school_class.name} ({school_class.subject}) - {teacher}")

        users = User.query.order_by(User.id).all()
        print("=" * 80)
        print(f"USERS ({len(users)})")
        print("=" * 80)
        for user in users:
            profile = user.profile
            if profile:
                print(f"{user.id}. {user.email} | {profile.role_label} | {profile.full_name} "
                      f"| school {profile.school_id} | class {profile.class_id or '-'}")
            else:
                print(f"{user.id}. {user.email} | no profile")
            print(f"   Logins: {user.login_count}, last: {user.last_sign_in_at or 'never'}")
        return users


def add_school(name, address=None, app=None):
    app = app or create_app()

    with app.app_context():
        try:
            school = create_school(name, address)
        except SQLAlchemyError as e:
            db.session.rollback()
            print(f"Error creating school: {e}")
            return None
        print(f"School '{school.name}' created with id {school.id}")
        return school.id


def add_class(school_id, name, subject, teacher_id=None, app=None):
    app = app or create_app()

    with app.app_context():
        try:
            school_class = create_class(school_id, name, subject, teacher_id)
        except (AppError, SQLAlchemyError) as e:
            db.session.rollback()
            print(f"Error creating class: {e}")
            return None
        print(f"Class '{school_class.name}' created with id {school_class.id}")
        return school_class.id


def create_user(email, password, role, school_id, full_name, class_id=None, subject=None, app=None):
    """Create an account together with its profile."""
    if role not in ROLES:
        print(f"Unknown role '{role}'. Choose one of: {', '.join(ROLES)}")
        return False

    app = app or create_app()

    with app.app_context():
        email = normalize_email(email)
        if User.query.filter_by(email=email).first():
            print(f"User '{email}' already exists.")
            return False

        try:
            user = User(email=email, password_hash=generate_password_hash(password))
            db.session.add(user)
            db.session.flush()
            create_user_profile(user, {
                'role': role,
                'school_id': school_id,
                'full_name': full_name,
                'class_id': class_id,
                'subject': subject,
            }, commit=False)
            db.session.commit()
        except (AppError, SQLAlchemyError) as e:
            db.session.rollback()
            print(f"Error creating user: {e}")
            traceback.print_exc()
            return False

        print(f"User '{email}' created with role '{role}'")
        return True


def reset_password(email, new_password, app=None):
    """Reset a user's password."""
    app = app or create_app()

    with app.app_context():
        user = User.query.filter_by(email=normalize_email(email)).first()
        if not user:
            print(f"User '{email}' not found.")
            return False

        try:
            user.password_hash = generate_password_hash(new_password)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            print(f"Error resetting password: {e}")
            return False

        print(f"Password reset successfully for user '{email}'")
        return True


def show_help():
    print(__doc__)


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        show_help()
        return

    command = args.pop(0).lower()

    if command == 'help':
        show_help()
    elif command == 'list':
        list_users()
    elif command == 'create-school':
        if len(args) < 1:
            print("Usage: python admin_user_manager.py create-school <name> [address]")
        else:
            add_school(args[0], args[1] if len(args) > 1 else None)
    elif command == 'create-class':
        if len(args) < 3:
            print("Usage: python admin_user_manager.py create-class <school_id> <name> <subject> [teacher_id]")
        else:
            add_class(int(args[0]), args[1], args[2], int(args[3]) if len(args) > 3 else None)
    elif command == 'create-user':
        if len(args) < 5:
            print("Usage: python admin_user_manager.py create-user <email> <password> <role> <school_id> "
                  "<full_name> [class_id] [subject]")
        else:
            create_user(args[0], args[1], args[2], int(args[3]), args[4],
                        class_id=int(args[5]) if len(args) > 5 and args[5] else None,
                        subject=args[6] if len(args) > 6 else None)
    elif command == 'reset-password':
        if len(args) < 2:
            print("Usage: python admin_user_manager.py reset-password <email> <new_password>")
        else:
            reset_password(args[0], args[1])
    else:
        print(f"Unknown command: {command}")
        show_help()


if __name__ == '__main__':
    main()
