"""
Per-entity query helpers for schools, classes, profiles and progress.

Reads are scoped to what the acting profile may see, mirroring the
row-level policies PostgreSQL enforces in production:

    head_teacher -> everything in their school
    teacher      -> the classes they teach and those classes' students
    student      -> their own class and their own progress

Read helpers log database failures and return an empty result; write
helpers log and re-raise, so a failed write is never reported as success.
"""

from datetime import date, datetime

from flask import current_app
from flask_login import current_user
from sqlalchemy import false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from error_handler import NotFoundError, PermissionDeniedError, ValidationError
from extensions import db
from models import Progress, School, SchoolClass, UserProfile
from permissions import HEAD_TEACHER, ROLES, STUDENT, TEACHER, TEACHING_ROLES, has_permission

PROGRESS_UPDATABLE_FIELDS = ('assignment_name', 'score', 'max_score', 'date_completed', 'notes')
PROFILE_UPDATABLE_FIELDS = ('full_name', 'class_id', 'subject')


def get_current_user_profile():
    """Profile of the signed-in user, or None."""
    if not current_user or not current_user.is_authenticated:
        return None
    try:
        return db.session.get(UserProfile, current_user.id)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching user profile: {e}")
        return None


def _acting_profile(profile):
    return profile if profile is not None else get_current_user_profile()


# --- Schools -----------------------------------------------------------------

def get_schools():
    try:
        return School.query.order_by(School.name).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching schools: {e}")
        return []


def get_school(school_id):
    return db.session.get(School, school_id)


def create_school(name, address=None):
    school = School(name=name.strip(), address=address)
    db.session.add(school)
    db.session.commit()
    return school


def get_school_members(school_id, role=None):
    query = UserProfile.query.filter_by(school_id=school_id)
    if role:
        query = query.filter_by(role=role)
    return query.order_by(UserProfile.full_name).all()


# --- Classes -----------------------------------------------------------------

def get_class(class_id):
    return db.session.get(SchoolClass, class_id)


def get_all_classes():
    """Every class, for sign-up and profile forms."""
    try:
        return SchoolClass.query.order_by(SchoolClass.name).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching classes: {e}")
        return []


def create_class(school_id, name, subject, teacher_id=None):
    if not get_school(school_id):
        raise NotFoundError('School not found')
    school_class = SchoolClass(school_id=school_id, name=name.strip(), subject=subject.strip(),
                               teacher_id=teacher_id)
    db.session.add(school_class)
    db.session.commit()
    return school_class


def get_user_classes(profile=None):
    """Classes the profile may see, ordered by name."""
    profile = _acting_profile(profile)
    if not profile:
        return []

    query = SchoolClass.query
    if profile.role == HEAD_TEACHER:
        query = query.filter(SchoolClass.school_id == profile.school_id)
    elif profile.role == TEACHER:
        query = query.filter(SchoolClass.teacher_id == profile.id)
    elif profile.role == STUDENT:
        if not profile.class_id:
            return []
        query = query.filter(SchoolClass.id == profile.class_id)
    else:
        return []

    try:
        return query.order_by(SchoolClass.name).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching user classes: {e}")
        return []


def get_class_students(class_id):
    try:
        return (UserProfile.query
                .filter_by(class_id=class_id, role=STUDENT)
                .order_by(UserProfile.full_name)
                .all())
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching class students: {e}")
        return []


def assign_teacher(class_id, teacher_id, profile=None):
    """Make ``teacher_id`` the teacher of ``class_id``. Head teachers only."""
    profile = _acting_profile(profile)
    if not profile or not has_permission(profile.role, 'can_manage_users'):
        raise PermissionDeniedError('Insufficient permissions')

    school_class = get_class(class_id)
    if not school_class or school_class.school_id != profile.school_id:
        raise NotFoundError('Class not found')

    teacher = db.session.get(UserProfile, teacher_id) if teacher_id else None
    if teacher_id and (not teacher or teacher.role not in TEACHING_ROLES
                       or teacher.school_id != profile.school_id):
        raise ValidationError('Teacher not found in this school')

    school_class.teacher_id = teacher.id if teacher else None
    db.session.commit()
    current_app.logger.info(f"Class {class_id} assigned to teacher {teacher_id} by {profile.id}")
    return school_class


# --- Profiles ----------------------------------------------------------------

def _validate_profile_class(class_id, school_id):
    if not class_id:
        return None
    school_class = get_class(int(class_id))
    if not school_class or school_class.school_id != school_id:
        raise ValidationError('Class not found in this school')
    return school_class.id


def create_user_profile(user, data, commit=True):
    """Create the profile for ``user`` from ``data`` (role, school_id, full_name, ...)."""
    role = data.get('role')
    if role not in ROLES:
        raise ValidationError('Please select a role')

    school_id = int(data['school_id'])
    if not get_school(school_id):
        raise NotFoundError('School not found')

    profile = UserProfile(
        id=user.id,
        school_id=school_id,
        role=role,
        full_name=data['full_name'].strip(),
        email=data.get('email') or user.email,
        class_id=_validate_profile_class(data.get('class_id'), school_id),
        subject=(data.get('subject') or None),
    )
    db.session.add(profile)
    if commit:
        db.session.commit()
    return profile


def update_user_profile(profile, data):
    changes = {}
    for field in PROFILE_UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == 'class_id':
            value = _validate_profile_class(value, profile.school_id)
        elif field == 'full_name':
            value = value.strip()
        elif field == 'subject':
            value = value or None
        changes[field] = value
    for field, value in changes.items():
        setattr(profile, field, value)
    profile.updated_at = datetime.utcnow()
    db.session.commit()
    return profile


# --- Progress ----------------------------------------------------------------

def scope_progress_query(query, profile):
    """Restrict a Progress query to rows ``profile`` may read."""
    if has_permission(profile.role, 'can_view_all_progress'):
        return query.filter(Progress.school_id == profile.school_id)
    if profile.role == TEACHER:
        return query.join(SchoolClass, Progress.class_id == SchoolClass.id) \
            .filter(SchoolClass.teacher_id == profile.id)
    if profile.role == STUDENT:
        return query.filter(Progress.student_id == profile.id)
    return query.filter(false())


def get_progress(class_id=None, student_id=None, date_from=None, date_to=None, limit=None, profile=None):
    """Visible progress records, newest completion date first."""
    profile = _acting_profile(profile)
    if not profile:
        return []
    if limit is None:
        limit = current_app.config.get('PROGRESS_PAGE_LIMIT', 100)

    query = Progress.query.options(joinedload(Progress.student), joinedload(Progress.school_class))
    query = scope_progress_query(query, profile)

    if class_id:
        query = query.filter(Progress.class_id == class_id)
    if student_id:
        query = query.filter(Progress.student_id == student_id)
    if date_from:
        query = query.filter(Progress.date_completed >= _coerce_date(date_from))
    if date_to:
        query = query.filter(Progress.date_completed <= _coerce_date(date_to))

    try:
        return (query
                .order_by(Progress.date_completed.desc(), Progress.id.desc())
                .limit(limit or 100)
                .all())
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error fetching progress: {e}")
        return []


def _coerce_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'Invalid date: {value}')


def _coerce_score(value, field):
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number')


def _validate_scores(score, max_score):
    if max_score <= 0:
        raise ValidationError('Max score must be greater than zero')
    if score < 0:
        raise ValidationError('Score cannot be negative')
    if score > max_score:
        raise ValidationError('Score cannot exceed max score')


def _require_editor(profile):
    if not profile or not has_permission(profile.role, 'can_edit_progress'):
        raise PermissionDeniedError('Insufficient permissions')


def _get_progress_for_edit(progress_id, profile):
    _require_editor(profile)
    record = db.session.get(Progress, progress_id)
    if not record:
        raise NotFoundError('Progress record not found')
    if not can_access_progress(profile, record):
        raise PermissionDeniedError('Insufficient permissions')
    return record


def _after_progress_write(class_id):
    if not current_app.config.get('ANALYTICS_AUTO_REFRESH'):
        return
    from services.analytics import refresh_class_analytics
    refresh_class_analytics(class_id)


def create_progress(data, profile=None):
    """Insert a progress record. ``school_id`` is taken from the class."""
    profile = _acting_profile(profile)
    _require_editor(profile)

    school_class = get_class(data['class_id']) if data.get('class_id') else None
    if not school_class:
        raise NotFoundError('Class not found')
    if not can_access_class(profile, school_class):
        raise PermissionDeniedError('Insufficient permissions')

    student = db.session.get(UserProfile, data['student_id']) if data.get('student_id') else None
    if not student or student.role != STUDENT or student.class_id != school_class.id:
        raise ValidationError('Student is not in this class')

    assignment_name = (data.get('assignment_name') or '').strip()
    if not assignment_name:
        raise ValidationError('Assignment name is required')

    score = _coerce_score(data.get('score'), 'Score')
    max_score = _coerce_score(data.get('max_score'), 'Max score')
    _validate_scores(score, max_score)

    record = Progress(
        student_id=student.id,
        class_id=school_class.id,
        school_id=school_class.school_id,
        assignment_name=assignment_name,
        score=score,
        max_score=max_score,
        date_completed=_coerce_date(data.get('date_completed')),
        notes=data.get('notes') or None,
    )
    try:
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating progress: {e}")
        raise

    _after_progress_write(record.class_id)
    return record


def update_progress(progress_id, updates, profile=None):
    profile = _acting_profile(profile)
    record = _get_progress_for_edit(progress_id, profile)

    changes = {}
    for field in PROGRESS_UPDATABLE_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field in ('score', 'max_score'):
            value = _coerce_score(value, field.replace('_', ' ').capitalize())
        elif field == 'date_completed':
            value = _coerce_date(value)
        elif field == 'assignment_name':
            value = (value or '').strip()
            if not value:
                raise ValidationError('Assignment name is required')
        elif field == 'notes':
            value = value or None
        changes[field] = value

    _validate_scores(changes.get('score', record.score), changes.get('max_score', record.max_score))
    for field, value in changes.items():
        setattr(record, field, value)
    record.updated_at = datetime.utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating progress: {e}")
        raise

    _after_progress_write(record.class_id)
    return record


def delete_progress(progress_id, profile=None):
    profile = _acting_profile(profile)
    record = _get_progress_for_edit(progress_id, profile)
    class_id = record.class_id
    try:
        db.session.delete(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting progress: {e}")
        raise

    _after_progress_write(class_id)


# --- Permission checks -------------------------------------------------------

def can_access_class(profile, school_class):
    if profile.role == HEAD_TEACHER:
        return profile.school_id == school_class.school_id
    if profile.role == TEACHER:
        return school_class.teacher_id == profile.id
    if profile.role == STUDENT:
        return profile.class_id == school_class.id
    return False


def can_access_student(profile, student):
    if student.role != STUDENT:
        return False
    if profile.role == HEAD_TEACHER:
        return profile.school_id == student.school_id
    if profile.role == TEACHER:
        if not student.class_id:
            return False
        return SchoolClass.query.filter_by(id=student.class_id, teacher_id=profile.id).first() is not None
    return profile.id == student.id


def can_access_progress(profile, record):
    if profile.role == HEAD_TEACHER:
        return profile.school_id == record.school_id
    if profile.role == TEACHER:
        return record.school_class is not None and record.school_class.teacher_id == profile.id
    if profile.role == STUDENT:
        return record.student_id == profile.id
    return False


RESOURCE_LOADERS = {
    'class': (SchoolClass, can_access_class),
    'student': (UserProfile, can_access_student),
    'progress': (Progress, can_access_progress),
}


def check_user_permission(resource, resource_id, profile=None):
    """True when the acting profile may access ``resource`` ``resource_id``."""
    profile = _acting_profile(profile)
    if not profile or resource not in RESOURCE_LOADERS:
        return False

    model, check = RESOURCE_LOADERS[resource]
    try:
        target = db.session.get(model, resource_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error checking {resource} permission: {e}")
        return False
    if target is None:
        return False
    return check(profile, target)
