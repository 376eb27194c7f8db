"""
Precomputed analytics, kept in MongoDB.

Three collections hold one document per class, per (student, class) and per
school. Documents are computed from the progress table by the build_*
functions and written with upserts, so re-running a refresh replaces the
previous figures instead of piling up history. All scores are percentages
of max_score.
"""

import statistics
from collections import OrderedDict
from datetime import date, datetime, time, timedelta

from bson import ObjectId
from flask import current_app
from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from extensions import db
from models import Progress, School, SchoolClass, UserProfile
from permissions import STUDENT, TEACHING_ROLES

CLASS_ANALYTICS = 'class_analytics'
STUDENT_ANALYTICS = 'student_analytics'
SCHOOL_ANALYTICS = 'school_analytics'

TREND_WEEKS = 8
TREND_MONTHS = 6
RECENT_PERFORMANCE_SIZE = 5


def init_mongo(app, client=None):
    """Register the MongoDB client for ``app``; created on first use if not given."""
    app.extensions['mongo_client'] = client


def get_mongo_client():
    client = current_app.extensions.get('mongo_client')
    if client is None:
        client = MongoClient(current_app.config['MONGO_URI'], serverSelectionTimeoutMS=5000)
        current_app.extensions['mongo_client'] = client
    return client


def get_database():
    return get_mongo_client()[current_app.config['MONGO_DB_NAME']]


def get_analytics_collections():
    database = get_database()
    return {
        'class_analytics': database[CLASS_ANALYTICS],
        'student_analytics': database[STUDENT_ANALYTICS],
        'school_analytics': database[SCHOOL_ANALYTICS],
    }


def _stamped(analytics):
    document = dict(analytics)
    document.pop('_id', None)
    document['calculated_at'] = datetime.utcnow()
    return document


# --- Persistence -------------------------------------------------------------

def save_class_analytics(analytics):
    """Upsert the document for (class_id, school_id)."""
    collection = get_analytics_collections()['class_analytics']
    return collection.update_one(
        {'class_id': analytics['class_id'], 'school_id': analytics['school_id']},
        {'$set': _stamped(analytics)},
        upsert=True,
    )


def get_class_analytics(school_id, class_id=None):
    collection = get_analytics_collections()['class_analytics']
    query = {'school_id': school_id}
    if class_id:
        query['class_id'] = class_id
    return list(collection.find(query).sort('calculated_at', DESCENDING))


def save_student_analytics(analytics):
    """Upsert the document for (student_id, class_id)."""
    collection = get_analytics_collections()['student_analytics']
    return collection.update_one(
        {'student_id': analytics['student_id'], 'class_id': analytics['class_id']},
        {'$set': _stamped(analytics)},
        upsert=True,
    )


def get_student_analytics(school_id, class_id=None, student_id=None):
    collection = get_analytics_collections()['student_analytics']
    query = {'school_id': school_id}
    if class_id:
        query['class_id'] = class_id
    if student_id:
        query['student_id'] = student_id
    return list(collection.find(query).sort('calculated_at', DESCENDING))


def save_school_analytics(analytics):
    collection = get_analytics_collections()['school_analytics']
    return collection.update_one(
        {'school_id': analytics['school_id']},
        {'$set': _stamped(analytics)},
        upsert=True,
    )


def get_school_analytics(school_id):
    return get_analytics_collections()['school_analytics'].find_one({'school_id': school_id})


def cleanup_old_analytics(days_to_keep=None):
    """Delete documents calculated more than ``days_to_keep`` days ago."""
    if days_to_keep is None:
        days_to_keep = current_app.config.get('ANALYTICS_RETENTION_DAYS', 90)
    cutoff = datetime.utcnow() - timedelta(days=days_to_keep)
    collections = get_analytics_collections()
    stale = {'calculated_at': {'$lt': cutoff}}

    result = {
        'class_analytics_deleted': collections['class_analytics'].delete_many(stale).deleted_count,
        'student_analytics_deleted': collections['student_analytics'].delete_many(stale).deleted_count,
        'school_analytics_deleted': collections['school_analytics'].delete_many(stale).deleted_count,
    }
    current_app.logger.info(f"Analytics cleanup (older than {days_to_keep} days): {result}")
    return result


# --- Computation -------------------------------------------------------------

def _mean(values):
    return round(statistics.fmean(values), 2) if values else 0.0


def _median(values):
    return round(statistics.median(values), 2) if values else 0.0


def _week_start(day):
    return day - timedelta(days=day.weekday())


def _month_start(day, months_back=0):
    month_index = day.year * 12 + day.month - 1 - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def weekly_averages(records, today, weeks=TREND_WEEKS):
    """Average percentage per week for the last ``weeks`` weeks, oldest first. Empty weeks are None."""
    current = _week_start(today)
    buckets = OrderedDict((current - timedelta(weeks=offset), []) for offset in range(weeks - 1, -1, -1))
    for record in records:
        start = _week_start(record.date_completed)
        if start in buckets:
            buckets[start].append(record.percentage)
    return [_mean(values) if values else None for values in buckets.values()]


def monthly_averages(records, today, months=TREND_MONTHS):
    """Average percentage per calendar month for the last ``months`` months, oldest first."""
    buckets = OrderedDict((_month_start(today, offset), []) for offset in range(months - 1, -1, -1))
    for record in records:
        start = record.date_completed.replace(day=1)
        if start in buckets:
            buckets[start].append(record.percentage)
    return [_mean(values) if values else None for values in buckets.values()]


def improvement_trend(records):
    """
    Mean of the latest half of a student's results minus the mean of the
    earliest half (the middle result is left out when the count is odd).
    Positive means improving.
    """
    ordered = sorted(records, key=lambda r: (r.date_completed, r.id or 0))
    half = len(ordered) // 2
    if half == 0:
        return 0.0
    earliest = [r.percentage for r in ordered[:half]]
    latest = [r.percentage for r in ordered[-half:]]
    return round(_mean(latest) - _mean(earliest), 2)


def build_class_analytics(school_class, today=None):
    today = today or date.today()
    records = Progress.query.filter_by(class_id=school_class.id).all()
    students = UserProfile.query.filter_by(class_id=school_class.id, role=STUDENT).all()
    total_students = len(students)
    percentages = [r.percentage for r in records]

    by_assignment = OrderedDict()
    for record in sorted(records, key=lambda r: (r.date_completed, r.assignment_name)):
        by_assignment.setdefault(record.assignment_name, []).append(record)

    assignments = []
    for name, rows in by_assignment.items():
        completed = len({r.student_id for r in rows})
        assignments.append({
            'name': name,
            'average_score': _mean([r.percentage for r in rows]),
            'completion_rate': round(completed / total_students * 100, 2) if total_students else 0.0,
        })

    return {
        'school_id': school_class.school_id,
        'class_id': school_class.id,
        'class_name': school_class.name,
        'teacher_id': school_class.teacher_id,
        'metrics': {
            'total_students': total_students,
            'average_score': _mean(percentages),
            'median_score': _median(percentages),
            'assignments': assignments,
        },
        'trends': {
            'weekly_average': weekly_averages(records, today),
            'monthly_average': monthly_averages(records, today),
        },
    }


def build_student_analytics(student, school_class=None):
    query = Progress.query.filter_by(student_id=student.id)
    class_id = school_class.id if school_class else student.class_id
    if class_id:
        query = query.filter_by(class_id=class_id)
    records = query.order_by(Progress.date_completed.desc(), Progress.id.desc()).all()

    recent = [{
        'assignment_name': r.assignment_name,
        'score': r.score,
        'max_score': r.max_score,
        # BSON has no date type
        'date': datetime.combine(r.date_completed, time.min),
    } for r in records[:RECENT_PERFORMANCE_SIZE]]

    return {
        'school_id': student.school_id,
        'class_id': class_id,
        'student_id': student.id,
        'student_name': student.full_name,
        'metrics': {
            'total_assignments': len(records),
            'average_score': _mean([r.percentage for r in records]),
            'improvement_trend': improvement_trend(records),
            'recent_performance': recent,
        },
    }


def build_school_analytics(school):
    classes = SchoolClass.query.filter_by(school_id=school.id).order_by(SchoolClass.name).all()
    members = UserProfile.query.filter_by(school_id=school.id).all()
    records = Progress.query.filter_by(school_id=school.id).all()

    distribution = []
    for school_class in classes:
        class_scores = [r.percentage for r in records if r.class_id == school_class.id]
        distribution.append({
            'class_id': school_class.id,
            'class_name': school_class.name,
            'average_score': _mean(class_scores),
            'student_count': sum(1 for m in members if m.role == STUDENT and m.class_id == school_class.id),
        })

    return {
        'school_id': school.id,
        'school_name': school.name,
        'metrics': {
            'total_classes': len(classes),
            'total_students': sum(1 for m in members if m.role == STUDENT),
            'total_teachers': sum(1 for m in members if m.role in TEACHING_ROLES),
            'school_average_score': _mean([r.percentage for r in records]),
            'class_performance_distribution': distribution,
        },
    }


def refresh_class_analytics(class_id):
    """Recompute and store the class document and its students' documents."""
    school_class = db.session.get(SchoolClass, class_id)
    if not school_class:
        return None
    try:
        document = build_class_analytics(school_class)
        save_class_analytics(document)
        for student in UserProfile.query.filter_by(class_id=class_id, role=STUDENT).all():
            save_student_analytics(build_student_analytics(student, school_class))
    except PyMongoError as e:
        current_app.logger.error(f"Failed to refresh analytics for class {class_id}: {e}")
        return None
    current_app.logger.debug(f"Refreshed analytics for class {class_id}")
    return document


def refresh_school_analytics(school_id):
    """Recompute the school document and every class in it."""
    school = db.session.get(School, school_id)
    if not school:
        return None
    for school_class in school.classes:
        refresh_class_analytics(school_class.id)
    try:
        document = build_school_analytics(school)
        save_school_analytics(document)
    except PyMongoError as e:
        current_app.logger.error(f"Failed to refresh analytics for school {school_id}: {e}")
        return None
    return document


def serialize_document(document):
    """Make a stored document JSON-friendly."""
    if isinstance(document, dict):
        return {key: serialize_document(value) for key, value in document.items()}
    if isinstance(document, list):
        return [serialize_document(value) for value in document]
    if isinstance(document, ObjectId):
        return str(document)
    if isinstance(document, (datetime, date)):
        return document.isoformat()
    return document
