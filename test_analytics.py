from datetime import date, datetime, timedelta

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import services.analytics as analytics
from extensions import db
from models import Progress, School, SchoolClass, UserProfile


def _record(percent, day, record_id=None):
    return Progress(id=record_id, score=percent, max_score=100, date_completed=day)


def test_improvement_trend_compares_latest_half_to_earliest():
    records = [_record(50, date(2024, 9, 1)), _record(90, date(2024, 9, 20)),
               _record(60, date(2024, 9, 5)), _record(80, date(2024, 9, 12))]
    assert analytics.improvement_trend(records) == 30.0


def test_improvement_trend_odd_count_skips_middle():
    records = [_record(40, date(2024, 9, 1)), _record(99, date(2024, 9, 2)), _record(70, date(2024, 9, 3))]
    assert analytics.improvement_trend(records) == 30.0


def test_improvement_trend_needs_two_results():
    assert analytics.improvement_trend([]) == 0.0
    assert analytics.improvement_trend([_record(80, date(2024, 9, 1))]) == 0.0


def test_weekly_averages_oldest_first_with_gaps():
    records = [_record(60, date(2024, 9, 2)), _record(80, date(2024, 9, 3)), _record(90, date(2024, 9, 16)),
               _record(10, date(2023, 1, 1))]
    weekly = analytics.weekly_averages(records, today=date(2024, 9, 18))
    assert len(weekly) == analytics.TREND_WEEKS
    assert weekly[-1] == 90.0
    assert weekly[-2] is None
    assert weekly[-3] == 70.0
    assert weekly[:-3] == [None] * (analytics.TREND_WEEKS - 3)


def test_monthly_averages_crosses_year_boundary():
    records = [_record(50, date(2023, 12, 5)), _record(70, date(2024, 2, 10)), _record(90, date(2024, 2, 20))]
    monthly = analytics.monthly_averages(records, today=date(2024, 2, 28), months=3)
    assert monthly == [50.0, None, 80.0]


def test_build_class_analytics(ctx, school_data):
    school_class = db.session.get(SchoolClass, school_data['class_maths'])
    document = analytics.build_class_analytics(school_class, today=date(2024, 9, 18))

    assert document['school_id'] == school_data['school_a']
    assert document['class_id'] == school_data['class_maths']
    assert document['teacher_id'] == school_data['teacher1']
    metrics = document['metrics']
    assert metrics['total_students'] == 2
    assert metrics['average_score'] == 76.67
    assert metrics['median_score'] == 80.0
    assert metrics['assignments'] == [
        {'name': 'Fractions', 'average_score': 70.0, 'completion_rate': 100.0},
        {'name': 'Algebra', 'average_score': 90.0, 'completion_rate': 50.0},
    ]
    assert document['trends']['weekly_average'][-1] == 90.0


def test_build_student_analytics(ctx, school_data):
    student = db.session.get(UserProfile, school_data['student1'])
    document = analytics.build_student_analytics(student)

    assert document['class_id'] == school_data['class_maths']
    metrics = document['metrics']
    assert metrics['total_assignments'] == 2
    assert metrics['average_score'] == 75.0
    assert metrics['improvement_trend'] == 30.0
    assert [r['assignment_name'] for r in metrics['recent_performance']] == ['Algebra', 'Fractions']
    assert metrics['recent_performance'][0]['date'] == datetime(2024, 9, 16)


def test_build_school_analytics(ctx, school_data):
    school = db.session.get(School, school_data['school_a'])
    metrics = analytics.build_school_analytics(school)['metrics']

    assert metrics['total_classes'] == 2
    assert metrics['total_students'] == 3
    assert metrics['total_teachers'] == 3
    assert metrics['school_average_score'] == 75.0
    assert [c['student_count'] for c in metrics['class_performance_distribution']] == [2, 1]


def test_save_class_analytics_upserts(ctx, mongo_client):
    document = {'school_id': 1, 'class_id': 7, 'class_name': 'Year 7 Maths', 'metrics': {'average_score': 50.0}}
    analytics.save_class_analytics(document)
    analytics.save_class_analytics(dict(document, metrics={'average_score': 65.0}))

    collection = mongo_client[ctx.config['MONGO_DB_NAME']]['class_analytics']
    assert collection.count_documents({}) == 1
    stored = analytics.get_class_analytics(1, 7)[0]
    assert stored['metrics']['average_score'] == 65.0
    assert isinstance(stored['calculated_at'], datetime)
    # The caller's document is not modified
    assert 'calculated_at' not in document


def test_save_student_analytics_keyed_by_student_and_class(ctx):
    analytics.save_student_analytics({'school_id': 1, 'class_id': 7, 'student_id': 3, 'metrics': {}})
    analytics.save_student_analytics({'school_id': 1, 'class_id': 8, 'student_id': 3, 'metrics': {}})
    analytics.save_student_analytics({'school_id': 1, 'class_id': 7, 'student_id': 3, 'metrics': {'x': 1}})

    assert len(analytics.get_student_analytics(1, student_id=3)) == 2
    assert analytics.get_student_analytics(1, class_id=7, student_id=3)[0]['metrics'] == {'x': 1}
    assert analytics.get_student_analytics(2) == []


def test_get_school_analytics_missing(ctx):
    assert analytics.get_school_analytics(12345) is None


def test_cleanup_old_analytics(ctx, mongo_client):
    collections = analytics.get_analytics_collections()
    old = datetime.utcnow() - timedelta(days=120)
    collections['class_analytics'].insert_one({'school_id': 1, 'class_id': 1, 'calculated_at': old})
    collections['student_analytics'].insert_one({'school_id': 1, 'student_id': 2, 'calculated_at': old})
    analytics.save_class_analytics({'school_id': 1, 'class_id': 2})

    result = analytics.cleanup_old_analytics(days_to_keep=90)
    assert result == {
        'class_analytics_deleted': 1,
        'student_analytics_deleted': 1,
        'school_analytics_deleted': 0,
    }
    assert collections['class_analytics'].count_documents({}) == 1


def test_cleanup_defaults_to_configured_retention(ctx):
    collections = analytics.get_analytics_collections()
    collections['school_analytics'].insert_one(
        {'school_id': 1, 'calculated_at': datetime.utcnow() - timedelta(days=10)})
    ctx.config['ANALYTICS_RETENTION_DAYS'] = 5
    assert analytics.cleanup_old_analytics()['school_analytics_deleted'] == 1


def test_refresh_school_analytics_writes_every_document(ctx, school_data):
    document = analytics.refresh_school_analytics(school_data['school_a'])
    assert document['metrics']['total_classes'] == 2

    collections = analytics.get_analytics_collections()
    assert collections['school_analytics'].count_documents({}) == 1
    assert collections['class_analytics'].count_documents({'school_id': school_data['school_a']}) == 2
    assert collections['student_analytics'].count_documents({'school_id': school_data['school_a']}) == 3


def test_refresh_missing_class_or_school(ctx):
    assert analytics.refresh_class_analytics(9999) is None
    assert analytics.refresh_school_analytics(9999) is None


def test_refresh_class_analytics_survives_store_outage(ctx, school_data, monkeypatch):
    def unavailable(document):
        raise ServerSelectionTimeoutError('no servers')
    monkeypatch.setattr(analytics, 'save_class_analytics', unavailable)
    assert analytics.refresh_class_analytics(school_data['class_maths']) is None


def test_serialize_document():
    object_id = ObjectId()
    document = {
        '_id': object_id,
        'calculated_at': datetime(2024, 9, 1, 12, 30),
        'metrics': {'recent_performance': [{'date': datetime(2024, 8, 30)}]},
    }
    assert analytics.serialize_document(document) == {
        '_id': str(object_id),
        'calculated_at': '2024-09-01T12:30:00',
        'metrics': {'recent_performance': [{'date': '2024-08-30T00:00:00'}]},
    }


@pytest.mark.parametrize('collection', ['class_analytics', 'student_analytics', 'school_analytics'])
def test_collections_live_in_configured_database(ctx, mongo_client, collection):
    assert analytics.get_analytics_collections()[collection].database.name == 'progress_tracker_test'
