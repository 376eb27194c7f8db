from datetime import date

import mongomock
import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config import TestingConfig
from extensions import db
from models import Progress, School, SchoolClass, User, UserProfile

PASSWORD = 'Password1'
# Cheap hash so fixtures stay fast
PASSWORD_HASH = generate_password_hash(PASSWORD, method='pbkdf2:sha256:1000')


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def app(mongo_client):
    app = create_app(TestingConfig, mongo_client=mongo_client)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """A request context for calling services directly."""
    with app.test_request_context():
        yield app


def _make_user(email, role=None, school_id=None, full_name=None, class_id=None, subject=None):
    user = User(email=email, password_hash=PASSWORD_HASH)
    db.session.add(user)
    db.session.flush()
    if role:
        db.session.add(UserProfile(id=user.id, school_id=school_id, role=role, full_name=full_name,
                                   email=email, class_id=class_id, subject=subject))
        db.session.flush()
    return user.id


@pytest.fixture
def school_data(app):
    """
    Two schools. School A has a head teacher, two teachers with one class
    each and three students; school B has one teacher, one class and one
    student. Returns the ids by name.
    """
    with app.app_context():
        school_a = School(name='Northfield Academy', address='1 North Road')
        school_b = School(name='Southgate School')
        db.session.add_all([school_a, school_b])
        db.session.flush()

        ids = {'school_a': school_a.id, 'school_b': school_b.id}
        ids['head'] = _make_user('head@northfield.example.org', 'head_teacher', school_a.id, 'Helen Head',
                                 subject='Leadership')
        ids['teacher1'] = _make_user('maths@northfield.example.org', 'teacher', school_a.id, 'Tom Maths', subject='Maths')
        ids['teacher2'] = _make_user('science@northfield.example.org', 'teacher', school_a.id, 'Sue Science',
                                     subject='Science')
        ids['teacher_b'] = _make_user('teacher@southgate.example.org', 'teacher', school_b.id, 'Bob South',
                                      subject='History')

        maths = SchoolClass(school_id=school_a.id, name='Year 7 Maths', subject='Maths', teacher_id=ids['teacher1'])
        science = SchoolClass(school_id=school_a.id, name='Year 8 Science', subject='Science',
                              teacher_id=ids['teacher2'])
        history = SchoolClass(school_id=school_b.id, name='Year 9 History', subject='History',
                              teacher_id=ids['teacher_b'])
        db.session.add_all([maths, science, history])
        db.session.flush()
        ids.update(class_maths=maths.id, class_science=science.id, class_history=history.id)

        ids['student1'] = _make_user('amy@northfield.example.org', 'student', school_a.id, 'Amy Adams', class_id=maths.id)
        ids['student2'] = _make_user('ben@northfield.example.org', 'student', school_a.id, 'Ben Brown', class_id=maths.id)
        ids['student3'] = _make_user('cat@northfield.example.org', 'student', school_a.id, 'Cat Clark',
                                     class_id=science.id)
        ids['student_b'] = _make_user('dan@southgate.example.org', 'student', school_b.id, 'Dan Dale',
                                      class_id=history.id)
        ids['no_profile'] = _make_user('new@northfield.example.org')

        records = [
            Progress(student_id=ids['student1'], class_id=maths.id, school_id=school_a.id,
                     assignment_name='Fractions', score=6, max_score=10, date_completed=date(2024, 9, 2)),
            Progress(student_id=ids['student1'], class_id=maths.id, school_id=school_a.id,
                     assignment_name='Algebra', score=18, max_score=20, date_completed=date(2024, 9, 16)),
            Progress(student_id=ids['student2'], class_id=maths.id, school_id=school_a.id,
                     assignment_name='Fractions', score=8, max_score=10, date_completed=date(2024, 9, 3)),
            Progress(student_id=ids['student3'], class_id=science.id, school_id=school_a.id,
                     assignment_name='Cells', score=35, max_score=50, date_completed=date(2024, 9, 10)),
            Progress(student_id=ids['student_b'], class_id=history.id, school_id=school_b.id,
                     assignment_name='Romans', score=40, max_score=40, date_completed=date(2024, 9, 12)),
        ]
        db.session.add_all(records)
        db.session.commit()
        ids['progress_amy_fractions'] = records[0].id
        ids['progress_amy_algebra'] = records[1].id
        ids['progress_ben_fractions'] = records[2].id
        ids['progress_cat_cells'] = records[3].id
        ids['progress_dan_romans'] = records[4].id
    return ids


def login(client, email, password=PASSWORD, **query):
    return client.post('/login', query_string=query, data={'email': email, 'password': password})


@pytest.fixture
def login_as(client, school_data):
    """Sign the test client in as one of the school_data users, by key."""
    emails = {
        'head': 'head@northfield.example.org',
        'teacher1': 'maths@northfield.example.org',
        'teacher2': 'science@northfield.example.org',
        'teacher_b': 'teacher@southgate.example.org',
        'student1': 'amy@northfield.example.org',
        'student2': 'ben@northfield.example.org',
        'student3': 'cat@northfield.example.org',
        'student_b': 'dan@southgate.example.org',
        'no_profile': 'new@northfield.example.org',
    }

    def _login(key):
        response = login(client, emails[key])
        assert response.status_code == 302
        return response
    return _login


def get_profile(key, school_data):
    return db.session.get(UserProfile, school_data[key])
