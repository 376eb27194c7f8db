from conftest import login
from extensions import db
from models import ActivityLog, User, UserProfile


def test_login_success_redirects_home(client, school_data):
    response = login(client, 'amy@northfield.example.org')
    assert response.status_code == 302
    assert response.location == '/'


def test_login_honours_local_redirected_from(client, school_data):
    response = login(client, 'maths@northfield.example.org', redirectedFrom='/teacher/classes/1')
    assert response.status_code == 302
    assert response.location == '/teacher/classes/1'


def test_login_ignores_external_redirected_from(client, school_data):
    response = login(client, 'maths@northfield.example.org', redirectedFrom='//evil.example/steal')
    assert response.location == '/'


def test_login_is_case_insensitive_on_email(client, school_data):
    response = login(client, 'AMY@Northfield.example.org')
    assert response.status_code == 302


def test_login_wrong_password_shows_error(client, app, school_data):
    response = login(client, 'amy@northfield.example.org', password='WrongPass1')
    assert response.status_code == 200
    assert b'Invalid login credentials' in response.data
    with app.app_context():
        failed = ActivityLog.query.filter_by(action='login_failed').all()
        assert len(failed) == 1
        assert failed[0].success is False


def test_login_records_sign_in(client, app, school_data):
    login(client, 'amy@northfield.example.org')
    with app.app_context():
        user = db.session.get(User, school_data['student1'])
        assert user.login_count == 1
        assert user.last_sign_in_at is not None
        assert ActivityLog.query.filter_by(action='login', user_id=user.id).count() == 1


def test_login_page_shows_message_from_query(client, school_data):
    response = client.get('/login?message=Account+created+successfully.+Please+log+in.')
    assert b'Account created successfully' in response.data


def _signup_data(**overrides):
    data = {
        'email': 'newstudent@northfield.example.org',
        'password': 'Secret123',
        'confirm_password': 'Secret123',
        'full_name': 'Nina New',
        'role': 'student',
        'subject': '',
    }
    data.update(overrides)
    return data


def test_signup_creates_user_and_profile(client, app, school_data):
    response = client.post('/signup', data=_signup_data(school_id=school_data['school_a'],
                                                        class_id=school_data['class_maths']))
    assert response.status_code == 302
    assert response.location.startswith('/login?message=')

    with app.app_context():
        user = User.query.filter_by(email='newstudent@northfield.example.org').one()
        assert user.profile.role == 'student'
        assert user.profile.class_id == school_data['class_maths']
        assert user.profile.school_id == school_data['school_a']


def test_signup_rejects_existing_email(client, app, school_data):
    response = client.post('/signup', data=_signup_data(email='amy@northfield.example.org',
                                                        school_id=school_data['school_a'],
                                                        class_id=school_data['class_maths']))
    assert response.status_code == 200
    assert b'User already registered' in response.data


def test_signup_requires_class_for_student(client, app, school_data):
    response = client.post('/signup', data=_signup_data(school_id=school_data['school_a'], class_id=''))
    assert response.status_code == 200
    assert b'Class selection is required' in response.data
    with app.app_context():
        assert User.query.filter_by(email='newstudent@northfield.example.org').first() is None


def test_signup_rejects_class_from_another_school(client, app, school_data):
    response = client.post('/signup', data=_signup_data(school_id=school_data['school_a'],
                                                        class_id=school_data['class_history']))
    assert response.status_code == 200
    assert b'Class not found in this school' in response.data
    with app.app_context():
        assert User.query.filter_by(email='newstudent@northfield.example.org').first() is None


def test_logout_ends_session(client, login_as):
    login_as('student1')
    response = client.get('/logout')
    assert response.status_code == 302
    assert client.get('/student/dashboard').status_code == 302


def test_dashboard_redirects_by_role(client, login_as):
    login_as('teacher1')
    response = client.get('/dashboard')
    assert response.location.endswith('/teacher')


def test_profile_setup_for_account_without_profile(client, app, login_as, school_data):
    login_as('no_profile')
    response = client.post('/profile', data={
        'full_name': 'Newly Hired',
        'school_id': school_data['school_a'],
        'role': 'teacher',
        'class_id': school_data['class_science'],
        'subject': 'Physics',
    })
    assert response.status_code == 302
    with app.app_context():
        profile = db.session.get(UserProfile, school_data['no_profile'])
        assert profile.role == 'teacher'
        assert profile.subject == 'Physics'


def test_profile_update(client, app, login_as, school_data):
    login_as('student1')
    response = client.post('/profile', data={'full_name': 'Amy Adams-Smith', 'class_id': school_data['class_maths'],
                                             'subject': ''})
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(UserProfile, school_data['student1']).full_name == 'Amy Adams-Smith'


def test_home_page_prompts_for_missing_profile(client, login_as):
    login_as('no_profile')
    response = client.get('/')
    assert b'Set up your profile' in response.data
