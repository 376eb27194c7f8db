from extensions import db
from models import Progress


def _progress_form(school_data, **overrides):
    data = {
        'class_id': school_data['class_maths'],
        'student_id': school_data['student2'],
        'assignment_name': 'Geometry',
        'score': '15',
        'max_score': '20',
        'date_completed': '2024-10-02',
        'notes': 'Good work',
    }
    data.update(overrides)
    return data


def test_teacher_dashboard_lists_own_classes(client, login_as):
    login_as('teacher1')
    response = client.get('/teacher')
    assert response.status_code == 200
    assert b'Year 7 Maths' in response.data
    assert b'Year 8 Science' not in response.data
    assert b'Algebra' in response.data


def test_teacher_dashboard_answers_with_and_without_trailing_slash(app, client, login_as):
    rules = {rule.rule for rule in app.url_map.iter_rules(endpoint='teacher.dashboard.teacher_dashboard')}
    assert rules == {'/teacher', '/teacher/'}

    login_as('teacher1')
    for path in ('/teacher', '/teacher/'):
        assert client.get(path).status_code == 200
    assert client.get('/teacher/classes/9999').status_code == 404


def test_head_teacher_dashboard_lists_school_classes(client, login_as):
    login_as('head')
    response = client.get('/teacher/')
    assert b'Year 7 Maths' in response.data
    assert b'Year 8 Science' in response.data
    assert b'Year 9 History' not in response.data


def test_class_detail(client, login_as, school_data):
    login_as('teacher1')
    response = client.get(f"/teacher/classes/{school_data['class_maths']}")
    assert response.status_code == 200
    assert b'Amy Adams' in response.data
    assert b'Ben Brown' in response.data


def test_class_detail_of_another_teachers_class_is_forbidden(client, login_as, school_data):
    login_as('teacher1')
    assert client.get(f"/teacher/classes/{school_data['class_science']}").status_code == 403


def test_class_detail_missing_class(client, login_as):
    login_as('teacher1')
    assert client.get('/teacher/classes/9999').status_code == 404


def test_new_progress_form_prefills_class(client, login_as, school_data):
    login_as('teacher1')
    response = client.get(f"/teacher/progress/new?class_id={school_data['class_maths']}")
    assert response.status_code == 200
    assert b'Ben Brown' in response.data


def test_record_progress(client, app, login_as, school_data):
    login_as('teacher1')
    response = client.post('/teacher/progress/new', data=_progress_form(school_data))
    assert response.status_code == 302
    assert response.location.endswith(f"/teacher/classes/{school_data['class_maths']}")

    with app.app_context():
        record = Progress.query.filter_by(assignment_name='Geometry').one()
        assert record.student_id == school_data['student2']
        assert record.school_id == school_data['school_a']
        assert record.percentage == 75.0


def test_record_progress_for_student_outside_teachers_classes(client, app, login_as, school_data):
    login_as('teacher1')
    response = client.post('/teacher/progress/new', data=_progress_form(school_data,
                                                                        student_id=school_data['student3']))
    assert response.status_code == 200
    with app.app_context():
        assert Progress.query.filter_by(assignment_name='Geometry').first() is None


def test_record_progress_score_above_max(client, app, login_as, school_data):
    login_as('teacher1')
    response = client.post('/teacher/progress/new', data=_progress_form(school_data, score='25'))
    assert response.status_code == 200
    assert b'Score cannot exceed max score' in response.data


def test_edit_progress(client, app, login_as, school_data):
    login_as('teacher1')
    progress_id = school_data['progress_amy_fractions']
    assert client.get(f'/teacher/progress/{progress_id}/edit').status_code == 200

    response = client.post(f'/teacher/progress/{progress_id}/edit', data=_progress_form(
        school_data, student_id=school_data['student1'], assignment_name='Fractions', score='9', max_score='10',
        date_completed='2024-09-02'))
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Progress, progress_id).score == 9


def test_edit_progress_of_another_teacher_is_not_found(client, login_as, school_data):
    login_as('teacher2')
    assert client.get(f"/teacher/progress/{school_data['progress_amy_fractions']}/edit").status_code == 404


def test_delete_progress(client, app, login_as, school_data):
    login_as('teacher1')
    progress_id = school_data['progress_ben_fractions']
    response = client.post(f'/teacher/progress/{progress_id}/delete')
    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Progress, progress_id) is None


def test_delete_requires_post(client, login_as, school_data):
    login_as('teacher1')
    assert client.get(f"/teacher/progress/{school_data['progress_ben_fractions']}/delete").status_code == 405


def test_refresh_class_analytics(client, app, login_as, mongo_client, school_data):
    login_as('teacher1')
    response = client.post(f"/teacher/classes/{school_data['class_maths']}/analytics/refresh")
    assert response.status_code == 302

    database = mongo_client[app.config['MONGO_DB_NAME']]
    assert database['class_analytics'].count_documents({'class_id': school_data['class_maths']}) == 1
    assert database['student_analytics'].count_documents({'class_id': school_data['class_maths']}) == 2

    # Stored analytics show up on the class page
    response = client.get(f"/teacher/classes/{school_data['class_maths']}")
    assert b'Completion' in response.data


def test_refresh_other_teachers_class_is_forbidden(client, login_as, school_data):
    login_as('teacher2')
    assert client.post(f"/teacher/classes/{school_data['class_maths']}/analytics/refresh").status_code == 403
