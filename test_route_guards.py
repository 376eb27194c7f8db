"""
Every view behind a role-gated prefix must also carry a guard decorator, so
a change to the edge gate can never expose a page on its own.
"""

from permissions import is_public_route, required_roles_for_path

# Views that check access themselves instead of through a decorator
UNGUARDED_ALLOWLIST = {
    'auth.home',
    'auth.about',
    'auth.contact',
    'auth.login',
    'auth.signup',
    'auth.unauthorized',
    'api.auth_session',
    'static',
}


def test_gated_views_carry_guard_decorators(app):
    missing = []
    for rule in app.url_map.iter_rules():
        if rule.endpoint in UNGUARDED_ALLOWLIST:
            continue
        view = app.view_functions[rule.endpoint]
        if not hasattr(view, '__wrapped__'):
            missing.append(rule.rule)

    assert not missing, f"views missing a guard decorator: {missing}"


def test_every_route_is_public_or_gated(app):
    for rule in app.url_map.iter_rules():
        if rule.endpoint == 'static':
            continue
        path = rule.rule.split('<', 1)[0]
        if rule.endpoint in UNGUARDED_ALLOWLIST:
            assert is_public_route(path) or path == '/unauthorized', rule.rule
        elif path.startswith(('/teacher', '/student', '/head-teacher')):
            assert required_roles_for_path(path) is not None, rule.rule


def test_route_guard_rechecks_the_request_path(app, school_data):
    from decorators import route_guard
    from services.auth_state import sign_in

    view = route_guard(lambda: 'ok')

    with app.test_request_context('/student/dashboard'):
        sign_in('amy@northfield.example.org', 'Password1')
        assert view() == 'ok'

    with app.test_request_context('/head-teacher/members'):
        sign_in('amy@northfield.example.org', 'Password1')
        body, status = view()
        assert status == 403
        assert 'Access Denied' in body
