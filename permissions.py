"""
Role decision table.

Every role check in the application goes through this module: the edge gate
in middleware.py, the route-guard decorators and the query helpers all ask
the same questions of the same table.
"""

from collections import namedtuple

STUDENT = 'student'
TEACHER = 'teacher'
HEAD_TEACHER = 'head_teacher'

ROLES = (STUDENT, TEACHER, HEAD_TEACHER)

ROLE_LABELS = {
    STUDENT: 'Student',
    TEACHER: 'Teacher',
    HEAD_TEACHER: 'Head Teacher',
}

TEACHING_ROLES = (TEACHER, HEAD_TEACHER)

RolePermissions = namedtuple(
    'RolePermissions',
    ['can_view_all_progress', 'can_edit_progress', 'can_view_school_data', 'can_manage_users'],
)

NO_PERMISSIONS = RolePermissions(False, False, False, False)

ROLE_PERMISSIONS = {
    STUDENT: NO_PERMISSIONS,
    # Teachers see their own classes only
    TEACHER: RolePermissions(
        can_view_all_progress=False,
        can_edit_progress=True,
        can_view_school_data=False,
        can_manage_users=False,
    ),
    # Head teachers see everything in their school
    HEAD_TEACHER: RolePermissions(
        can_view_all_progress=True,
        can_edit_progress=True,
        can_view_school_data=True,
        can_manage_users=True,
    ),
}

# (path prefix, roles allowed). Checked in order, first match wins.
ROUTE_RULES = (
    ('/teacher', frozenset(TEACHING_ROLES)),
    ('/student', frozenset([STUDENT])),
    ('/head-teacher', frozenset([HEAD_TEACHER])),
)

PUBLIC_ROUTES = frozenset(['/', '/login', '/signup', '/about', '/contact'])
PUBLIC_PREFIXES = ('/api/auth',)

AUTH_PAGES = frozenset(['/login', '/signup'])

DASHBOARDS = {
    STUDENT: '/student/dashboard',
    TEACHER: '/teacher',
    HEAD_TEACHER: '/teacher',  # Head teachers share the teacher dashboard
}

LOGIN_PATH = '/login'
UNAUTHORIZED_PATH = '/unauthorized'


def get_role_permissions(role):
    """Return the RolePermissions for ``role``; unknown roles get nothing."""
    return ROLE_PERMISSIONS.get(role, NO_PERMISSIONS)


def has_permission(role, permission):
    """True when ``role`` holds ``permission`` (one of the RolePermissions fields)."""
    return bool(getattr(get_role_permissions(role), permission, False))


def required_roles_for_path(pathname):
    """Roles allowed on ``pathname``, or None when no role rule covers it."""
    for prefix, roles in ROUTE_RULES:
        if pathname.startswith(prefix):
            return roles
    return None


def is_authorized_for_route(role, pathname):
    roles = required_roles_for_path(pathname)
    if roles is None:
        return True
    return role in roles


def is_public_route(pathname):
    return pathname in PUBLIC_ROUTES or pathname.startswith(PUBLIC_PREFIXES)


def dashboard_for_role(role):
    return DASHBOARDS.get(role, '/')
