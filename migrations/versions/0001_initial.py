"""Initial schema: users, schools, profiles, classes, progress and the activity log.

On PostgreSQL this also enables row-level security on the school data and
installs the policies. Policies identify the acting user through the
transaction-local setting app.current_user_id, which the application sets
at the start of each request and each transaction.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

RLS_TABLES = ('schools', 'classes', 'user_profiles', 'progress')

# SECURITY DEFINER so the lookups are not themselves filtered by the user_profiles policies
RLS_FUNCTIONS = '''
CREATE OR REPLACE FUNCTION app_current_profile_id() RETURNS integer
    LANGUAGE sql STABLE AS $$
    SELECT NULLIF(current_setting('app.current_user_id', true), '')::integer
$$;

CREATE OR REPLACE FUNCTION app_current_role() RETURNS text
    LANGUAGE sql STABLE SECURITY DEFINER AS $$
    SELECT role FROM user_profiles WHERE id = app_current_profile_id()
$$;

CREATE OR REPLACE FUNCTION app_current_school_id() RETURNS integer
    LANGUAGE sql STABLE SECURITY DEFINER AS $$
    SELECT school_id FROM user_profiles WHERE id = app_current_profile_id()
$$;

CREATE OR REPLACE FUNCTION app_teaches_class(target_class_id integer) RETURNS boolean
    LANGUAGE sql STABLE SECURITY DEFINER AS $$
    SELECT EXISTS (
        SELECT 1 FROM classes WHERE id = target_class_id AND teacher_id = app_current_profile_id()
    )
$$;
'''

RLS_POLICIES = '''
-- Schools and classes are listed on the sign-up form, before anyone is signed in
CREATE POLICY schools_select ON schools FOR SELECT USING (true);
CREATE POLICY schools_manage ON schools FOR ALL
    USING (app_current_role() = 'head_teacher' AND id = app_current_school_id())
    WITH CHECK (app_current_role() = 'head_teacher' AND id = app_current_school_id());

CREATE POLICY classes_select ON classes FOR SELECT USING (true);
CREATE POLICY classes_manage ON classes FOR ALL
    USING (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
    WITH CHECK (app_current_role() = 'head_teacher' AND school_id = app_current_school_id());

CREATE POLICY profiles_select ON user_profiles FOR SELECT USING (
    id = app_current_profile_id()
    OR (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
    OR (app_current_role() = 'teacher' AND school_id = app_current_school_id())
);
CREATE POLICY profiles_insert ON user_profiles FOR INSERT
    WITH CHECK (id = app_current_profile_id());
CREATE POLICY profiles_update ON user_profiles FOR UPDATE
    USING (
        id = app_current_profile_id()
        OR (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
    );

CREATE POLICY progress_select ON progress FOR SELECT USING (
    student_id = app_current_profile_id()
    OR (app_current_role() = 'teacher' AND app_teaches_class(class_id))
    OR (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
);
CREATE POLICY progress_write ON progress FOR ALL
    USING (
        (app_current_role() = 'teacher' AND app_teaches_class(class_id))
        OR (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
    )
    WITH CHECK (
        (app_current_role() = 'teacher' AND app_teaches_class(class_id))
        OR (app_current_role() = 'head_teacher' AND school_id = app_current_school_id())
    );
'''


def _is_postgres():
    return op.get_bind().dialect.name == 'postgresql'


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(256), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_sign_in_at', sa.DateTime(), nullable=True),
        sa.Column('login_count', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'schools',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # class_id gets its foreign key once classes exists
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('full_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('class_id', sa.Integer(), nullable=True),
        sa.Column('subject', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('student', 'teacher', 'head_teacher')", name='ck_user_profiles_role'),
    )

    op.create_table(
        'classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('user_profiles.id'), nullable=True),
        sa.Column('subject', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    if op.get_bind().dialect.name != 'sqlite':
        op.create_foreign_key('fk_user_profiles_class_id', 'user_profiles', 'classes', ['class_id'], ['id'])

    op.create_table(
        'progress',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('user_profiles.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('assignment_name', sa.String(200), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=False),
        sa.Column('date_completed', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('score >= 0', name='ck_progress_score_non_negative'),
        sa.CheckConstraint('max_score > 0', name='ck_progress_max_score_positive'),
    )

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
    )

    op.create_index('ix_user_profiles_school_role', 'user_profiles', ['school_id', 'role'])
    op.create_index('ix_classes_teacher_id', 'classes', ['teacher_id'])
    op.create_index('ix_progress_student_date', 'progress', ['student_id', 'date_completed'])
    op.create_index('ix_progress_class_date', 'progress', ['class_id', 'date_completed'])
    op.create_index('ix_progress_school_id', 'progress', ['school_id'])
    op.create_index('ix_activity_log_user_timestamp', 'activity_log', ['user_id', 'timestamp'])

    if _is_postgres():
        op.execute(RLS_FUNCTIONS)
        for table in RLS_TABLES:
            op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(RLS_POLICIES)


def downgrade():
    if _is_postgres():
        for table in RLS_TABLES:
            op.execute(f'ALTER TABLE {table} DISABLE ROW LEVEL SECURITY')
        for policy, table in (
            ('schools_select', 'schools'), ('schools_manage', 'schools'),
            ('classes_select', 'classes'), ('classes_manage', 'classes'),
            ('profiles_select', 'user_profiles'), ('profiles_insert', 'user_profiles'),
            ('profiles_update', 'user_profiles'),
            ('progress_select', 'progress'), ('progress_write', 'progress'),
        ):
            op.execute(f'DROP POLICY IF EXISTS {policy} ON {table}')

    op.drop_table('activity_log')
    op.drop_table('progress')
    if op.get_bind().dialect.name != 'sqlite':
        op.drop_constraint('fk_user_profiles_class_id', 'user_profiles', type_='foreignkey')
    op.drop_table('classes')
    op.drop_table('user_profiles')
    op.drop_table('schools')
    op.drop_table('users')

    if _is_postgres():
        op.execute('DROP FUNCTION IF EXISTS app_teaches_class(integer)')
        op.execute('DROP FUNCTION IF EXISTS app_current_school_id()')
        op.execute('DROP FUNCTION IF EXISTS app_current_role()')
        op.execute('DROP FUNCTION IF EXISTS app_current_profile_id()')
