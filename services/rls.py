"""
Row-level security session context.

The policies installed by migrations/versions/0001_initial.py read the
acting user from the ``app.current_user_id`` setting. This module sets it,
transaction-local, on PostgreSQL connections: once when the auth state is
loaded, before the profile is read, and again at the start of every later
transaction in the same request. Other backends have no RLS, so both are
no-ops there and the query helpers' own scoping is all there is.
"""

from flask import current_app, g, has_app_context
from sqlalchemy import event, text
from sqlalchemy.orm import Session

from extensions import db

SETTING_NAME = 'app.current_user_id'
SET_CONFIG_SQL = text("SELECT set_config(:name, :value, true)")


def rls_enabled(dialect_name=None):
    if not current_app.config.get('RLS_SESSION_CONTEXT'):
        return False
    if dialect_name is None:
        dialect_name = db.engine.dialect.name
    return dialect_name == 'postgresql'


def _setting_value(user_id):
    return '' if user_id is None else str(user_id)


def apply_rls_context(user_id):
    """Bind ``user_id`` (or nobody) to the current request's transactions."""
    if not rls_enabled():
        return False
    g.rls_user_id = user_id
    db.session.execute(SET_CONFIG_SQL, {'name': SETTING_NAME, 'value': _setting_value(user_id)})
    return True


def _on_transaction_begin(session, transaction, connection):
    if not has_app_context() or 'rls_user_id' not in g:
        return
    if not rls_enabled(connection.dialect.name):
        return
    connection.execute(SET_CONFIG_SQL, {'name': SETTING_NAME, 'value': _setting_value(g.rls_user_id)})


def init_rls(app):
    if not event.contains(Session, 'after_begin', _on_transaction_begin):
        event.listen(Session, 'after_begin', _on_transaction_begin)
    app.logger.debug("RLS session context %s", 'enabled' if app.config.get('RLS_SESSION_CONTEXT') else 'disabled')
