"""
Progress entry routes: record, edit and delete assignment results.
"""

from flask import Blueprint, render_template, redirect, url_for, flash, request, abort, current_app
from flask_login import current_user

from decorators import teacher_required
from error_handler import AppError
from extensions import db
from forms import ProgressForm
from models import Progress
from services.activity_log import log_activity
from services.queries import check_user_permission, create_progress, delete_progress, update_progress
from .utils import class_choices, current_profile, student_choices

bp = Blueprint('progress', __name__)


def _back_to_class(class_id):
    return redirect(url_for('teacher.dashboard.class_detail', class_id=class_id))


@bp.route('/progress/new', methods=['GET', 'POST'])
@teacher_required
def new_progress():
    """Record a result for a student in one of the teacher's classes."""
    profile = current_profile()
    form = ProgressForm()
    selected_class = request.args.get('class_id', type=int)
    if selected_class and request.method == 'GET':
        form.class_id.data = selected_class
    form.class_id.choices = class_choices(profile)
    form.student_id.choices = student_choices(profile)

    if form.validate_on_submit():
        try:
            record = create_progress(form.progress_data(), profile=profile)
        except AppError as e:
            db.session.rollback()
            flash(e.message, 'danger')
        else:
            log_activity(current_user.id, 'progress_created',
                         {'progress_id': record.id, 'class_id': record.class_id})
            flash('Progress recorded.', 'success')
            return _back_to_class(record.class_id)

    return render_template('teacher/progress_form.html', form=form, record=None)


@bp.route('/progress/<int:progress_id>/edit', methods=['GET', 'POST'])
@teacher_required
def edit_progress(progress_id):
    profile = current_profile()
    if not check_user_permission('progress', progress_id, profile=profile):
        abort(404)
    record = db.session.get(Progress, progress_id)

    form = ProgressForm(obj=record)
    # Student and class are fixed once a record exists
    form.class_id.choices = [(record.class_id, record.school_class.name)]
    form.student_id.choices = [(record.student_id, record.student.full_name)]

    if form.validate_on_submit():
        data = form.progress_data()
        del data['student_id'], data['class_id']
        try:
            update_progress(progress_id, data, profile=profile)
        except AppError as e:
            db.session.rollback()
            flash(e.message, 'danger')
        else:
            log_activity(current_user.id, 'progress_updated', {'progress_id': progress_id})
            flash('Progress updated.', 'success')
            return _back_to_class(record.class_id)

    return render_template('teacher/progress_form.html', form=form, record=record)


@bp.route('/progress/<int:progress_id>/delete', methods=['POST'])
@teacher_required
def remove_progress(progress_id):
    profile = current_profile()
    if not check_user_permission('progress', progress_id, profile=profile):
        abort(404)
    class_id = db.session.get(Progress, progress_id).class_id

    delete_progress(progress_id, profile=profile)
    log_activity(current_user.id, 'progress_deleted', {'progress_id': progress_id})
    current_app.logger.info(f"Progress {progress_id} deleted by {profile.id}")
    flash('Progress record deleted.', 'success')
    return _back_to_class(class_id)
