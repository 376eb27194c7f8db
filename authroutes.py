# Core Flask imports
from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app
from flask_login import current_user, login_required

# Database and model imports
from extensions import db

# Application imports
from error_handler import AppError
from forms import LoginForm, ProfileSetupForm, ProfileUpdateForm, SignUpForm
from permissions import dashboard_for_role
from services.activity_log import log_activity
from services.auth_state import get_auth_state, refresh_profile, sign_in, sign_out, sign_up
from services.queries import create_user_profile, get_all_classes, get_schools, update_user_profile

auth_blueprint = Blueprint('auth', __name__)

SIGNUP_SUCCESS_MESSAGE = 'Account created successfully. Please log in.'


def safe_redirect_target(target):
    """Only local absolute paths are followed after sign-in."""
    if target and target.startswith('/') and not target.startswith('//') and '\\' not in target:
        return target
    return '/'


def school_choices():
    return [(school.id, school.name) for school in get_schools()]


def class_choices(school_id=None):
    classes = get_all_classes()
    if school_id is not None:
        classes = [c for c in classes if c.school_id == school_id]
    return [('', '-- No class --')] + [(c.id, f"{c.name} - {c.subject}") for c in classes]


@auth_blueprint.route('/')
def home():
    return render_template('shared/home.html')


@auth_blueprint.route('/about')
def about():
    return render_template('shared/about.html')


@auth_blueprint.route('/contact')
def contact():
    return render_template('shared/contact.html')


@auth_blueprint.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('auth.home'))

    redirected_from = request.args.get('redirectedFrom')
    message = request.args.get('message')
    if message and request.method == 'GET':
        flash(message, 'success')

    form = LoginForm()
    if form.validate_on_submit():
        user, error = sign_in(form.email.data, form.password.data, remember=form.remember.data)
        if error:
            flash(error, 'danger')
        else:
            flash('Logged in successfully.', 'success')
            return redirect(safe_redirect_target(redirected_from))

    return render_template('shared/login.html', form=form, redirected_from=redirected_from)


@auth_blueprint.route('/signup', methods=['GET', 'POST'])
def signup():
    if current_user.is_authenticated:
        return redirect(url_for('auth.home'))

    form = SignUpForm()
    form.school_id.choices = school_choices()
    form.class_id.choices = class_choices()

    if form.validate_on_submit():
        try:
            user, error = sign_up(form.email.data, form.password.data, form.profile_data())
        except AppError as e:
            db.session.rollback()
            error = e.message
        if error:
            flash(error, 'danger')
        else:
            return redirect(url_for('auth.login', message=SIGNUP_SUCCESS_MESSAGE))

    return render_template('shared/signup.html', form=form)


@auth_blueprint.route('/logout')
@login_required
def logout():
    sign_out()
    flash('You have been logged out.', 'info')
    return redirect(url_for('auth.login'))


@auth_blueprint.route('/dashboard')
@login_required
def dashboard():
    """Redirects user to the appropriate dashboard based on their role."""
    state = get_auth_state()
    if not state.profile:
        return redirect(url_for('auth.home'))
    return redirect(dashboard_for_role(state.profile.role))


@auth_blueprint.route('/unauthorized')
def unauthorized():
    return render_template('shared/unauthorized.html'), 403


@auth_blueprint.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    """Set up a missing profile, or update the name, class and subject of an existing one."""
    state = get_auth_state()

    if state.profile is None:
        form = ProfileSetupForm()
        form.school_id.choices = school_choices()
        form.class_id.choices = class_choices()
        if form.validate_on_submit():
            try:
                create_user_profile(current_user, form.profile_data())
            except AppError as e:
                db.session.rollback()
                flash(e.message, 'danger')
            else:
                log_activity(current_user.id, 'profile_created', {'role': form.role.data})
                refresh_profile()
                flash('Your profile is ready.', 'success')
                return redirect(url_for('auth.dashboard'))
        return render_template('shared/profile_setup.html', form=form)

    form = ProfileUpdateForm(obj=state.profile)
    form.class_id.choices = class_choices(state.profile.school_id)
    if form.validate_on_submit():
        try:
            update_user_profile(state.profile, {
                'full_name': form.full_name.data,
                'class_id': form.class_id.data,
                'subject': form.subject.data,
            })
        except AppError as e:
            db.session.rollback()
            flash(e.message, 'danger')
        else:
            log_activity(current_user.id, 'profile_updated')
            current_app.logger.info(f"Profile {state.profile.id} updated")
            flash('Profile updated.', 'success')
            return redirect(url_for('auth.profile'))

    return render_template('shared/profile.html', form=form, profile=state.profile)
