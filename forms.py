from datetime import date

from flask_wtf import FlaskForm
from wtforms import BooleanField, DateField, FloatField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, EqualTo, InputRequired, Length, NumberRange, Optional, \
    Regexp, ValidationError

from permissions import ROLES, ROLE_LABELS, STUDENT, TEACHER, TEACHING_ROLES

PASSWORD_STRENGTH = r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)'

ROLE_CHOICES = [(role, ROLE_LABELS[role]) for role in ROLES]


def optional_int(value):
    """Coerce a select value to int, mapping '' and None to None."""
    if value in (None, '', 'None'):
        return None
    return int(value)


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[
        DataRequired('Email is required'),
        Email('Please enter a valid email address'),
    ])
    password = PasswordField('Password', validators=[
        DataRequired('Password is required'),
        Length(min=6, message='Password must be at least 6 characters long'),
    ])
    remember = BooleanField('Remember me')


class ProfileSetupForm(FlaskForm):
    full_name = StringField('Full Name', validators=[
        DataRequired('Full name is required'),
        Length(min=2, max=100, message='Full name must be between 2 and 100 characters long'),
    ])
    school_id = SelectField('School', coerce=optional_int, validators=[DataRequired('Please select a school')])
    role = SelectField('Role', choices=ROLE_CHOICES, validators=[DataRequired('Please select a role')])
    class_id = SelectField('Class', coerce=optional_int, validate_choice=False)
    subject = StringField('Subject', validators=[Length(max=100)])

    def validate_class_id(self, field):
        # Students and teachers must have a class
        if self.role.data in (STUDENT, TEACHER) and not field.data:
            raise ValidationError('Class selection is required for students and teachers')

    def validate_subject(self, field):
        if self.role.data in TEACHING_ROLES and not (field.data or '').strip():
            raise ValidationError('Subject is required for teachers')

    def profile_data(self):
        return {
            'full_name': self.full_name.data,
            'school_id': self.school_id.data,
            'role': self.role.data,
            'class_id': self.class_id.data,
            'subject': (self.subject.data or '').strip() or None,
        }


class SignUpForm(ProfileSetupForm):
    email = StringField('Email', validators=[
        DataRequired('Email is required'),
        Email('Please enter a valid email address'),
    ])
    password = PasswordField('Password', validators=[
        DataRequired('Password is required'),
        Length(min=8, message='Password must be at least 8 characters long'),
        Regexp(PASSWORD_STRENGTH, message='Password must contain at least one lowercase letter, '
                                          'one uppercase letter, and one number'),
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired('Please confirm your password'),
        EqualTo('password', message="Passwords don't match"),
    ])


class ProfileUpdateForm(FlaskForm):
    full_name = StringField('Full Name', validators=[
        DataRequired('Full name is required'),
        Length(min=2, max=100, message='Full name must be between 2 and 100 characters long'),
    ])
    class_id = SelectField('Class', coerce=optional_int, validators=[Optional()], validate_choice=False)
    subject = StringField('Subject', validators=[Optional(), Length(max=100)])


class ProgressForm(FlaskForm):
    student_id = SelectField('Student', coerce=optional_int, validators=[DataRequired('Please select a student')])
    class_id = SelectField('Class', coerce=optional_int, validators=[DataRequired('Please select a class')])
    assignment_name = StringField('Assignment', validators=[
        DataRequired('Assignment name is required'),
        Length(max=200),
    ])
    score = FloatField('Score', validators=[
        InputRequired('Score is required'),
        NumberRange(min=0, message='Score cannot be negative'),
    ])
    max_score = FloatField('Max Score', default=100, validators=[InputRequired('Max score is required')])
    date_completed = DateField('Date Completed', default=date.today, validators=[DataRequired('Date is required')])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=2000)])

    def validate_max_score(self, field):
        if field.data is not None and field.data <= 0:
            raise ValidationError('Max score must be greater than zero')
        if self.score.data is not None and field.data is not None and self.score.data > field.data:
            raise ValidationError('Score cannot exceed max score')

    def progress_data(self):
        return {
            'student_id': self.student_id.data,
            'class_id': self.class_id.data,
            'assignment_name': self.assignment_name.data,
            'score': self.score.data,
            'max_score': self.max_score.data,
            'date_completed': self.date_completed.data,
            'notes': self.notes.data,
        }
