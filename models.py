from flask_login import UserMixin
from datetime import datetime
from extensions import db

from permissions import ROLES, ROLE_LABELS

ROLE_CHECK = "role IN ({})".format(', '.join(f"'{role}'" for role in ROLES))


class User(db.Model, UserMixin):
    """
    Sign-in identity. Holds the credentials only; everything the application
    knows about the person (school, role, class) lives on UserProfile, which
    may not exist yet for a freshly registered account.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Login tracking
    last_sign_in_at = db.Column(db.DateTime, nullable=True)
    login_count = db.Column(db.Integer, default=0, nullable=False)

    profile = db.relationship('UserProfile', backref='user', uselist=False, lazy=True,
                              cascade='all, delete-orphan')

    @property
    def role(self):
        return self.profile.role if self.profile else None

    def __repr__(self):
        return f"User('{self.email}')"


class School(db.Model):
    __tablename__ = 'schools'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    classes = db.relationship('SchoolClass', backref='school', lazy=True)

    def __repr__(self):
        return f"School('{self.name}')"


class UserProfile(db.Model):
    """
    Role-bearing profile. Shares its primary key with the User it belongs to.
    Students carry the class they sit in; teachers carry the subject they
    teach (and optionally a home class).
    """
    __tablename__ = 'user_profiles'
    __table_args__ = (db.CheckConstraint(ROLE_CHECK, name='ck_user_profiles_role'),)

    id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    full_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id', use_alter=True, name='fk_user_profiles_class_id'),
                         nullable=True)
    subject = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = db.relationship('School', backref='members', lazy=True)
    school_class = db.relationship('SchoolClass', foreign_keys=[class_id], backref='students', lazy=True)

    @property
    def role_label(self):
        return ROLE_LABELS.get(self.role, self.role)

    def __repr__(self):
        return f"UserProfile('{self.full_name}', '{self.role}')"


class SchoolClass(db.Model):
    """A taught class. ``teacher_id`` points at the teacher's profile."""
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('user_profiles.id'), nullable=True)
    subject = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    teacher = db.relationship('UserProfile', foreign_keys=[teacher_id], backref='taught_classes', lazy=True)

    def __repr__(self):
        return f"SchoolClass('{self.name}', '{self.subject}')"


class Progress(db.Model):
    """
    One scored piece of work for one student. ``school_id`` is copied from the
    class on insert so the row-level policies can filter on it directly.
    """
    __tablename__ = 'progress'
    __table_args__ = (
        db.CheckConstraint('score >= 0', name='ck_progress_score_non_negative'),
        db.CheckConstraint('max_score > 0', name='ck_progress_max_score_positive'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=False)
    assignment_name = db.Column(db.String(200), nullable=False)
    score = db.Column(db.Float, nullable=False)
    max_score = db.Column(db.Float, nullable=False)
    date_completed = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = db.relationship('UserProfile', foreign_keys=[student_id], backref='progress_records', lazy=True)
    school_class = db.relationship('SchoolClass', backref='progress_records', lazy=True)

    @property
    def percentage(self):
        if not self.max_score:
            return 0.0
        return round(self.score / self.max_score * 100, 2)

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'class_id': self.class_id,
            'school_id': self.school_id,
            'assignment_name': self.assignment_name,
            'score': self.score,
            'max_score': self.max_score,
            'percentage': self.percentage,
            'date_completed': self.date_completed.isoformat() if self.date_completed else None,
            'notes': self.notes,
            'student': {'full_name': self.student.full_name, 'email': self.student.email} if self.student else None,
            'class': {'name': self.school_class.name, 'subject': self.school_class.subject} if self.school_class else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"Progress(Student: {self.student_id}, '{self.assignment_name}', {self.score}/{self.max_score})"


class ActivityLog(db.Model):
    """
    Model for tracking user activities for auditing and security purposes.
    """
    __tablename__ = 'activity_log'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    success = db.Column(db.Boolean, default=True)
    error_message = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', backref='activity_logs', lazy=True)

    def __repr__(self):
        return f"ActivityLog(User: {self.user_id}, Action: {self.action}, Success: {self.success})"
