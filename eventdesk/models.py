import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from eventdesk.database import db

TASK_PENDING = 'pending'
TASK_COMPLETED = 'completed'
TASK_STATUSES = (TASK_PENDING, TASK_COMPLETED)


def new_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=True)  # empty for federated accounts
    provider = db.Column(db.String(40), nullable=False, default='email')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def set_password(self, password):
        """Hashes the password before storing it."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Checks a plain password against the stored hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(200), nullable=False)
    date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    tasks = db.relationship('Task', back_populates='event', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description or '',
            'location': self.location,
            'date': self.date,
        }


class Attendee(db.Model):
    __tablename__ = 'attendees'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    task = db.Column(db.String(300), nullable=True)  # free text, not a Task reference
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    # no delete cascade: deleting an attendee clears attendee_id on its tasks
    tasks = db.relationship('Task', back_populates='attendee')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'task': self.task or '',
        }


class Task(db.Model):
    __tablename__ = 'tasks'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    deadline = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TASK_PENDING)
    event_id = db.Column(db.String(36), db.ForeignKey('events.id'), nullable=False)
    attendee_id = db.Column(db.String(36), db.ForeignKey('attendees.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    event = db.relationship('Event', back_populates='tasks')
    attendee = db.relationship('Attendee', back_populates='tasks')

    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'completed')", name='ck_tasks_status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'deadline': self.deadline,
            'status': self.status,
            'event_id': self.event_id,
            'attendee_id': self.attendee_id,
        }
