"""Shared fixtures for the test suites."""
import unittest
from datetime import datetime
from typing import List, Tuple

from eventdesk.app import create_app, create_user
from eventdesk.config import TestingConfig
from eventdesk.database import db
from eventdesk.gateway import DataGateway


class StubUser:
    def __init__(self, user_id: str):
        self.id = user_id


class StubAuth:
    """Stands in for AuthService outside a request."""

    def __init__(self, user_id=None):
        self.user = StubUser(user_id) if user_id else None

    def get_current_user(self):
        return self.user


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.messages.append(('success', message))

    def error(self, message: str) -> None:
        self.messages.append(('error', message))

    @property
    def errors(self) -> List[str]:
        return [m for kind, m in self.messages if kind == 'error']


class AppTestCase(unittest.TestCase):
    """Fresh app and in-memory database per test, with two accounts."""

    def setUp(self) -> None:
        self.app = create_app(TestingConfig)
        with self.app.app_context():
            db.create_all()
            self.user_id = create_user('owner@example.com', 'secret').id
            self.other_id = create_user('other@example.com', 'secret').id
        self.gateway = DataGateway()
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self) -> None:
        if self.ctx is not None:
            self.ctx.pop()
        with self.app.app_context():
            db.drop_all()

    def rows(self, collection, user_id=None):
        with self.app.app_context():
            return self.gateway.select(collection, user_id or self.user_id)

    def add_event(self, name='Launch', when=datetime(2025, 6, 1, 10, 0), user_id=None, location='HQ'):
        with self.app.app_context():
            return self.gateway.insert('events', user_id or self.user_id, {
                'name': name, 'description': '', 'location': location, 'date': when,
            })

    def add_attendee(self, name='Dana', email='dana@example.com', user_id=None):
        with self.app.app_context():
            return self.gateway.insert('attendees', user_id or self.user_id, {
                'name': name, 'email': email, 'task': '',
            })

    def add_task(self, event_id, name='Prep deck', deadline=datetime(2025, 5, 30, 9, 0), attendee_id=None):
        with self.app.app_context():
            return self.gateway.insert('tasks', self.user_id, {
                'name': name, 'deadline': deadline, 'status': 'pending',
                'event_id': event_id, 'attendee_id': attendee_id,
            })
