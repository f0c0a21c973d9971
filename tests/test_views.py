"""End-to-end tests through the Flask test client."""
import unittest
from datetime import datetime
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

from helpers import AppTestCase

from eventdesk.database import db
from eventdesk.gateway import DataGateway
from eventdesk.models import User


class ClientTestCase(AppTestCase):

    def setUp(self) -> None:
        super().setUp()
        # requests must push their own app context so g does not leak between them
        self.ctx.pop()
        self.ctx = None
        self.client = self.app.test_client()

    def submit_token(self, token='tok') -> str:
        with self.client.session_transaction() as sess:
            sess['login_token'] = token
        return token

    def login(self, email='owner@example.com', password='secret'):
        return self.client.post('/login', data={
            'email': email, 'password': password, 'submit_token': self.submit_token(),
        })

    def html(self, response) -> str:
        return response.get_data(as_text=True)


class TestRouteGuard(ClientTestCase):
    """Protected pages need a session."""

    def test_anonymous_tasks_redirects_without_fetch(self) -> None:
        with patch.object(DataGateway, 'select') as select:
            response = self.client.get('/tasks')

        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers['Location'])
        self.assertEqual(location.path, '/login')
        self.assertEqual(parse_qs(location.query)['next'], ['/tasks'])
        select.assert_not_called()

    def test_root_goes_to_events(self) -> None:
        self.login()

        response = self.client.get('/')

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers['Location'].endswith('/events'))


class TestLogin(ClientTestCase):
    """Password sign-in, sign-out and the double-submit guard."""

    def test_password_sign_in(self) -> None:
        response = self.login()

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers['Location'].endswith('/events'))
        self.assertIn('owner@example.com', self.html(self.client.get('/events')))

    def test_sign_in_returns_to_next(self) -> None:
        response = self.client.post('/login', data={
            'email': 'owner@example.com', 'password': 'secret',
            'submit_token': self.submit_token(), 'next': '/tasks',
        })

        self.assertEqual(response.headers['Location'], '/tasks')

    def test_wrong_password_stays_on_login(self) -> None:
        response = self.login(password='nope')

        self.assertEqual(response.status_code, 200)
        self.assertIn('Invalid login credentials', self.html(response))
        self.assertIn('value="owner@example.com"', self.html(response))
        self.assertEqual(self.client.get('/events').status_code, 302)

    def test_reused_submit_token_is_ignored(self) -> None:
        token = self.submit_token()
        self.client.post('/login', data={'email': 'owner@example.com', 'password': 'nope', 'submit_token': token})

        response = self.client.post('/login', data={
            'email': 'owner@example.com', 'password': 'secret', 'submit_token': token,
        })

        self.assertEqual(response.status_code, 200)
        self.assertIn('Sign-in is already in progress.', self.html(response))
        self.assertEqual(self.client.get('/events').status_code, 302)

    def test_signed_in_visitor_skips_login(self) -> None:
        self.login()

        response = self.client.get('/login')

        self.assertEqual(response.status_code, 302)

    def test_logout(self) -> None:
        self.login()

        response = self.client.post('/logout', follow_redirects=True)

        self.assertIn('You have been logged out.', self.html(response))
        self.assertEqual(self.client.get('/events').status_code, 302)


class TestFederatedLogin(ClientTestCase):
    """OAuth redirect flow with the provider calls stubbed out."""

    def start(self) -> str:
        response = self.client.post('/login/google', data={'submit_token': self.submit_token()})
        self.assertEqual(response.status_code, 302)
        target = urlparse(response.headers['Location'])
        self.assertEqual(target.netloc, 'accounts.google.com')
        return parse_qs(target.query)['state'][0]

    @patch('eventdesk.auth.requests')
    def test_callback_signs_in_new_account(self, requests_mock) -> None:
        requests_mock.RequestException = Exception
        requests_mock.post.return_value = Mock(**{'json.return_value': {'access_token': 'at'}})
        requests_mock.get.return_value = Mock(**{'json.return_value': {
            'email': 'New@Example.com', 'email_verified': True,
        }})
        state = self.start()

        response = self.client.get(f'/auth/callback/google?code=abc&state={state}')

        self.assertTrue(response.headers['Location'].endswith('/events'))
        self.assertIn('new@example.com', self.html(self.client.get('/events')))
        token_call = requests_mock.post.call_args
        self.assertEqual(token_call.kwargs['data']['code'], 'abc')

    @patch('eventdesk.auth.requests')
    def test_unverified_email_cannot_take_over_account(self, requests_mock) -> None:
        self.add_event('Private')
        requests_mock.RequestException = Exception
        requests_mock.post.return_value = Mock(**{'json.return_value': {'access_token': 'at'}})
        requests_mock.get.return_value = Mock(**{'json.return_value': {
            'email': 'owner@example.com', 'email_verified': False,
        }})
        state = self.start()

        response = self.client.get(f'/auth/callback/google?code=abc&state={state}', follow_redirects=True)

        self.assertIn('Google has not verified owner@example.com', self.html(response))
        events = self.client.get('/events')
        self.assertEqual(events.status_code, 302)
        self.assertNotIn('Private', self.html(events))

    @patch('eventdesk.auth.requests')
    def test_missing_verification_flag_is_refused(self, requests_mock) -> None:
        requests_mock.RequestException = Exception
        requests_mock.post.return_value = Mock(**{'json.return_value': {'access_token': 'at'}})
        requests_mock.get.return_value = Mock(**{'json.return_value': {'email': 'new@example.com'}})
        state = self.start()

        self.client.get(f'/auth/callback/google?code=abc&state={state}')

        self.assertEqual(self.client.get('/events').status_code, 302)
        with self.app.app_context():
            self.assertIsNone(db.session.execute(
                db.select(User).filter_by(email='new@example.com')).scalar_one_or_none())

    def test_callback_with_wrong_state_fails(self) -> None:
        self.start()

        response = self.client.get('/auth/callback/google?code=abc&state=forged', follow_redirects=True)

        self.assertIn('Sign-in request expired', self.html(response))

    def test_provider_error_is_shown(self) -> None:
        response = self.client.get('/auth/callback/google?error=access_denied', follow_redirects=True)

        self.assertIn('access_denied', self.html(response))

    def test_unknown_provider(self) -> None:
        response = self.client.post('/login/myspace', data={'submit_token': self.submit_token()},
                                    follow_redirects=True)

        self.assertIn('Unsupported provider: myspace', self.html(response))


class TestRecordRoutes(ClientTestCase):
    """Create, edit, toggle and delete through the pages."""

    def setUp(self) -> None:
        super().setUp()
        self.login()

    def test_create_event(self) -> None:
        response = self.client.post('/events', data={
            'name': 'Launch', 'location': 'HQ', 'date': '2025-06-01T10:00', 'description': '',
        }, follow_redirects=True)

        body = self.html(response)
        self.assertIn('Event created successfully', body)
        self.assertIn('Launch', body)
        self.assertEqual(len(self.rows('events')), 1)

    def test_invalid_event_keeps_values(self) -> None:
        response = self.client.post('/events', data={'name': 'Launch', 'location': '', 'date': ''})

        body = self.html(response)
        self.assertEqual(response.status_code, 200)
        self.assertIn('Please fill in: Location, Date', body)
        self.assertIn('value="Launch"', body)

    def test_new_query_opens_form(self) -> None:
        closed = self.html(self.client.get('/events'))
        opened = self.html(self.client.get('/events?new=1'))

        self.assertNotIn('Create Event', closed)
        self.assertIn('Create Event', opened)

    def test_edit_event_updates_in_place(self) -> None:
        event = self.add_event('Launch')

        form = self.html(self.client.get(f"/events/{event['id']}/edit"))
        self.assertIn('value="2025-06-01T10:00"', form)
        self.client.post(f"/events/{event['id']}", data={
            'name': 'Launch v2', 'location': 'HQ', 'date': '2025-06-02T10:00', 'description': 'moved',
        })

        rows = self.rows('events')
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['name'], 'Launch v2')
        self.assertEqual(rows[0]['date'], datetime(2025, 6, 2, 10, 0))

    def test_editing_someone_elses_event_is_404(self) -> None:
        event = self.add_event('Theirs', user_id=self.other_id)

        self.assertEqual(self.client.get(f"/events/{event['id']}/edit").status_code, 404)

    def test_delete_needs_confirmation(self) -> None:
        attendee = self.add_attendee('Dana')

        confirm = self.client.get(f"/attendees/{attendee['id']}/delete")
        self.assertIn('Are you sure', self.html(confirm))
        self.client.post(f"/attendees/{attendee['id']}/delete", data={'confirm': 'no'})
        self.assertEqual(len(self.rows('attendees')), 1)

        response = self.client.post(f"/attendees/{attendee['id']}/delete", data={'confirm': 'yes'},
                                    follow_redirects=True)
        self.assertIn('Attendee deleted successfully', self.html(response))
        self.assertEqual(self.rows('attendees'), [])

    def test_task_lifecycle(self) -> None:
        event = self.add_event('Launch')

        self.client.post('/tasks', data={
            'name': 'Prep deck', 'deadline': '2025-05-30T09:00', 'event_id': event['id'], 'attendee_id': '',
        })
        task = self.rows('tasks')[0]
        self.assertEqual(task['status'], 'pending')

        self.client.post(f"/tasks/{task['id']}/toggle")
        self.assertEqual(self.rows('tasks')[0]['status'], 'completed')
        page = self.html(self.client.get('/tasks'))
        self.assertIn('Event: Launch', page)

        self.client.post(f"/tasks/{task['id']}/toggle")
        self.assertEqual(self.rows('tasks')[0]['status'], 'pending')

        self.client.post(f"/tasks/{task['id']}/delete", data={'confirm': 'yes'})
        self.assertEqual(self.rows('tasks'), [])

    def test_task_form_lists_own_events(self) -> None:
        self.add_event('Mine')
        self.add_event('Theirs', user_id=self.other_id)

        body = self.html(self.client.get('/tasks?new=1'))

        self.assertIn('Mine', body)
        self.assertNotIn('Theirs', body)


if __name__ == '__main__':
    unittest.main()
