"""Page controllers for events, attendees and tasks.

A page owns its local state (``items``, ``form_visible``, ``form``,
``loading``) and talks to the gateway for everything else. Mutations return
``True`` on success and then issue a fresh :meth:`RecordPage.fetch_all`;
nothing is patched into ``items`` locally. Every gateway or form failure is
caught at the operation boundary and handed to the notifier.
"""
from typing import Any, Dict, List, Optional, Tuple

from flask import flash

from eventdesk.forms import AttendeeForm, EventForm, FormError, RecordForm, TaskForm
from eventdesk.gateway import AuthRequiredError, GatewayError
from eventdesk.models import TASK_COMPLETED, TASK_PENDING


class FlashNotifier:
    """Sends page notifications through Flask's message flashing."""

    def success(self, message: str) -> None:
        flash(message, 'success')

    def error(self, message: str) -> None:
        flash(message, 'danger')


class RecordPage:
    collection = ''
    noun = ''
    form_class = RecordForm
    order: Tuple[str, bool] = ('id', True)
    joins: Tuple[str, ...] = ()
    created_verb = 'created'

    def __init__(self, auth, gateway, notifier=None, timezone='UTC'):
        self.auth = auth
        self.gateway = gateway
        self.notifier = notifier or FlashNotifier()
        self.timezone = timezone
        self.items: List[Dict[str, Any]] = []
        self.form_visible = False
        self.form = self.form_class()
        self.loading = True
        self.active = True

    def mount(self) -> None:
        self.fetch_all()

    def unmount(self) -> None:
        """Stop accepting results; a fetch still in flight will be dropped."""
        self.active = False

    def current_user_id(self) -> str:
        user = self.auth.get_current_user()
        if user is None:
            raise AuthRequiredError()
        return user.id

    def fetch_all(self) -> bool:
        self.loading = True
        try:
            records = self.gateway.select(
                self.collection,
                self.current_user_id(),
                order=self.order,
                joins=self.joins,
            )
        except GatewayError as error:
            if self.active:
                self.notifier.error(error.message)
            return False
        finally:
            self.loading = False
        if not self.active:
            return False
        self.items = records
        return True

    def find(self, record_id: str) -> Optional[Dict[str, Any]]:
        for record in self.items:
            if record['id'] == record_id:
                return record
        return None

    def open_form(self) -> None:
        self.form_visible = True

    def close_form(self) -> None:
        self.form_visible = False
        self.form = self.form.cleared()

    def new_record(self, form: RecordForm) -> Dict[str, Any]:
        return form.to_record(self.timezone)

    def create(self, form: RecordForm) -> bool:
        self.form = form
        self.form_visible = True
        try:
            record = self.new_record(form)
            self.gateway.insert(self.collection, self.current_user_id(), record)
        except (FormError, GatewayError) as error:
            self.notifier.error(error.message)
            return False
        self.notifier.success(f'{self.noun} {self.created_verb} successfully')
        self.close_form()
        self.fetch_all()
        return True

    def delete(self, record_id: str, confirmed: bool) -> bool:
        if not confirmed:
            return False
        try:
            self.gateway.delete(self.collection, self.current_user_id(), record_id)
        except GatewayError as error:
            self.notifier.error(error.message)
            return False
        self.notifier.success(f'{self.noun} deleted successfully')
        self.fetch_all()
        return True


class EditableRecordPage(RecordPage):
    """A page whose records can be re-opened in the form and updated in place."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.editing_id: Optional[str] = None

    def edit(self, record: Dict[str, Any]) -> None:
        self.form = self.form_class.from_record(record, self.timezone)
        self.editing_id = record['id']
        self.form_visible = True

    def close_form(self) -> None:
        super().close_form()
        self.editing_id = None

    def submit(self, form: RecordForm) -> bool:
        if self.editing_id is not None:
            return self.update(self.editing_id, form)
        return self.create(form)

    def update(self, record_id: str, form: RecordForm) -> bool:
        self.form = form
        self.editing_id = record_id
        self.form_visible = True
        try:
            patch = form.to_record(self.timezone)
            self.gateway.update(self.collection, self.current_user_id(), record_id, patch)
        except (FormError, GatewayError) as error:
            self.notifier.error(error.message)
            return False
        self.notifier.success(f'{self.noun} updated successfully')
        self.close_form()
        self.fetch_all()
        return True


class EventPage(EditableRecordPage):
    collection = 'events'
    noun = 'Event'
    form_class = EventForm
    order = ('date', True)


class AttendeePage(EditableRecordPage):
    collection = 'attendees'
    noun = 'Attendee'
    form_class = AttendeeForm
    order = ('name', True)

    created_verb = 'added'


class TaskPage(RecordPage):
    collection = 'tasks'
    noun = 'Task'
    form_class = TaskForm
    order = ('deadline', True)
    joins = ('event', 'attendee')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.event_options: List[Dict[str, Any]] = []
        self.attendee_options: List[Dict[str, Any]] = []

    def mount(self) -> None:
        self.fetch_all()
        self.fetch_options()

    def fetch_options(self) -> None:
        """Load (id, name) pairs for the event and attendee selects.

        Failures leave the options empty without a notification.
        """
        try:
            user_id = self.current_user_id()
            self.event_options = self.gateway.select(
                'events', user_id, order=('name', True), columns=('id', 'name'))
            self.attendee_options = self.gateway.select(
                'attendees', user_id, order=('name', True), columns=('id', 'name'))
        except GatewayError:
            self.event_options = []
            self.attendee_options = []

    def new_record(self, form: RecordForm) -> Dict[str, Any]:
        record = form.to_record(self.timezone)
        record['status'] = TASK_PENDING
        return record

    def toggle_status(self, record_id: str) -> bool:
        try:
            user_id = self.current_user_id()
            rows = self.gateway.select(self.collection, user_id, filters={'id': record_id}, columns=('id', 'status'))
            if not rows:
                raise GatewayError(f'{self.noun} not found')
            status = TASK_COMPLETED if rows[0]['status'] == TASK_PENDING else TASK_PENDING
            self.gateway.update(self.collection, user_id, record_id, {'status': status})
        except GatewayError as error:
            self.notifier.error(error.message)
            return False
        self.fetch_all()
        return True
