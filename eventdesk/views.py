from flask import Blueprint, abort, current_app, redirect, render_template, request, url_for

from eventdesk.auth import AuthService
from eventdesk.forms import AttendeeForm, EventForm, TaskForm
from eventdesk.gateway import DataGateway
from eventdesk.pages import AttendeePage, EventPage, TaskPage
from eventdesk.session_store import protected

bp = Blueprint('pages', __name__)

# endpoint -> (page class, form class, template)
PAGES = {
    'events': (EventPage, EventForm, 'events.html'),
    'attendees': (AttendeePage, AttendeeForm, 'attendees.html'),
    'tasks': (TaskPage, TaskForm, 'tasks.html'),
}


def _page(name):
    page_class = PAGES[name][0]
    return page_class(AuthService(), DataGateway(), timezone=current_app.config['DISPLAY_TIMEZONE'])


def _render(name, page, status=200):
    return render_template(PAGES[name][2], page=page, section=name), status


def _listing(name):
    page = _page(name)
    if request.method == 'POST':
        form = PAGES[name][1].from_mapping(request.form)
        if page.create(form):
            return redirect(url_for(f'pages.{name}'))
        page.mount()
        return _render(name, page)
    page.mount()
    if request.args.get('new'):
        page.open_form()
    return _render(name, page)


def _edit(name, record_id):
    page = _page(name)
    page.mount()
    record = page.find(record_id)
    if record is None:
        abort(404)
    page.edit(record)
    return _render(name, page)


def _update(name, record_id):
    page = _page(name)
    form = PAGES[name][1].from_mapping(request.form)
    if page.update(record_id, form):
        return redirect(url_for(f'pages.{name}'))
    page.mount()
    return _render(name, page)


def _delete(name, record_id):
    page = _page(name)
    if request.method == 'POST':
        page.delete(record_id, request.form.get('confirm') == 'yes')
        return redirect(url_for(f'pages.{name}'))
    page.mount()
    record = page.find(record_id)
    if record is None:
        abort(404)
    return render_template('confirm_delete.html', page=page, record=record, section=name)


@bp.route('/')
@protected
def index():
    return redirect(url_for('pages.events'))


# --- Events ---

@bp.route('/events', methods=['GET', 'POST'])
@protected
def events():
    return _listing('events')


@bp.route('/events/<record_id>/edit')
@protected
def edit_event(record_id):
    return _edit('events', record_id)


@bp.route('/events/<record_id>', methods=['POST'])
@protected
def update_event(record_id):
    return _update('events', record_id)


@bp.route('/events/<record_id>/delete', methods=['GET', 'POST'])
@protected
def delete_event(record_id):
    return _delete('events', record_id)


# --- Attendees ---

@bp.route('/attendees', methods=['GET', 'POST'])
@protected
def attendees():
    return _listing('attendees')


@bp.route('/attendees/<record_id>/edit')
@protected
def edit_attendee(record_id):
    return _edit('attendees', record_id)


@bp.route('/attendees/<record_id>', methods=['POST'])
@protected
def update_attendee(record_id):
    return _update('attendees', record_id)


@bp.route('/attendees/<record_id>/delete', methods=['GET', 'POST'])
@protected
def delete_attendee(record_id):
    return _delete('attendees', record_id)


# --- Tasks ---

@bp.route('/tasks', methods=['GET', 'POST'])
@protected
def tasks():
    return _listing('tasks')


@bp.route('/tasks/<record_id>/toggle', methods=['POST'])
@protected
def toggle_task(record_id):
    _page('tasks').toggle_status(record_id)
    return redirect(url_for('pages.tasks'))


@bp.route('/tasks/<record_id>/delete', methods=['GET', 'POST'])
@protected
def delete_task(record_id):
    return _delete('tasks', record_id)
