"""Per-request session context and the route guard built on it."""
import functools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from flask import current_app, g
from flask_login import user_logged_in, user_logged_out

logger = logging.getLogger(__name__)

Listener = Callable[[Optional['Session']], None]


@dataclass(frozen=True)
class Session:
    user_id: str
    email: str
    provider: str = 'email'

    @classmethod
    def for_user(cls, user) -> 'Session':
        return cls(user_id=user.id, email=user.email, provider=user.provider)


class SessionStore:
    """Holds the current :class:`Session` (or ``None``) and tells listeners when it changes.

    The store is filled once from the auth service by :meth:`initialize`;
    afterwards only explicit sign-in and sign-out move it.
    """

    def __init__(self):
        self._session: Optional[Session] = None
        self._listeners: List[Listener] = []
        self._initialized = False

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, auth) -> None:
        if self._initialized:
            return
        user = auth.get_current_user()
        self._session = Session.for_user(user) if user is not None else None
        self._initialized = True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def set_session(self, session: Optional[Session]) -> None:
        if session == self._session:
            return
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    def clear(self) -> None:
        self.set_session(None)


def session_permits(session: Optional[Session]) -> bool:
    return session is not None


def current_store() -> SessionStore:
    return g.session_store


def protected(view):
    """Render ``view`` only for a signed-in session, otherwise send the visitor to the login view."""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        if not session_permits(current_store().session):
            return current_app.login_manager.unauthorized()
        return view(*args, **kwargs)
    return wrapper


def _log_session_change(session: Optional[Session]) -> None:
    if session is None:
        logger.info('session ended')
    else:
        logger.info('session started for %s via %s', session.email, session.provider)


def _on_user_logged_in(sender, user, **extra):
    store = g.get('session_store')
    if store is not None:
        store.set_session(Session.for_user(user))


def _on_user_logged_out(sender, user, **extra):
    store = g.get('session_store')
    if store is not None:
        store.clear()


def init_app(app, auth_factory) -> None:
    """Give every request its own store, initialized from ``auth_factory()``."""

    @app.before_request
    def attach_session_store():
        store = SessionStore()
        store.initialize(auth_factory())
        store.subscribe(_log_session_change)
        g.session_store = store

    @app.context_processor
    def inject_session():
        return {'session_info': g.get('session_store') and g.session_store.session}

    user_logged_in.connect(_on_user_logged_in, app)
    user_logged_out.connect(_on_user_logged_out, app)
