import hmac
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from eventdesk.database import db
from eventdesk.models import User
from eventdesk.session_store import Session, current_store, session_permits

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)


class AuthError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthService:
    """Sign-in, sign-out and current-user lookups against the user table."""

    def get_current_user(self) -> Optional[User]:
        if not current_user.is_authenticated:
            return None
        # re-read so a deleted account no longer counts as signed in
        return db.session.get(User, current_user.get_id())

    def sign_in_with_password(self, email: str, password: str) -> Session:
        user = db.session.execute(
            db.select(User).filter_by(email=email.strip().lower())
        ).scalar_one_or_none()
        if user is None or not user.check_password(password):
            raise AuthError('Invalid login credentials')
        login_user(user)
        logger.info('password sign-in for %s', user.email)
        return Session.for_user(user)

    def sign_in_with_federated_provider(self, provider: str, redirect_uri: str) -> str:
        """Start an OAuth2 authorization-code flow and return the provider URL to redirect to."""
        config = self._provider(provider)
        state = secrets.token_urlsafe(24)
        session['oauth_state'] = {'provider': provider, 'state': state}
        params = {
            'client_id': config['client_id'],
            'redirect_uri': redirect_uri,
            'response_type': 'code',
            'scope': config['scope'],
            'state': state,
        }
        return f"{config['authorize_url']}?{urlencode(params)}"

    def complete_federated_sign_in(self, provider: str, code: str, state: str, redirect_uri: str) -> Session:
        config = self._provider(provider)
        expected = session.pop('oauth_state', None)
        if (not expected or expected.get('provider') != provider
                or not hmac.compare_digest(expected.get('state', ''), state or '')):
            raise AuthError('Sign-in request expired, please try again')
        if not code:
            raise AuthError('Missing authorization code')

        timeout = current_app.config['OAUTH_TIMEOUT']
        try:
            token_response = requests.post(
                config['token_url'],
                data={
                    'grant_type': 'authorization_code',
                    'code': code,
                    'redirect_uri': redirect_uri,
                    'client_id': config['client_id'],
                    'client_secret': config['client_secret'],
                },
                timeout=timeout,
            )
            token_response.raise_for_status()
            access_token = token_response.json()['access_token']
            profile_response = requests.get(
                config['userinfo_url'],
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=timeout,
            )
            profile_response.raise_for_status()
            profile = profile_response.json()
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning('%s token exchange failed: %s', provider, exc)
            raise AuthError(f'{config["label"]} sign-in failed') from exc

        email = (profile.get('email') or '').strip().lower()
        if not email:
            raise AuthError(f'{config["label"]} did not share an email address')
        # older userinfo endpoints send the flag as a string
        if profile.get('email_verified') not in (True, 'true'):
            logger.warning('%s sign-in refused for unverified %s', provider, email)
            raise AuthError(f'{config["label"]} has not verified {email}')

        user = db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none()
        if user is None:
            user = User(email=email, provider=provider)
            db.session.add(user)
            db.session.commit()
            logger.info('created %s account for %s', provider, email)
        login_user(user)
        logger.info('%s sign-in for %s', provider, email)
        return Session.for_user(user)

    def sign_out(self) -> None:
        logout_user()

    @staticmethod
    def enabled_providers() -> Dict[str, Dict[str, Any]]:
        providers = current_app.config.get('OAUTH_PROVIDERS', {})
        return {name: cfg for name, cfg in providers.items() if cfg.get('client_id')}

    def _provider(self, provider: str) -> Dict[str, Any]:
        config = self.enabled_providers().get(provider)
        if config is None:
            raise AuthError(f'Unsupported provider: {provider}')
        return config


# --- one-time submit tokens guard the login forms against double submits ---

def _issue_submit_token() -> str:
    token = secrets.token_urlsafe(16)
    session['login_token'] = token
    return token


def _consume_submit_token(token: Optional[str]) -> bool:
    expected = session.pop('login_token', None)
    return bool(token) and expected is not None and hmac.compare_digest(token, expected)


def _safe_next(target: Optional[str]) -> Optional[str]:
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


def _render_login(email=''):
    return render_template(
        'login.html',
        email=email,
        submit_token=_issue_submit_token(),
        providers=AuthService.enabled_providers(),
        next_url=_safe_next(request.values.get('next')) or '',
    )


def _landing():
    return redirect(_safe_next(request.values.get('next')) or url_for('pages.events'))


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if session_permits(current_store().session):
        return _landing()

    if request.method == 'POST':
        email = request.form.get('email', '')
        if not _consume_submit_token(request.form.get('submit_token')):
            flash('Sign-in is already in progress.', 'info')
            return _render_login(email)
        try:
            AuthService().sign_in_with_password(email, request.form.get('password', ''))
        except AuthError as error:
            flash(error.message, 'danger')
            return _render_login(email)
        return _landing()

    return _render_login()


@bp.route('/login/<provider>', methods=['POST'])
def federated_login(provider):
    if not _consume_submit_token(request.form.get('submit_token')):
        flash('Sign-in is already in progress.', 'info')
        return redirect(url_for('auth.login'))
    try:
        target = AuthService().sign_in_with_federated_provider(
            provider, url_for('auth.federated_callback', provider=provider, _external=True))
    except AuthError as error:
        flash(error.message, 'danger')
        return redirect(url_for('auth.login'))
    flash(f'Redirecting to {provider.title()} sign-in...', 'info')
    return redirect(target)


@bp.route('/auth/callback/<provider>')
def federated_callback(provider):
    if request.args.get('error'):
        flash(request.args.get('error_description') or request.args['error'], 'danger')
        return redirect(url_for('auth.login'))
    try:
        AuthService().complete_federated_sign_in(
            provider,
            request.args.get('code', ''),
            request.args.get('state', ''),
            url_for('auth.federated_callback', provider=provider, _external=True),
        )
    except AuthError as error:
        flash(error.message, 'danger')
        return redirect(url_for('auth.login'))
    return redirect(url_for('pages.events'))


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    AuthService().sign_out()
    flash('You have been logged out.', 'info')
    return redirect(url_for('auth.login'))
