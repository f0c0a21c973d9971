import logging
from datetime import datetime, timedelta, timezone

import click
from flask import Flask
from flask_login import LoginManager
from sqlalchemy.exc import IntegrityError

from eventdesk import session_store
from eventdesk.auth import AuthService, bp as auth_bp
from eventdesk.config import Config
from eventdesk.database import db
from eventdesk.forms import to_local
from eventdesk.gateway import DataGateway
from eventdesk.models import User
from eventdesk.views import bp as pages_bp

login_manager = LoginManager()
login_manager.login_view = 'auth.login'  # Route to redirect unauthorized users
login_manager.login_message = 'Please sign in to continue.'
login_manager.login_message_category = 'info'


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


def configure_logging(app):
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('eventdesk').setLevel(level)


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)
    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    session_store.init_app(app, AuthService)

    app.register_blueprint(auth_bp)
    app.register_blueprint(pages_bp)

    @app.template_filter('localtime')
    def localtime(value, fmt='%b %d, %Y, %I:%M %p'):
        if value is None:
            return ''
        return to_local(value, app.config['DISPLAY_TIMEZONE']).strftime(fmt)

    @app.context_processor
    def inject_year():
        return {'year': datetime.now().year}

    register_commands(app)
    return app


# --- DB initialization & seeding ---

def create_user(email, password):
    user = User(email=email.strip().lower())
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def seed_if_empty(email='admin@example.com', password='password'):
    """Create a demo account with a few records when the user table is empty."""
    if db.session.execute(db.select(User)).first() is not None:
        return None
    user = create_user(email, password)
    gateway = DataGateway()
    start = datetime.now(timezone.utc).replace(tzinfo=None, minute=0, second=0, microsecond=0)
    launch = gateway.insert('events', user.id, {
        'name': 'Product Launch', 'location': 'HQ, Main Hall',
        'description': 'Public launch with press and partners.',
        'date': start + timedelta(days=14),
    })
    gateway.insert('events', user.id, {
        'name': 'Team Offsite', 'location': 'Lakeside Lodge',
        'description': '', 'date': start + timedelta(days=30),
    })
    speaker = gateway.insert('attendees', user.id, {
        'name': 'Dana Reyes', 'email': 'dana@example.com', 'task': 'Keynote',
    })
    gateway.insert('tasks', user.id, {
        'name': 'Prepare slide deck', 'deadline': start + timedelta(days=10),
        'status': 'pending', 'event_id': launch['id'], 'attendee_id': speaker['id'],
    })
    return user


def register_commands(app):
    @app.cli.command('init-db')
    @click.option('--seed', is_flag=True, help='Add a demo account with sample records.')
    def init_db(seed):
        """Create the database tables."""
        db.create_all()
        click.echo('Database initialized.')
        if seed and seed_if_empty() is not None:
            click.echo('Seeded demo account: admin@example.com / password')

    @app.cli.command('create-user')
    @click.argument('email')
    @click.password_option()
    def create_user_command(email, password):
        """Create an email/password account."""
        try:
            user = create_user(email, password)
        except IntegrityError:
            db.session.rollback()
            click.echo(f'Email already registered: {email}')
            return
        click.echo(f'Created user {user.email}')


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
        if seed_if_empty() is not None:
            print('Database created and seeded (includes test user: admin@example.com/password)')
    app.run(debug=True)
