"""Session and admin-role state for the current request.

``AuthContext`` owns the Flask-Login manager and the subscriptions to its
login/logout signals. The per-request ``AuthState`` is restored from the
signed session cookie before each request and re-derived whenever the user
signs in or out; the admin flag always comes from the ``user_roles`` table.
``close()`` drops the signal subscriptions and also runs at interpreter exit.
"""
import atexit
from functools import wraps

from flask import current_app, flash, g, redirect, session, url_for
from flask_login import LoginManager, current_user, login_user, logout_user, user_logged_in, user_logged_out
from werkzeug.security import check_password_hash, generate_password_hash

from .models import ROLE_ADMIN, User, db, has_role
from .utils import clean_text

AUTH_DUMMY_HASH = generate_password_hash('ForeSite::dummy-auth-check')
INVALID_CREDENTIALS_MESSAGE = 'Invalid login credentials'


class AuthError(Exception):
    pass


class AuthState:
    __slots__ = ('user', 'is_admin', 'loaded')

    def __init__(self, user=None, is_admin=False, loaded=True):
        self.user = user
        self.is_admin = bool(is_admin)
        self.loaded = loaded

    @property
    def is_authenticated(self):
        return self.user is not None

    @property
    def email(self):
        return self.user.email if self.user is not None else ''

    def __repr__(self):
        return f'<AuthState user={self.email or None!r} admin={self.is_admin} loaded={self.loaded}>'


PENDING = AuthState(loaded=False)


class AuthContext:
    def __init__(self, app=None):
        self.login_manager = LoginManager()
        self.login_manager.login_view = 'auth.sign_in'
        self.login_manager.user_loader(self._load_user)
        self._app = None
        self._subscribed = False
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self._app = app
        self.login_manager.init_app(app)
        app.extensions['auth_context'] = self
        user_logged_in.connect(self._on_signed_in, sender=app, weak=False)
        user_logged_out.connect(self._on_signed_out, sender=app, weak=False)
        self._subscribed = True
        atexit.register(self.close)
        app.before_request(self.restore)
        app.context_processor(lambda: {'auth': self.state()})

    def close(self):
        if not self._subscribed:
            return
        user_logged_in.disconnect(self._on_signed_in, sender=self._app)
        user_logged_out.disconnect(self._on_signed_out, sender=self._app)
        self._subscribed = False
        atexit.unregister(self.close)

    @property
    def subscribed(self):
        return self._subscribed

    @staticmethod
    def _load_user(user_id):
        try:
            parsed_id = int(user_id)
        except (TypeError, ValueError):
            return None
        return db.session.get(User, parsed_id)

    @staticmethod
    def derive(user):
        if user is None or not getattr(user, 'is_authenticated', False):
            return AuthState()
        return AuthState(user=user, is_admin=has_role(user.id, ROLE_ADMIN))

    def restore(self):
        g.auth_state = self.derive(current_user._get_current_object())

    def state(self):
        return g.get('auth_state', PENDING)

    def _on_signed_in(self, sender, user, **extra):
        g.auth_state = self.derive(user)
        current_app.logger.info(f'User {user.id} signed in (admin={g.auth_state.is_admin}).')

    def _on_signed_out(self, sender, user, **extra):
        g.auth_state = AuthState()
        if user is not None and getattr(user, 'is_authenticated', False):
            current_app.logger.info(f'User {user.id} signed out.')

    def sign_in(self, email, password):
        email = clean_text(email, 254).lower()
        user = User.query.filter_by(email=email).first() if email else None
        if user is None:
            # Keep response timing closer for unknown accounts.
            check_password_hash(AUTH_DUMMY_HASH, password or '')
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)
        if not user.check_password(password or ''):
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)
        session.clear()
        login_user(user)
        return self.state()

    def sign_out(self):
        logout_user()
        session.pop('_csrf_token', None)
        return self.state()


def get_auth_context():
    return current_app.extensions['auth_context']


def current_auth():
    return get_auth_context().state()


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        state = current_auth()
        if not state.loaded:
            get_auth_context().restore()
            state = current_auth()
        if not state.is_authenticated or not state.is_admin:
            if state.is_authenticated:
                flash('Your account does not have admin access.', 'danger')
            return redirect(url_for('auth.sign_in'))
        return view(*args, **kwargs)
    return wrapped
