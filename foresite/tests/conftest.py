import re
import uuid

import pytest

from foresite import create_app
from foresite.models import User, db

CSRF_TOKEN_RE = re.compile(r'name="_csrf_token" value="([^"]+)"')
ADMIN_EMAIL = "admin@foresite.ai"
ADMIN_PASSWORD = "admin123"


def extract_csrf_token(html):
    match = CSRF_TOKEN_RE.search(html or "")
    return match.group(1) if match else None


def build_test_app(tmp_path, monkeypatch, overrides=None):
    db_path = tmp_path / f"site_test_{uuid.uuid4().hex[:8]}.db"
    upload_path = tmp_path / f"uploads_{uuid.uuid4().hex[:8]}"

    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)

    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {},
        "UPLOAD_FOLDER": str(upload_path),
        "STORAGE_BACKEND": "local",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "RESEND_API_KEY": "",
        "MAILGUN_API_KEY": "",
        "MAILGUN_DOMAIN": "",
        "SENTRY_DSN": "",
    }
    if overrides:
        config.update(overrides)
    return create_app(config)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    return build_test_app(tmp_path, monkeypatch)


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, email, password):
    login_page = client.get("/auth")
    csrf_token = extract_csrf_token(login_page.get_data(as_text=True))
    assert csrf_token
    return client.post(
        "/auth",
        data={"_csrf_token": csrf_token, "email": email, "password": password},
        follow_redirects=False,
    )


def admin_login(client):
    response = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code in (302, 303)
    assert response.headers["Location"].endswith("/admin")


def create_user(app, email, password):
    with app.app_context():
        user = User(email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def csrf_from(client, path):
    page = client.get(path)
    assert page.status_code == 200
    token = extract_csrf_token(page.get_data(as_text=True))
    assert token
    return token
