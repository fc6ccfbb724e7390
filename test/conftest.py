import os

# Must be set before bantconfirm reads its configuration.
os.environ["DB_HOST"] = "localhost"
os.environ["SQLITE_URL"] = "sqlite://"
os.environ["LEAD_QUALIFIER"] = "keyword"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "Admin@123"
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_NUMBER"] = ""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from bantconfirm import main as api
from bantconfirm.database import Base, SessionLocal, engine
from bantconfirm.models import User
from bantconfirm.site_settings import SiteSettingsContext

ADMIN = {"email": "admin@example.com", "password": "Admin@123"}


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    api.app.state.qualifier = None
    api.app.state.site_settings = SiteSettingsContext()
    with TestClient(api.app) as c:
        yield c


def make_user(db, *, email, role="user", status="active", username=None, mobile=None, company_name=None):
    """Insert an account directly (no password hashing)."""
    user = User(
        email=email,
        username=username or email.split("@")[0],
        password_hash="not-a-real-hash",
        role=role,
        status=status,
        mobile=mobile,
        company_name=company_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bant(**overrides):
    data = {
        "budget": "₹2,000/month",
        "authority": "Founder, final decision maker",
        "need": "CRM with WhatsApp integration",
        "timeframe": "Next week",
        "summary": "Startup founder needs a CRM with WhatsApp integration within a week.",
        "category": "CRM Software",
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def auth_headers(client, email, password):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def signup(client, email, role="user", password="secret123", **extra):
    body = {"email": email, "password": password, "username": email.split("@")[0], "role": role}
    body.update(extra)
    resp = client.post("/auth/signup", json=body)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]
