from datetime import datetime, timedelta, timezone

import pytest

from bantconfirm import auth, users
from bantconfirm.auth import SessionState, gate_route
from bantconfirm.database import engine
from bantconfirm.errors import AuthError, ConflictError, NotFoundError, PersistenceError, ValidationError
from bantconfirm.models import AuthSession, User

from conftest import make_user


def test_vendor_signup_starts_pending(db):
    vendor = auth.signup(db, email="Vendor@Example.com", password="secret123", username="NetCo", role="vendor")
    assert vendor.status == "pending"
    assert vendor.email == "vendor@example.com"
    assert vendor.password_hash != "secret123"

    buyer = auth.signup(db, email="buyer@example.com", password="secret123", username="Asha")
    assert buyer.role == "user"
    assert buyer.status == "active"


def test_signup_cannot_choose_admin(db):
    with pytest.raises(ValidationError):
        auth.signup(db, email="sneaky@example.com", password="secret123", username="x", role="admin")


def test_duplicate_email_rejected(db):
    auth.signup(db, email="a@example.com", password="secret123", username="a")
    with pytest.raises(ConflictError):
        auth.signup(db, email="A@example.com", password="secret123", username="a2")


def test_login_and_session_roundtrip(db):
    auth.signup(db, email="v@example.com", password="secret123", username="v", role="vendor")
    token, user = auth.login(db, "v@example.com", "secret123")

    state = auth.resolve_session(db, token)
    assert state.authenticated
    assert state.role == "vendor"
    assert state.user.id == user.id
    assert state.landing == "/vendor-dashboard"


def test_logout_clears_role_and_session(db):
    auth.signup(db, email="v@example.com", password="secret123", username="v", role="vendor")
    token, _ = auth.login(db, "v@example.com", "secret123")

    after = auth.logout(db, token)

    assert after == SessionState.anonymous()
    state = auth.resolve_session(db, token)
    assert state.authenticated is False
    assert state.role is None
    assert state.user is None
    assert db.query(AuthSession).count() == 0


def test_bad_credentials(db):
    auth.signup(db, email="u@example.com", password="secret123", username="u")
    with pytest.raises(AuthError):
        auth.login(db, "u@example.com", "wrong-password")
    with pytest.raises(AuthError):
        auth.login(db, "nobody@example.com", "secret123")


def test_suspended_account_cannot_login_or_keep_session(db):
    user = auth.signup(db, email="u@example.com", password="secret123", username="u")
    token, _ = auth.login(db, "u@example.com", "secret123")

    users.set_status(db, user.id, "suspended")

    assert auth.resolve_session(db, token).authenticated is False
    with pytest.raises(AuthError):
        auth.login(db, "u@example.com", "secret123")


def test_garbage_token_is_anonymous(db):
    assert auth.resolve_session(db, "not.a.jwt").authenticated is False
    assert auth.resolve_session(db, None).authenticated is False


def test_bootstrap_admin_only_once(db):
    assert auth.bootstrap_admin(db, "root@example.com", "Admin@123") is not None
    assert auth.bootstrap_admin(db, "other@example.com", "Admin@123") is None


@pytest.mark.parametrize(
    "role,route,expected",
    [
        (None, "admin_dashboard", "/login"),
        ("user", "post_requirement", None),
        ("admin", "post_requirement", None),
        ("vendor", "post_requirement", "/vendor-dashboard"),
        ("user", "admin_dashboard", "/"),
        ("vendor", "admin_dashboard", "/vendor-dashboard"),
        ("admin", "admin_dashboard", None),
        ("admin", "vendor_dashboard", "/admin-dashboard"),
        ("vendor", "vendor_dashboard", None),
    ],
)
def test_gate_route(role, route, expected):
    state = SessionState(authenticated=True, role=role) if role else SessionState.anonymous()
    assert gate_route(state, route) == expected


# -------------------- user administration --------------------

def test_admin_cannot_be_suspended(db):
    admin = make_user(db, email="root@example.com", role="admin")

    with pytest.raises(ValidationError):
        users.set_status(db, admin.id, "suspended")

    db.refresh(admin)
    assert admin.status == "active"


def test_vendor_approval(db):
    vendor = make_user(db, email="v@example.com", role="vendor", status="pending")
    assert users.set_status(db, vendor.id, "active").status == "active"


def test_set_status_validates_input(db):
    user = make_user(db, email="u@example.com")
    with pytest.raises(ValidationError):
        users.set_status(db, user.id, "deleted")
    with pytest.raises(NotFoundError):
        users.set_status(db, "missing", "active")


def test_login_purges_expired_sessions(db):
    user = auth.signup(db, email="u@example.com", password="secret123", username="u")
    stale = AuthSession(user_id=user.id, expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    db.add(stale)
    db.commit()
    stale_id = stale.id

    auth.login(db, "u@example.com", "secret123")

    assert db.query(AuthSession).filter(AuthSession.id == stale_id).count() == 0
    assert db.query(AuthSession).count() == 1


def test_set_status_reports_store_failure(db):
    User.__table__.drop(bind=engine)
    with pytest.raises(PersistenceError):
        users.set_status(db, "someone", "active")
