# Filename: bantconfirm/auth.py
# Identity (signup/login/logout) and the role gate.
#  - Passwords are bcrypt hashes (passlib); tokens are HS256 JWTs (python-jose)
#  - A token is only honoured while its row in `sessions` exists, so logout
#    clears the session and the role in one delete
#  - Three roles, three landing pages, one static allow-list per destination

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from decouple import config
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bantconfirm.database import get_db
from bantconfirm.errors import AuthError, ConflictError, ForbiddenError, PersistenceError, ValidationError
from bantconfirm.models import AuthSession, User, UserRole, UserStatus

logger = logging.getLogger(__name__)

SECRET_KEY = config("SECRET_KEY", default="bantconfirm-dev-secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", cast=int, default=24 * 60)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

LOGIN_PATH = "/login"
LANDING = {
    UserRole.USER.value: "/",
    UserRole.VENDOR.value: "/vendor-dashboard",
    UserRole.ADMIN.value: "/admin-dashboard",
}
ROUTE_ROLES = {
    "post_requirement": frozenset({UserRole.USER.value, UserRole.ADMIN.value}),
    "admin_dashboard": frozenset({UserRole.ADMIN.value}),
    "vendor_dashboard": frozenset({UserRole.VENDOR.value}),
}
SIGNUP_ROLES = (UserRole.USER.value, UserRole.VENDOR.value)


@dataclass(frozen=True)
class SessionState:
    authenticated: bool
    user: Optional[User] = None
    role: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "SessionState":
        return cls(authenticated=False)

    @property
    def landing(self) -> Optional[str]:
        return LANDING.get(self.role) if self.role else None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(session_id: str, user_id: str, expires_at: datetime) -> str:
    return jwt.encode({"sid": session_id, "sub": user_id, "exp": expires_at}, SECRET_KEY, algorithm=ALGORITHM)


def _commit(db: Session, what: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"DB write error ({what}): {e}")
        raise PersistenceError(f"Failed to {what}.") from e


def _read(db: Session, what: str, fn):
    try:
        return fn()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"DB read error ({what}): {e}")
        raise PersistenceError(f"Failed to load {what}.") from e


def signup(db: Session, *, email: str, password: str, username: str, role: str = UserRole.USER.value,
           mobile: Optional[str] = None, company_name: Optional[str] = None,
           location: Optional[str] = None) -> User:
    """Create an account. Vendors start `pending` until an admin approves them."""
    if role not in SIGNUP_ROLES:
        raise ValidationError(f"Cannot sign up with role {role!r}")
    if not username.strip():
        raise ValidationError("Username is required")
    email = email.strip().lower()
    if _read(db, "account", lambda: db.query(User).filter(User.email == email).first()):
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        username=username.strip(),
        password_hash=hash_password(password),
        role=role,
        status=UserStatus.PENDING.value if role == UserRole.VENDOR.value else UserStatus.ACTIVE.value,
        mobile=mobile,
        company_name=company_name,
        location=location,
    )
    db.add(user)
    _commit(db, "create account")
    db.refresh(user)
    logger.info(f"Signed up {user.role} {user.email} ({user.status})")
    return user


def purge_expired_sessions(db: Session) -> int:
    """Delete session rows whose token can no longer be honoured."""
    now = datetime.now(timezone.utc)
    removed = _read(
        db,
        "sessions",
        lambda: db.query(AuthSession).filter(AuthSession.expires_at < now).delete(synchronize_session=False),
    )
    _commit(db, "purge sessions")
    if removed:
        logger.info(f"Purged {removed} expired session(s)")
    return removed


def _issue_session(db: Session, user: User) -> str:
    purge_expired_sessions(db)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    session = AuthSession(user_id=user.id, expires_at=expires_at)
    db.add(session)
    _commit(db, "start session")
    return create_access_token(session.id, user.id, expires_at)


def login(db: Session, email: str, password: str) -> Tuple[str, User]:
    email = email.strip().lower()
    user = _read(db, "account", lambda: db.query(User).filter(User.email == email).first())
    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")
    if user.status == UserStatus.SUSPENDED.value:
        raise AuthError("This account is suspended")
    token = _issue_session(db, user)
    logger.info(f"Login OK for {user.email} ({user.role})")
    return token, user


def _decode(token: str, *, verify_exp: bool = True) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": verify_exp})
    except JWTError:
        return None


def resolve_session(db: Session, token: Optional[str]) -> SessionState:
    """Anonymous for a missing, invalid, expired or signed-out token."""
    if not token:
        return SessionState.anonymous()
    payload = _decode(token)
    if not payload or not payload.get("sid"):
        return SessionState.anonymous()
    try:
        session = db.get(AuthSession, payload["sid"])
        user = session.user if session is not None else None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Session lookup failed: {e}")
        raise AuthError("Could not verify your session. Please sign in again.") from e
    if user is None:
        return SessionState.anonymous()
    if user.status == UserStatus.SUSPENDED.value:
        return SessionState.anonymous()
    return SessionState(authenticated=True, user=user, role=user.role, session_id=session.id)


def logout(db: Session, token: Optional[str]) -> SessionState:
    """End the session; the returned state is always anonymous."""
    payload = _decode(token, verify_exp=False) if token else None
    if payload and payload.get("sid"):
        _read(
            db,
            "session",
            lambda: db.query(AuthSession).filter(AuthSession.id == payload["sid"]).delete(synchronize_session=False),
        )
        _commit(db, "sign out")
        logger.info(f"Session {payload['sid']} signed out")
    return SessionState.anonymous()


def bootstrap_admin(db: Session, email: str, password: str, username: str = "Administrator") -> Optional[User]:
    """Create the first admin account; no-op once any admin exists."""
    if _read(db, "admins", lambda: db.query(User).filter(User.role == UserRole.ADMIN.value).count()) > 0:
        return None
    admin = User(
        email=email.strip().lower(),
        username=username,
        password_hash=hash_password(password),
        role=UserRole.ADMIN.value,
        status=UserStatus.ACTIVE.value,
    )
    db.add(admin)
    _commit(db, "create admin")
    logger.info(f"Bootstrapped admin account {admin.email}")
    return admin


def gate_route(state: SessionState, route: str) -> Optional[str]:
    """None when the destination may be entered, otherwise where to send the visitor."""
    if not state.authenticated:
        return LOGIN_PATH
    if state.role not in ROUTE_ROLES[route]:
        return state.landing or LOGIN_PATH
    return None


# -----------------
# FastAPI dependencies
# -----------------
def current_session(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> SessionState:
    return resolve_session(db, token)


def require_role(*roles: str):
    def role_dep(state: SessionState = Depends(current_session)) -> SessionState:
        if not state.authenticated:
            raise AuthError("Not authenticated")
        if state.role not in roles:
            raise ForbiddenError("Insufficient permissions")
        return state
    return role_dep
