# Filename: bantconfirm/enquiries.py
# Enquiry lifecycle: persist a qualified lead and move it from `pending` to `assigned`.
#  - Every list is explicitly ordered (newest first, id as tie-breaker)
#  - Assignment writes status and vendor in a single UPDATE, optionally
#    conditional on the vendor the admin last saw

import logging
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from bantconfirm.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from bantconfirm.models import Enquiry, EnquiryStatus, User, UserRole, UserStatus
from bantconfirm.services.csv_export import render_csv, short_date

logger = logging.getLogger(__name__)

ENQUIRIES_CSV_FILENAME = "enquiries_data.csv"
ENQUIRY_CSV_HEADERS = [
    "EnquiryID", "Date", "UserName", "UserEmail", "Mobile", "Company",
    "Category", "Need", "Budget", "Authority", "Timeframe", "Status",
]

_BANT_FIELDS = ("budget", "authority", "need", "timeframe", "summary", "category")
_ASSIGNABLE = {EnquiryStatus.PENDING.value, EnquiryStatus.ASSIGNED.value}

UNSET = object()


def _read(db: Session, what: str, fn):
    try:
        return fn()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"DB read error ({what}): {e}")
        raise PersistenceError(f"Failed to load {what}.") from e


def create_enquiry(db: Session, requester_id: str, bant) -> Enquiry:
    """Insert a `pending`, unassigned enquiry from a BANT record (any object with the six fields)."""
    if not requester_id:
        raise ValidationError("An enquiry needs a signed-in requester")
    missing = [f for f in _BANT_FIELDS if not (getattr(bant, f, "") or "").strip()]
    if missing:
        raise ValidationError(f"BANT record is incomplete: {', '.join(missing)}")

    enquiry = Enquiry(
        user_id=requester_id,
        category=bant.category.strip(),
        budget=bant.budget.strip(),
        authority=bant.authority.strip(),
        need=bant.need.strip(),
        timeframe=bant.timeframe.strip(),
        full_enquiry_text=bant.summary.strip(),
        status=EnquiryStatus.PENDING.value,
        assigned_vendor_id=None,
    )
    try:
        db.add(enquiry)
        db.commit()
        db.refresh(enquiry)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error storing enquiry in database: {e}")
        raise PersistenceError("Could not save the enquiry.") from e
    logger.info(f"Enquiry #{enquiry.id} stored for user {requester_id} ({enquiry.category})")
    return enquiry


def list_enquiries(db: Session, status: Optional[str] = None) -> List[Enquiry]:
    def query():
        q = db.query(Enquiry).options(joinedload(Enquiry.user))
        if status:
            q = q.filter(Enquiry.status == status)
        return q.order_by(Enquiry.created_at.desc(), Enquiry.id.desc()).all()

    return _read(db, "enquiries", query)


def list_pending(db: Session) -> List[Enquiry]:
    return list_enquiries(db, status=EnquiryStatus.PENDING.value)


def list_for_vendor(db: Session, vendor_id: str) -> List[Enquiry]:
    return _read(
        db,
        "vendor enquiries",
        lambda: db.query(Enquiry)
        .options(joinedload(Enquiry.user))
        .filter(Enquiry.assigned_vendor_id == vendor_id, Enquiry.status == EnquiryStatus.ASSIGNED.value)
        .order_by(Enquiry.created_at.desc(), Enquiry.id.desc())
        .all(),
    )


def list_active_vendors(db: Session) -> List[User]:
    return _read(
        db,
        "vendors",
        lambda: db.query(User)
        .filter(User.role == UserRole.VENDOR.value, User.status == UserStatus.ACTIVE.value)
        .order_by(User.username.asc(), User.id.asc())
        .all(),
    )


def get_enquiry(db: Session, enquiry_id: str) -> Enquiry:
    enquiry = _read(db, "enquiry", lambda: db.get(Enquiry, enquiry_id))
    if enquiry is None:
        raise NotFoundError(f"Enquiry {enquiry_id} not found")
    return enquiry


def _check_vendor(db: Session, vendor_id: str) -> User:
    if not vendor_id:
        raise ValidationError("Select a vendor to assign")
    vendor = _read(db, "vendor", lambda: db.get(User, vendor_id))
    if vendor is None or vendor.role != UserRole.VENDOR.value:
        raise ValidationError(f"User {vendor_id} is not a vendor")
    if vendor.status != UserStatus.ACTIVE.value:
        raise ValidationError(f"Vendor {vendor.username} is {vendor.status}, not active")
    return vendor


def assign_vendor(db: Session, enquiry_id: str, vendor_id: str, *, expected_vendor_id=UNSET) -> Enquiry:
    """
    Set status `assigned` and the vendor in one statement.

    - vendor must be role `vendor` with status `active`, otherwise ValidationError and no write
    - re-assigning an assigned enquiry overwrites the previous vendor (no history)
    - with `expected_vendor_id` (None meaning "was unassigned") the write only happens if the
      current vendor still matches; otherwise ConflictError
    """
    vendor = _check_vendor(db, vendor_id)
    enquiry = get_enquiry(db, enquiry_id)
    if enquiry.status not in _ASSIGNABLE:
        raise ValidationError(f"Enquiry {enquiry_id} is {enquiry.status} and cannot be assigned")

    stmt = update(Enquiry).where(Enquiry.id == enquiry_id)
    if expected_vendor_id is not UNSET:
        if expected_vendor_id is None:
            stmt = stmt.where(Enquiry.assigned_vendor_id.is_(None))
        else:
            stmt = stmt.where(Enquiry.assigned_vendor_id == expected_vendor_id)
    stmt = stmt.values(status=EnquiryStatus.ASSIGNED.value, assigned_vendor_id=vendor.id)

    try:
        result = db.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            db.rollback()
            raise ConflictError("This enquiry was changed by someone else. Reload and try again.")
        db.commit()
        db.refresh(enquiry)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to assign vendor: {e}")
        raise PersistenceError("Failed to assign vendor.") from e

    logger.info(f"Enquiry #{enquiry.id} assigned to vendor {vendor.id}")
    return enquiry


def export_csv(enquiries: Iterable[Enquiry]) -> str:
    rows = []
    for e in enquiries:
        user = e.user
        rows.append([
            e.id,
            short_date(e.created_at),
            user.username if user else "",
            user.email if user else "",
            (user.mobile or "") if user else "",
            (user.company_name or "") if user else "",
            e.category,
            e.need,
            e.budget,
            e.authority,
            e.timeframe,
            e.status,
        ])
    return render_csv(ENQUIRY_CSV_HEADERS, rows)
