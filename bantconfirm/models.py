# Filename: bantconfirm/models.py
# Rows held by the relational store: accounts, sessions, the catalog,
# qualified enquiries, the branding singleton and the trusted-vendor strip.

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship

from bantconfirm.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    USER = "user"
    VENDOR = "vendor"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    PENDING = "pending"


class EnquiryStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    # Defined for the data model; no transition leads here yet.
    APPROVED = "approved"
    REJECTED = "rejected"


class ProductCategory(str, enum.Enum):
    INTERNET_LEASED_LINE = "Internet Leased Line"
    SIP_TRUNK = "SIP Trunk"
    CLOUD_STORAGE = "Cloud Storage"
    CYBERSECURITY = "SMB Cybersecurity Package"
    IT_SUPPORT = "Proactive IT Support"
    VOICE_SOLUTIONS = "Voice Solutions"
    CRM_SOFTWARE = "CRM Software"
    WHATSAPP_API = "WhatsApp API"
    CUSTOM_REQUIREMENT = "Custom Requirement"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default=UserRole.USER.value)
    status = Column(String(16), nullable=False, default=UserStatus.ACTIVE.value)
    mobile = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    location = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"


class AuthSession(Base):
    """One row per signed-in token; deleting it signs the token out."""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    image = Column(Text, nullable=True)                     # URL or data URL
    short_features = Column(JSON, nullable=False, default=list)
    pricing = Column(String, nullable=False, default="")    # free text, e.g. "₹50/TB"
    category = Column(String, nullable=False, default=ProductCategory.CUSTOM_REQUIREMENT.value)
    description = Column(Text, nullable=True)
    rating = Column(Float, nullable=False, default=4.5)
    tags = Column(JSON, nullable=False, default=list)
    original_price = Column(String, nullable=True)
    vendor_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="📁")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class Enquiry(Base):
    """
    A qualified lead.

    status and assigned_vendor_id only change together: `assigned` always
    carries a vendor, every other status carries none.
    """

    __tablename__ = "enquiries"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    category = Column(String, nullable=False)
    budget = Column(Text, nullable=False)
    authority = Column(Text, nullable=False)
    need = Column(Text, nullable=False)
    timeframe = Column(Text, nullable=False)
    full_enquiry_text = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=EnquiryStatus.PENDING.value, index=True)
    assigned_vendor_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)

    user = relationship("User", foreign_keys=[user_id])
    assigned_vendor = relationship("User", foreign_keys=[assigned_vendor_id])

    def __repr__(self) -> str:
        return f"<Enquiry id={self.id} status={self.status} vendor={self.assigned_vendor_id}>"


class SiteSettings(Base):
    __tablename__ = "site_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    app_name = Column(String, nullable=True)
    logo_url = Column(Text, nullable=True)
    favicon_url = Column(Text, nullable=True)
    show_app_name = Column(Boolean, nullable=True)
    social_facebook = Column(String, nullable=True)
    social_twitter = Column(String, nullable=True)
    social_linkedin = Column(String, nullable=True)
    whatsapp_api_key = Column(String, nullable=True)
    whatsapp_phone_number_id = Column(String, nullable=True)


class TrustedVendor(Base):
    __tablename__ = "trusted_vendors"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    logo_url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
