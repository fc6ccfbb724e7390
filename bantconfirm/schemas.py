# Filename: bantconfirm/schemas.py
# Request/response models for the BANTConfirm API.
# ORM rows are converted with `model_validate(row)` (from_attributes).

from datetime import datetime
from typing import Any, Dict, List, Optional, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SignupRole = Literal["user", "vendor"]
StatusValue = Literal["active", "suspended", "pending"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -----------------
# Auth
# -----------------
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    username: str = Field(..., min_length=1, max_length=80)
    role: SignupRole = "user"
    mobile: Optional[str] = None
    company_name: Optional[str] = None
    location: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(ORMModel):
    id: str
    email: str
    username: str
    role: str
    status: str
    mobile: Optional[str] = None
    company_name: Optional[str] = None
    location: Optional[str] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
    landing: str


class SessionResponse(BaseModel):
    authenticated: bool
    role: Optional[str] = None
    user: Optional[UserOut] = None
    landing: Optional[str] = None


class StatusChangeRequest(BaseModel):
    status: StatusValue


# -----------------
# Enquiries
# -----------------
class QualifyRequest(BaseModel):
    text: str


class BANTPayload(BaseModel):
    budget: str
    authority: str
    need: str
    timeframe: str
    summary: str
    category: str


class RequesterOut(ORMModel):
    username: str
    email: str
    mobile: Optional[str] = None
    company_name: Optional[str] = None
    location: Optional[str] = None


class EnquiryOut(ORMModel):
    id: str
    user_id: str
    category: str
    budget: str
    authority: str
    need: str
    timeframe: str
    full_enquiry_text: str
    status: str
    assigned_vendor_id: Optional[str] = None
    created_at: datetime
    user: Optional[RequesterOut] = None


class ConfirmResponse(BaseModel):
    ok: bool = True
    persisted: bool
    enquiry: Optional[EnquiryOut] = None


class AssignRequest(BaseModel):
    vendor_id: str
    # The vendor the admin saw when opening the enquiry (null = unassigned).
    # Leave it out to overwrite unconditionally.
    expected_vendor_id: Optional[str] = None


# -----------------
# Catalog
# -----------------
class CategoryIn(BaseModel):
    name: str = ""
    icon: Optional[str] = None


class CategoryOut(ORMModel):
    id: str
    name: str
    icon: str


class ProductIn(BaseModel):
    name: str = ""
    image: Optional[str] = None
    short_features: List[str] = Field(default_factory=list)
    pricing: str = ""
    category: str = "Custom Requirement"
    description: Optional[str] = None
    rating: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    original_price: Optional[str] = None
    vendor_id: Optional[str] = None


class ProductOut(ORMModel):
    id: str
    name: str
    image: Optional[str] = None
    short_features: List[str]
    pricing: str
    category: str
    description: Optional[str] = None
    rating: float
    tags: List[str]
    original_price: Optional[str] = None
    vendor_id: Optional[str] = None


class TrustedVendorIn(BaseModel):
    name: str = ""
    logo_url: str = ""


class TrustedVendorOut(ORMModel):
    id: str
    name: str
    logo_url: str


# -----------------
# Settings
# -----------------
class SettingsUpdate(BaseModel):
    app_name: Optional[str] = None
    logo_url: Optional[str] = None
    favicon_url: Optional[str] = None
    show_app_name: Optional[bool] = None
    social_facebook: Optional[str] = None
    social_twitter: Optional[str] = None
    social_linkedin: Optional[str] = None
    whatsapp_api_key: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None


class ImageUploadResponse(BaseModel):
    data_url: str
    size: int


def error_body(kind: str, detail: str) -> Dict[str, Any]:
    return {"error": kind, "detail": detail}
