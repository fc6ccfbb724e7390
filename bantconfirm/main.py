# Filename: bantconfirm/main.py
# HTTP surface of the marketplace:
#  - auth + session state, public catalog and branding
#  - requirement flow: qualify free text -> confirm -> pending enquiry
#  - admin triage: list, assign vendor, CSV export, users, catalog, settings
#  - role-gated destinations redirect to the visitor's own landing page

from typing import List, Optional

from decouple import config
from fastapi import BackgroundTasks, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bantconfirm import auth, catalog, enquiries, users
from bantconfirm.auth import ROUTE_ROLES, SessionState, current_session, gate_route, require_role
from bantconfirm.database import Base, SessionLocal, engine, get_db
from bantconfirm.errors import BantConfirmError, PersistenceError
from bantconfirm.llm_logic import build_qualifier
from bantconfirm.models import EnquiryStatus, UserRole, UserStatus
from bantconfirm.schemas import (
    AssignRequest, BANTPayload, CategoryIn, CategoryOut, ConfirmResponse, EnquiryOut,
    ImageUploadResponse, LoginRequest, ProductIn, ProductOut, QualifyRequest, SessionResponse,
    SettingsUpdate, SignupRequest, StatusChangeRequest, TokenResponse, TrustedVendorIn,
    TrustedVendorOut, UserOut, error_body,
)
from bantconfirm.services.images import MAX_IMAGE_BYTES, to_data_url
from bantconfirm.single_flight import IN_FLIGHT
from bantconfirm.site_settings import SiteSettingsContext
from bantconfirm.utils import assignment_message, logger, notify_vendor_assignment

ADMIN_EMAIL = config("ADMIN_EMAIL", default="")
ADMIN_PASSWORD = config("ADMIN_PASSWORD", default="")
ADMIN_USERNAME = config("ADMIN_USERNAME", default="Administrator")
SOFT_FAIL_ENQUIRY_WRITES = config("SOFT_FAIL_ENQUIRY_WRITES", cast=bool, default=True)
CORS_ORIGINS = [o.strip() for o in config("CORS_ORIGINS", default="*").split(",") if o.strip()]

app = FastAPI(title="BANTConfirm API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.site_settings = SiteSettingsContext()
app.state.qualifier = None

admin_only = require_role(UserRole.ADMIN.value)
requirement_roles = require_role(*ROUTE_ROLES["post_requirement"])
vendor_only = require_role(UserRole.VENDOR.value)


@app.exception_handler(BantConfirmError)
def handle_service_error(request: Request, exc: BantConfirmError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.detail))


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=422, content=error_body("validation_error", problems or "Invalid request"))


@app.on_event("startup")
def on_startup():
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured on startup.")
    except SQLAlchemyError as e:
        logger.error(f"DB init failed at startup: {e}")

    if app.state.qualifier is None:
        app.state.qualifier = build_qualifier()

    db = SessionLocal()
    try:
        if ADMIN_EMAIL and ADMIN_PASSWORD:
            auth.bootstrap_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_USERNAME)
        auth.purge_expired_sessions(db)
        app.state.site_settings.refresh(db)
    except (SQLAlchemyError, PersistenceError) as e:
        logger.error(f"Startup bootstrap failed: {e}")
    finally:
        db.close()


def get_site_settings(request: Request) -> SiteSettingsContext:
    return request.app.state.site_settings


def get_qualifier(request: Request):
    return request.app.state.qualifier


def _bearer(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    return token if scheme.lower() == "bearer" and token else None


# -------------------- Auth -------------------- #
@app.post("/auth/signup", response_model=TokenResponse)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    auth.signup(db, **payload.model_dump())
    token, user = auth.login(db, payload.email, payload.password)
    return TokenResponse(access_token=token, user=UserOut.model_validate(user), landing=auth.LANDING[user.role])


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    token, user = auth.login(db, payload.email, payload.password)
    return TokenResponse(access_token=token, user=UserOut.model_validate(user), landing=auth.LANDING[user.role])


@app.post("/auth/logout", response_model=SessionResponse)
def logout(request: Request, db: Session = Depends(get_db)):
    auth.logout(db, _bearer(request))
    return SessionResponse(authenticated=False)


@app.get("/auth/session", response_model=SessionResponse)
def session_state(state: SessionState = Depends(current_session)):
    if not state.authenticated:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True, role=state.role, user=UserOut.model_validate(state.user), landing=state.landing
    )


@app.get("/login")
def login_page():
    return {"message": "Sign in with POST /auth/login"}


# -------------------- Public -------------------- #
@app.get("/")
def home(category: Optional[str] = None, db: Session = Depends(get_db),
         site: SiteSettingsContext = Depends(get_site_settings)):
    return {
        "settings": site.current.public(),
        "categories": [CategoryOut.model_validate(c) for c in catalog.list_categories(db)],
        "products": [ProductOut.model_validate(p) for p in catalog.list_products(db, category)],
        "trusted_vendors": [TrustedVendorOut.model_validate(v) for v in catalog.list_trusted_vendors(db)],
    }


@app.get("/settings")
def read_settings(site: SiteSettingsContext = Depends(get_site_settings)):
    return site.current.public()


@app.get("/catalog/products", response_model=List[ProductOut])
def products(category: Optional[str] = None, db: Session = Depends(get_db)):
    return catalog.list_products(db, category)


@app.get("/catalog/categories", response_model=List[CategoryOut])
def categories(db: Session = Depends(get_db)):
    return catalog.list_categories(db)


@app.get("/catalog/trusted-vendors", response_model=List[TrustedVendorOut])
def trusted_vendors(db: Session = Depends(get_db)):
    return catalog.list_trusted_vendors(db)


# -------------------- Role-gated destinations -------------------- #
@app.get("/post-requirement")
def post_requirement_page(product_name: Optional[str] = None, state: SessionState = Depends(current_session),
                          qualifier=Depends(get_qualifier)):
    target = gate_route(state, "post_requirement")
    if target:
        return RedirectResponse(target, status_code=303)
    prefill = ""
    if product_name:
        prefill = f"I am interested in getting a quote for {product_name}. My requirements are: "
    return {"prefill": prefill, "qualifier": qualifier.name}


@app.get("/admin-dashboard")
def admin_dashboard(state: SessionState = Depends(current_session), db: Session = Depends(get_db)):
    target = gate_route(state, "admin_dashboard")
    if target:
        return RedirectResponse(target, status_code=303)
    all_users = users.list_users(db)
    all_enquiries = enquiries.list_enquiries(db)
    return {
        "users": len(all_users),
        "vendors_awaiting_approval": sum(
            1 for u in all_users if u.role == UserRole.VENDOR.value and u.status == UserStatus.PENDING.value
        ),
        "enquiries": len(all_enquiries),
        "pending_enquiries": sum(1 for e in all_enquiries if e.status == EnquiryStatus.PENDING.value),
        "assigned_enquiries": sum(1 for e in all_enquiries if e.status == EnquiryStatus.ASSIGNED.value),
    }


@app.get("/vendor-dashboard")
def vendor_dashboard(state: SessionState = Depends(current_session), db: Session = Depends(get_db)):
    target = gate_route(state, "vendor_dashboard")
    if target:
        return RedirectResponse(target, status_code=303)
    leads = enquiries.list_for_vendor(db, state.user.id)
    return {
        "vendor": UserOut.model_validate(state.user),
        "awaiting_approval": state.user.status == UserStatus.PENDING.value,
        "assigned_enquiries": [EnquiryOut.model_validate(e) for e in leads],
    }


# -------------------- Requirement flow -------------------- #
@app.post("/enquiries/qualify", response_model=BANTPayload)
def qualify(payload: QualifyRequest, state: SessionState = Depends(requirement_roles), qualifier=Depends(get_qualifier)):
    with IN_FLIGHT.guard(state.user.id, "enquiry.qualify"):
        result = qualifier.qualify(payload.text)
    return BANTPayload(**result.model_dump())


@app.post("/enquiries", response_model=ConfirmResponse)
def confirm_enquiry(payload: BANTPayload, state: SessionState = Depends(requirement_roles),
                    db: Session = Depends(get_db)):
    """
    Persist the confirmed BANT draft.

    With SOFT_FAIL_ENQUIRY_WRITES on, a failed write is still reported as
    success (`persisted: false`) so the requester's flow is never interrupted.
    Validation errors are always returned.
    """
    with IN_FLIGHT.guard(state.user.id, "enquiry.confirm"):
        try:
            enquiry = enquiries.create_enquiry(db, state.user.id, payload)
        except PersistenceError as e:
            if not SOFT_FAIL_ENQUIRY_WRITES:
                raise
            logger.warning(f"Posting enquiry failed, reporting success anyway: {e}")
            return ConfirmResponse(persisted=False)
    return ConfirmResponse(persisted=True, enquiry=EnquiryOut.model_validate(enquiry))


@app.get("/vendor/enquiries", response_model=List[EnquiryOut])
def vendor_enquiries(state: SessionState = Depends(vendor_only), db: Session = Depends(get_db)):
    return enquiries.list_for_vendor(db, state.user.id)


# -------------------- Admin: enquiries -------------------- #
@app.get("/admin/enquiries", response_model=List[EnquiryOut])
def admin_enquiries(status: Optional[str] = None, admin: SessionState = Depends(admin_only),
                    db: Session = Depends(get_db)):
    return enquiries.list_enquiries(db, status)


@app.get("/admin/enquiries/pending", response_model=List[EnquiryOut])
def admin_pending_enquiries(admin: SessionState = Depends(admin_only), db: Session = Depends(get_db)):
    return enquiries.list_pending(db)


@app.get("/admin/enquiries/export")
def admin_export_enquiries(admin: SessionState = Depends(admin_only), db: Session = Depends(get_db)):
    content = enquiries.export_csv(enquiries.list_enquiries(db))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{enquiries.ENQUIRIES_CSV_FILENAME}"'},
    )


@app.post("/admin/enquiries/{enquiry_id}/assign", response_model=EnquiryOut)
def admin_assign_vendor(enquiry_id: str, payload: AssignRequest, background_tasks: BackgroundTasks,
                        admin: SessionState = Depends(admin_only), db: Session = Depends(get_db),
                        site: SiteSettingsContext = Depends(get_site_settings)):
    expected = payload.expected_vendor_id if "expected_vendor_id" in payload.model_fields_set else enquiries.UNSET
    with IN_FLIGHT.guard(admin.user.id, f"enquiry.assign:{enquiry_id}"):
        enquiry = enquiries.assign_vendor(db, enquiry_id, payload.vendor_id, expected_vendor_id=expected)

    vendor = enquiry.assigned_vendor
    text = assignment_message(site.current.app_name, vendor.username, enquiry.category, enquiry.need)
    background_tasks.add_task(notify_vendor_assignment, vendor.mobile, text)
    return EnquiryOut.model_validate(enquiry)


@app.get("/admin/vendors", response_model=List[UserOut])
def admin_active_vendors(admin: SessionState = Depends(admin_only), db: Session = Depends(get_db)):
    return enquiries.list_active_vendors(db)


# -------------------- Admin: users -------------------- #
@app.get("/admin/users", response_model=List[UserOut])
def admin_users(admin: SessionState = Depends(admin_only), db: Session = Depends(get_db)):
    return users.list_users(db)


@app.put("/admin/users/{user_id}/status", response_model=UserOut)
def admin_set_user_status(user_id: str, payload: StatusChangeRequest, admin: SessionState = Depends(admin_only),
                          db: Session = Depends(get_db)):
    return users.set_status(db, user_id, payload.status)


# -------------------- Admin: catalog -------------------- #
@app.post("/admin/categories", response_model=CategoryOut)
def admin_create_category(payload: CategoryIn, admin: SessionState = Depends(admin_only),
                          db: Session = Depends(get_db)):
    return catalog.save_category(db, payload.name, payload.icon)


@app.put("/admin/categories/{category_id}", response_model=CategoryOut)
def admin_update_category(category_id: str, payload: CategoryIn, admin: SessionState = Depends(admin_only),
                          db: Session = Depends(get_db)):
    return catalog.save_category(db, payload.name, payload.icon, category_id=category_id)


@app.delete("/admin/categories/{category_id}")
def admin_delete_category(category_id: str, admin: SessionState = Depends(admin_only),
                          db: Session = Depends(get_db)):
    catalog.delete_category(db, category_id)
    return {"ok": True}


@app.post("/admin/products", response_model=ProductOut)
def admin_create_product(payload: ProductIn, admin: SessionState = Depends(admin_only),
                         db: Session = Depends(get_db)):
    return catalog.save_product(db, payload.model_dump())


@app.put("/admin/products/{product_id}", response_model=ProductOut)
def admin_update_product(product_id: str, payload: ProductIn, admin: SessionState = Depends(admin_only),
                         db: Session = Depends(get_db)):
    return catalog.save_product(db, payload.model_dump(), product_id=product_id)


@app.delete("/admin/products/{product_id}")
def admin_delete_product(product_id: str, admin: SessionState = Depends(admin_only), db: Session = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"ok": True}


@app.post("/admin/trusted-vendors", response_model=TrustedVendorOut)
def admin_add_trusted_vendor(payload: TrustedVendorIn, admin: SessionState = Depends(admin_only),
                             db: Session = Depends(get_db)):
    return catalog.add_trusted_vendor(db, payload.name, payload.logo_url)


@app.delete("/admin/trusted-vendors/{vendor_id}")
def admin_delete_trusted_vendor(vendor_id: str, admin: SessionState = Depends(admin_only),
                                db: Session = Depends(get_db)):
    catalog.delete_trusted_vendor(db, vendor_id)
    return {"ok": True}


@app.post("/admin/uploads/image", response_model=ImageUploadResponse)
async def admin_upload_image(file: UploadFile = File(...), admin: SessionState = Depends(admin_only)):
    content = await file.read(MAX_IMAGE_BYTES + 1)
    return ImageUploadResponse(data_url=to_data_url(content, file.content_type, file.filename), size=len(content))


# -------------------- Admin: settings -------------------- #
@app.put("/admin/settings")
def admin_update_settings(payload: SettingsUpdate, admin: SessionState = Depends(admin_only),
                          db: Session = Depends(get_db), site: SiteSettingsContext = Depends(get_site_settings)):
    with IN_FLIGHT.guard(admin.user.id, "settings.save"):
        view = site.update(db, payload.model_dump(exclude_unset=True))
    return view.model_dump()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
