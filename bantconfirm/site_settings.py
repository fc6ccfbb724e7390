# Filename: bantconfirm/site_settings.py
# Branding and integration settings.
#  - One SiteSettingsContext lives on app.state
#  - An empty `site_settings` table means default branding; the first admin
#    save creates the row, later saves update it

import logging
import threading
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bantconfirm.errors import PersistenceError, ValidationError
from bantconfirm.models import SiteSettings

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "BANTConfirm"
DEFAULT_LOGO_URL = (
    "https://assets-global.website-files.com/62c01991206f74a0678d85f6/"
    "62cf9b152d244c062c3e1644_bant-confirm-favicon.png"
)

_FIELDS = (
    "app_name", "logo_url", "favicon_url", "show_app_name",
    "social_facebook", "social_twitter", "social_linkedin",
    "whatsapp_api_key", "whatsapp_phone_number_id",
)
_SECRET_FIELDS = {"whatsapp_api_key", "whatsapp_phone_number_id"}


class SiteSettingsView(BaseModel):
    id: Optional[str] = None
    app_name: str = DEFAULT_APP_NAME
    logo_url: str = DEFAULT_LOGO_URL
    favicon_url: str = ""
    show_app_name: bool = True
    social_facebook: str = ""
    social_twitter: str = ""
    social_linkedin: str = ""
    whatsapp_api_key: str = ""
    whatsapp_phone_number_id: str = ""

    @classmethod
    def from_row(cls, row: Optional[SiteSettings]) -> "SiteSettingsView":
        if row is None:
            return cls()
        defaults = cls()
        return cls(
            id=row.id,
            app_name=row.app_name or defaults.app_name,
            logo_url=row.logo_url or defaults.logo_url,
            favicon_url=row.favicon_url or "",
            show_app_name=True if row.show_app_name is None else row.show_app_name,
            social_facebook=row.social_facebook or "",
            social_twitter=row.social_twitter or "",
            social_linkedin=row.social_linkedin or "",
            whatsapp_api_key=row.whatsapp_api_key or "",
            whatsapp_phone_number_id=row.whatsapp_phone_number_id or "",
        )

    def public(self) -> dict:
        return self.model_dump(exclude=_SECRET_FIELDS)


class SiteSettingsContext:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = SiteSettingsView()

    @property
    def current(self) -> SiteSettingsView:
        with self._lock:
            return self._current

    @staticmethod
    def _row(db: Session) -> Optional[SiteSettings]:
        return db.query(SiteSettings).order_by(SiteSettings.id.asc()).first()

    def refresh(self, db: Session) -> SiteSettingsView:
        """Reload from the store; a failed read keeps the last known settings."""
        try:
            view = SiteSettingsView.from_row(self._row(db))
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not load site settings: {e}")
            return self.current
        with self._lock:
            self._current = view
        return view

    def update(self, db: Session, changes: dict) -> SiteSettingsView:
        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "app_name" in changes and changes["app_name"] is not None and not changes["app_name"].strip():
            raise ValidationError("App name cannot be blank")

        try:
            row = self._row(db)
            if row is None:
                row = SiteSettings()
                db.add(row)
            for key, value in changes.items():
                setattr(row, key, value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update settings: {e}")
            raise PersistenceError("Failed to save settings.") from e
        logger.info(f"Site settings saved ({', '.join(sorted(changes)) or 'no changes'})")
        return self.refresh(db)
