# Filename: bantconfirm/catalog.py
# Admin-owned catalog: categories, products and the trusted-vendor logo strip.
# Input is validated before touching the database.

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bantconfirm.errors import NotFoundError, PersistenceError, ValidationError
from bantconfirm.models import Category, Product, TrustedVendor

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_ICON = "📁"
DEFAULT_PRODUCT_RATING = 4.5


def _commit(db: Session, what: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Save failed ({what}): {e}")
        raise PersistenceError(f"Failed to save {what}.") from e


def _load(db: Session, what: str, query):
    try:
        return query.all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error fetching {what}: {e}")
        raise PersistenceError(f"Failed to load {what}.") from e


def _get(db: Session, model, obj_id: str, label: str):
    try:
        obj = db.get(model, obj_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error fetching {label.lower()} {obj_id}: {e}")
        raise PersistenceError(f"Failed to load {label.lower()}.") from e
    if obj is None:
        raise NotFoundError(f"{label} {obj_id} not found")
    return obj


def _delete(db: Session, model, obj_id: str, label: str) -> None:
    db.delete(_get(db, model, obj_id, label))
    _commit(db, label.lower())
    logger.info(f"Deleted {label.lower()} {obj_id}")


# -------------------- Categories -------------------- #
def list_categories(db: Session) -> List[Category]:
    return _load(db, "categories", db.query(Category).order_by(Category.name.asc(), Category.id.asc()))


def save_category(db: Session, name: str, icon: Optional[str] = None, category_id: Optional[str] = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    category = _get(db, Category, category_id, "Category") if category_id else Category()
    category.name = name
    category.icon = (icon or "").strip() or DEFAULT_CATEGORY_ICON
    if not category_id:
        db.add(category)
    _commit(db, "category")
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: str) -> None:
    _delete(db, Category, category_id, "Category")


# -------------------- Products -------------------- #
def list_products(db: Session, category: Optional[str] = None) -> List[Product]:
    q = db.query(Product)
    if category:
        q = q.filter(Product.category == category)
    return _load(db, "products", q.order_by(Product.created_at.desc(), Product.id.desc()))


def save_product(db: Session, data: dict, product_id: Optional[str] = None) -> Product:
    """Create or update a product from a plain dict (see schemas.ProductIn)."""
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Product name is required")
    rating = data.get("rating")
    rating = DEFAULT_PRODUCT_RATING if rating is None else float(rating)
    if not 0 <= rating <= 5:
        raise ValidationError("Rating must be between 0 and 5")

    product = _get(db, Product, product_id, "Product") if product_id else Product()
    product.name = name
    product.image = data.get("image")
    product.short_features = [f.strip() for f in data.get("short_features") or [] if f and f.strip()]
    product.pricing = (data.get("pricing") or "").strip()
    product.category = (data.get("category") or "").strip() or "Custom Requirement"
    product.description = data.get("description")
    product.rating = rating
    product.tags = sorted({t.strip() for t in data.get("tags") or [] if t and t.strip()})
    product.original_price = data.get("original_price")
    product.vendor_id = data.get("vendor_id")
    if not product_id:
        db.add(product)
    _commit(db, "product")
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: str) -> None:
    _delete(db, Product, product_id, "Product")


# -------------------- Trusted vendors -------------------- #
def list_trusted_vendors(db: Session) -> List[TrustedVendor]:
    return _load(
        db, "trusted vendors", db.query(TrustedVendor).order_by(TrustedVendor.created_at.desc(), TrustedVendor.id.desc())
    )


def add_trusted_vendor(db: Session, name: str, logo_url: str) -> TrustedVendor:
    name = (name or "").strip()
    if not name or not logo_url:
        raise ValidationError("Name and Logo are required")
    vendor = TrustedVendor(name=name, logo_url=logo_url)
    db.add(vendor)
    _commit(db, "trusted vendor")
    db.refresh(vendor)
    return vendor


def delete_trusted_vendor(db: Session, vendor_id: str) -> None:
    _delete(db, TrustedVendor, vendor_id, "Trusted vendor")
