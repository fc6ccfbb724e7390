import pytest
from twilio.base.exceptions import TwilioRestException

from bantconfirm import catalog, utils
from bantconfirm.database import engine
from bantconfirm.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from bantconfirm.models import Category, SiteSettings
from bantconfirm.services.csv_export import render_csv
from bantconfirm.services.images import MAX_IMAGE_BYTES, to_data_url
from bantconfirm.single_flight import SingleFlight
from bantconfirm.site_settings import DEFAULT_APP_NAME, DEFAULT_LOGO_URL, SiteSettingsContext


# -------------------- catalog --------------------

def test_category_requires_name(db):
    with pytest.raises(ValidationError):
        catalog.save_category(db, "   ")
    assert db.query(Category).count() == 0


def test_categories_sorted_by_name_with_default_icon(db):
    catalog.save_category(db, "VoIP", "📞")
    catalog.save_category(db, "Cloud")
    names = [(c.name, c.icon) for c in catalog.list_categories(db)]
    assert names == [("Cloud", "📁"), ("VoIP", "📞")]


def test_category_update_and_delete(db):
    c = catalog.save_category(db, "Cloud")
    catalog.save_category(db, "Cloud Storage", "☁️", category_id=c.id)
    assert catalog.list_categories(db)[0].name == "Cloud Storage"

    catalog.delete_category(db, c.id)
    assert catalog.list_categories(db) == []
    with pytest.raises(NotFoundError):
        catalog.delete_category(db, c.id)


def test_product_defaults_and_validation(db):
    p = catalog.save_product(db, {"name": "SIP Trunk", "pricing": "500", "tags": ["Voice", "Best Seller", "Voice"]})
    assert p.rating == 4.5
    assert p.tags == ["Best Seller", "Voice"]
    assert p.category == "Custom Requirement"

    with pytest.raises(ValidationError):
        catalog.save_product(db, {"name": ""})
    with pytest.raises(ValidationError):
        catalog.save_product(db, {"name": "Too good", "rating": 7})


def test_products_filter_by_category(db):
    catalog.save_product(db, {"name": "Cloud Storage Pro", "category": "Cloud Storage"})
    catalog.save_product(db, {"name": "SIP Trunk", "category": "SIP Trunk"})
    assert [p.name for p in catalog.list_products(db, "SIP Trunk")] == ["SIP Trunk"]


def test_trusted_vendor_needs_name_and_logo(db):
    with pytest.raises(ValidationError):
        catalog.add_trusted_vendor(db, "Acme", "")
    v = catalog.add_trusted_vendor(db, "Acme", "data:image/png;base64,AAAA")
    assert [x.id for x in catalog.list_trusted_vendors(db)] == [v.id]


def test_catalog_lookup_reports_store_failure(db):
    Category.__table__.drop(bind=engine)
    with pytest.raises(PersistenceError):
        catalog.delete_category(db, "some-id")


# -------------------- site settings --------------------

def test_settings_defaults_when_table_empty(db):
    ctx = SiteSettingsContext()
    view = ctx.refresh(db)
    assert view.id is None
    assert view.app_name == DEFAULT_APP_NAME
    assert view.logo_url == DEFAULT_LOGO_URL
    assert view.show_app_name is True


def test_settings_created_lazily_then_updated_in_place(db):
    ctx = SiteSettingsContext()
    first = ctx.update(db, {"app_name": "LeadHub", "whatsapp_api_key": "secret"})
    second = ctx.update(db, {"show_app_name": False})

    assert db.query(SiteSettings).count() == 1
    assert first.id == second.id
    assert ctx.current.app_name == "LeadHub"
    assert ctx.current.show_app_name is False
    assert "whatsapp_api_key" not in ctx.current.public()


def test_settings_reject_unknown_or_blank(db):
    ctx = SiteSettingsContext()
    with pytest.raises(ValidationError):
        ctx.update(db, {"theme": "dark"})
    with pytest.raises(ValidationError):
        ctx.update(db, {"app_name": "  "})
    assert db.query(SiteSettings).count() == 0


# -------------------- services --------------------

def test_image_to_data_url():
    url = to_data_url(b"\x89PNG\r\n\x1a\n", "image/png", "logo.png")
    assert url.startswith("data:image/png;base64,")

    guessed = to_data_url(b"GIF89a", None, "anim.gif")
    assert guessed.startswith("data:image/gif;base64,")


@pytest.mark.parametrize(
    "content,content_type",
    [(b"", "image/png"), (b"x" * (MAX_IMAGE_BYTES + 1), "image/png"), (b"hello", "text/plain")],
)
def test_image_rejected(content, content_type):
    with pytest.raises(ValidationError):
        to_data_url(content, content_type, "file")


def test_render_csv_quotes_only_when_needed():
    out = render_csv(["a", "b"], [["plain", 'say "hi"'], ["x,y", None]])
    assert out == 'a,b\nplain,"say ""hi"""\n"x,y",'


def test_single_flight_rejects_duplicate_and_releases():
    flight = SingleFlight()
    with flight.guard("u1", "enquiry.confirm"):
        with pytest.raises(ConflictError):
            with flight.guard("u1", "enquiry.confirm"):
                pass
        with flight.guard("u2", "enquiry.confirm"):
            pass

    with pytest.raises(RuntimeError):
        with flight.guard("u1", "enquiry.confirm"):
            raise RuntimeError("boom")
    assert flight.snapshot() == []


# -------------------- vendor notification --------------------

class FakeMessages:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def create(self, **kwargs):
        if self.fail:
            raise TwilioRestException(500, "https://api.twilio.com", msg="boom")
        self.sent.append(kwargs)
        return type("Msg", (), {"sid": "SM123"})()


class FakeTwilio:
    def __init__(self, fail=False):
        self.messages = FakeMessages(fail)


def test_notify_vendor_sends_whatsapp():
    client = FakeTwilio()
    text = utils.assignment_message("BANTConfirm", "NetCo", "SIP Trunk", "30 channels")

    assert utils.notify_vendor_assignment("+919800000002", text, client=client) is True
    sent = client.messages.sent[0]
    assert sent["to"] == "whatsapp:+919800000002"
    assert "SIP Trunk" in sent["body"]


def test_notify_vendor_failures_are_contained(monkeypatch):
    monkeypatch.setattr(utils.time, "sleep", lambda s: None)
    assert utils.notify_vendor_assignment("+919800000002", "hi", client=FakeTwilio(fail=True)) is False
    assert utils.notify_vendor_assignment(None, "hi", client=FakeTwilio()) is False
    # credentials are blank in tests
    assert utils.notify_vendor_assignment("+919800000002", "hi") is False
