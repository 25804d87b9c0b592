"""Tests for admin venue edits, archiving and geo backfill."""
import pytest
from werkzeug.security import generate_password_hash

from app.quietmap import create_app
from app.quietmap.db import session_scope
from app.quietmap.errors import ValidationError
from app.quietmap.models import Base, Permission, Role, User
from app.quietmap.modules.geo.geocoder import CachingGeocoder, Coordinates
from app.quietmap.modules.venues.models import Venue
from app.quietmap.modules.venues.service import (
    archive_venue,
    backfill_geo,
    find_duplicates,
    merge_gallery,
    unarchive_venue,
    update_venue,
)
from app.quietmap.utils import utcnow

COORDS = {
    "LS1 2AB": Coordinates(lat=53.8, lng=-1.55),
    "EC1A 1BB": Coordinates(lat=51.5074, lng=-0.1278),
}


class FakeLookup:
    def __init__(self, results=None):
        self.results = COORDS if results is None else results
        self.calls = []

    def lookup(self, postcode):
        self.calls.append(postcode)
        return self.results.get(postcode)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    app.extensions["geocoder"] = CachingGeocoder(FakeLookup())
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        perms = [
            Permission(key="admin.view", name="Admin: view dashboard"),
            Permission(key="venues.edit", name="Venues: edit"),
            Permission(key="reviews.moderate", name="Reviews: moderate"),
        ]
        r = Role(key="admin", name="Administrator")
        r.permissions.extend(perms)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([*perms, r, u])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _venue(app, **fields):
    fields.setdefault("name", "Calm Café")
    fields.setdefault("city", "Leeds")
    fields.setdefault("postcode", "LS1 2AB")
    fields.setdefault("tags", ["quiet"])
    fields.setdefault("image_urls", [])
    with session_scope(app) as s:
        v = Venue(**fields)
        s.add(v)
        s.flush()
        return v.id


def _admin(s):
    return s.query(User).filter(User.email == "admin@example.com").one()


def _imgs(*names):
    return [f"https://img.test/{n}.jpg" for n in names]


def test_merge_gallery_modes():
    assert merge_gallery(_imgs("a", "b"), _imgs("b", "c"), "APPEND") == _imgs("a", "b", "c")
    assert merge_gallery(_imgs("a", "b"), _imgs("c"), "REPLACE") == _imgs("c")
    assert len(merge_gallery(_imgs(*range(8)), _imgs(*range(8, 16)), "APPEND")) == 10


def test_find_duplicates_matches_both_postcode_forms(app):
    spaced = _venue(app, postcode="LS1 2AB")
    compact = _venue(app, postcode="LS12AB")
    _venue(app, postcode="LS1 2AB", archived_at=utcnow())
    _venue(app, postcode="LS2 7EW")

    with session_scope(app) as s:
        assert [v.id for v in find_duplicates(s, "ls1 2ab")] == [spaced, compact]
        assert [v.id for v in find_duplicates(s, "LS12AB", exclude_venue_id=spaced)] == [compact]
        assert find_duplicates(s, "") == []


def test_update_appends_gallery_and_keeps_geo(app):
    venue_id = _venue(app, image_urls=_imgs("a"), lat=53.8, lng=-1.55, geohash="gcwfh9zrd")
    lookup = FakeLookup()

    with session_scope(app) as s:
        update_venue(
            s,
            venue_id,
            {"name": "Calm Café", "postcode": "ls12ab", "imageUrls": _imgs("b")},
            user=_admin(s),
            geocoder=CachingGeocoder(lookup),
        )
    with session_scope(app) as s:
        venue = s.get(Venue, venue_id)
        assert venue.image_urls == _imgs("a", "b")
        assert venue.postcode == "LS1 2AB"
        assert venue.geohash == "gcwfh9zrd"
    assert lookup.calls == []


def test_update_replace_and_regeocode(app):
    venue_id = _venue(app, image_urls=_imgs("a", "b"), lat=53.8, lng=-1.55, geohash="gcwfh9zrd")

    with session_scope(app) as s:
        update_venue(
            s,
            venue_id,
            {"name": "Calm Café", "postcode": "EC1A 1BB", "imageUrls": _imgs("c"), "imageMode": "REPLACE"},
            user=_admin(s),
            geocoder=CachingGeocoder(FakeLookup()),
        )
    with session_scope(app) as s:
        venue = s.get(Venue, venue_id)
        assert venue.image_urls == _imgs("c")
        assert venue.geohash == "gcpvj0duq"


def test_update_clearing_postcode_clears_geo(app):
    venue_id = _venue(app, lat=53.8, lng=-1.55, geohash="gcwfh9zrd")
    with session_scope(app) as s:
        update_venue(s, venue_id, {"name": "Calm Café", "postcode": ""}, user=_admin(s), geocoder=CachingGeocoder(FakeLookup()))
    with session_scope(app) as s:
        venue = s.get(Venue, venue_id)
        assert (venue.postcode, venue.lat, venue.lng, venue.geohash) == (None, None, None, None)


def test_update_validation(app):
    venue_id = _venue(app)
    with session_scope(app) as s:
        with pytest.raises(ValidationError) as exc:
            update_venue(s, venue_id, {"name": "X", "imageMode": "MERGE"}, user=_admin(s))
    assert set(exc.value.field_errors) == {"name", "imageMode"}


def test_archive_roundtrip_is_idempotent(app):
    venue_id = _venue(app)
    with session_scope(app) as s:
        first = archive_venue(s, venue_id, user=_admin(s), reason="closed").archived_at
        assert archive_venue(s, venue_id, user=_admin(s)).archived_at == first
    with session_scope(app) as s:
        assert unarchive_venue(s, venue_id, user=_admin(s)).archived_at is None
        assert unarchive_venue(s, venue_id, user=_admin(s)).archived_at is None


def test_backfill_geo(app):
    missing = _venue(app, postcode="LS1 2AB")
    unknown = _venue(app, postcode="ZZ9 9ZZ")
    archived = _venue(app, postcode="EC1A 1BB", archived_at=utcnow())
    done = _venue(app, postcode="EC1A 1BB", lat=1.0, lng=1.0, geohash="s00twy01m")
    _venue(app, postcode=None)

    with session_scope(app) as s:
        result = backfill_geo(s, geocoder=CachingGeocoder(FakeLookup()))
    assert result == {"scanned": 2, "updated": 1, "skipped": 1}

    with session_scope(app) as s:
        assert s.get(Venue, missing).geohash == "gcwfh9zrd"
        assert s.get(Venue, unknown).lat is None
        assert s.get(Venue, archived).lat is None
        assert s.get(Venue, done).lat == 1.0


def test_backfill_limit_is_clamped(app):
    for _ in range(3):
        _venue(app)
    with session_scope(app) as s:
        assert backfill_geo(s, limit=0, geocoder=CachingGeocoder(FakeLookup()))["scanned"] == 1
    with session_scope(app) as s:
        assert backfill_geo(s, limit=10_000, geocoder=CachingGeocoder(FakeLookup()))["scanned"] == 2


def test_venue_endpoints(client, app):
    venue_id = _venue(app)
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "pw"})
    headers = {"X-CSRF-Token": r.json["csrf_token"]}

    r = client.patch(
        f"/admin/venues/{venue_id}",
        json={"name": "Calmer Café", "postcode": "LS1 2AB", "tags": ["Quiet", "Autism Friendly"]},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["venue"]["tags"] == ["quiet", "autism friendly"]

    r = client.post(f"/admin/venues/{venue_id}/verify", headers=headers)
    assert r.json["verifiedAt"]

    r = client.post(f"/admin/venues/{venue_id}/archive", json={"reason": "closed"}, headers=headers)
    assert r.json["archivedAt"]
    r = client.post(f"/admin/venues/{venue_id}/unarchive", headers=headers)
    assert r.json["archivedAt"] is None

    r = client.post("/admin/venues/backfill-geo", json={"limit": "lots"}, headers=headers)
    assert r.status_code == 400
    r = client.post("/admin/venues/backfill-geo", json={"limit": 5}, headers=headers)
    assert r.status_code == 200
    assert r.json["scanned"] == 1

    r = client.post("/admin/venues/recompute-stats", headers=headers)
    assert r.json["venues"] == 1

    r = client.get(f"/admin/venues/{venue_id}")
    assert r.json["venue"]["name"] == "Calmer Café"
    assert r.json["venue"]["geohash"] == "gcwfh9zrd"
