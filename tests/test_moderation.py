"""Tests for review moderation and report handling."""
import pytest
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash

from app.quietmap import create_app
from app.quietmap.db import session_scope
from app.quietmap.errors import ConflictError, PartialFailureError, ReportedReviewMissingError
from app.quietmap.models import AuditEvent, Base, Permission, Role, User
from app.quietmap.modules.reviews import moderation
from app.quietmap.modules.reviews.models import Review, ReviewReport
from app.quietmap.modules.reviews.moderation import (
    delete_review,
    delete_review_and_resolve_report,
    dismiss_report,
    resolve_report,
    set_review_visibility,
)
from app.quietmap.modules.reviews.service import create_review, report_review
from app.quietmap.modules.venues.models import Venue


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        perms = [
            Permission(key="admin.view", name="Admin: view dashboard"),
            Permission(key="reviews.moderate", name="Reviews: moderate"),
            Permission(key="reports.moderate", name="Reports: moderate"),
        ]
        r = Role(key="admin", name="Administrator")
        r.permissions.extend(perms)
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(r)
        author = User(email="author@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([*perms, r, admin, author])
        s.add(Venue(name="Calm Café", city="Leeds", postcode="LS1 2AB", tags=["quiet"], image_urls=[]))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def reported(app):
    """(venue_id, review_id, report_id) for one visible 4-star review with an OPEN report."""
    with session_scope(app) as s:
        venue = s.query(Venue).one()
        author = s.query(User).filter(User.email == "author@example.com").one()
        review, _ = create_review(s, venue.id, {"rating": 4, "title": "Lovely"}, user=author)
        report = report_review(s, venue.id, review.id, {"reason": "SPAM"}, reporter_ip="203.0.113.9")
        return venue.id, review.id, report.id


def _login(client, email="admin@example.com"):
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


# ---------- Service ----------
def test_resolve_hides_review_and_is_idempotent(app, reported):
    venue_id, review_id, report_id = reported

    with session_scope(app) as s:
        report, stats = resolve_report(s, report_id, user=None, note="spam link")
        assert report.status == "RESOLVED"
        assert stats.visible_count == 0
        assert stats.hidden_count == 1

    with session_scope(app) as s:
        hidden_at = s.get(Review, review_id).hidden_at
        assert hidden_at is not None
        report, stats = resolve_report(s, report_id, user=None)
        assert stats is None
        assert report.resolution_note == "spam link"

    with session_scope(app) as s:
        assert s.get(Review, review_id).hidden_at == hidden_at
        venue = s.get(Venue, venue_id)
        assert (venue.visible_review_count, venue.hidden_review_count) == (0, 1)
        assert s.query(AuditEvent).filter(AuditEvent.action == "review_report.resolve").count() == 1


def test_resolve_never_unhides(app, reported):
    _, review_id, report_id = reported
    with session_scope(app) as s:
        set_review_visibility(s, review_id, user=None, hidden=True)
    with session_scope(app) as s:
        before = s.get(Review, review_id).hidden_at
        resolve_report(s, report_id, user=None)
    with session_scope(app) as s:
        assert s.get(Review, review_id).hidden_at == before


def test_dismiss_leaves_review_visible(app, reported):
    _, review_id, report_id = reported
    with session_scope(app) as s:
        report = dismiss_report(s, report_id, user=None, note="fine")
        assert report.status == "DISMISSED"
        assert report.resolved_at is not None
    with session_scope(app) as s:
        assert s.get(Review, review_id).hidden_at is None
        assert dismiss_report(s, report_id, user=None).status == "DISMISSED"
        with pytest.raises(ConflictError):
            resolve_report(s, report_id, user=None)


def test_dismiss_after_resolve_conflicts(app, reported):
    _, _, report_id = reported
    with session_scope(app) as s:
        resolve_report(s, report_id, user=None)
    with session_scope(app) as s:
        with pytest.raises(ConflictError):
            dismiss_report(s, report_id, user=None)


def test_deleted_review_keeps_reports(app, reported):
    venue_id, review_id, report_id = reported
    with session_scope(app) as s:
        stats = delete_review(s, review_id, user=None)
        assert stats.total_count == 0

    with session_scope(app) as s:
        report = s.get(ReviewReport, report_id)
        assert report.review_id is None
        assert report.status == "OPEN"
        assert s.get(Venue, venue_id).review_count == 0
        with pytest.raises(ReportedReviewMissingError):
            resolve_report(s, report_id, user=None)


def test_delete_then_resolve(app, reported):
    venue_id, review_id, report_id = reported
    with session_scope(app) as s:
        report, stats = delete_review_and_resolve_report(s, report_id, user=None, note="removed")
        assert report.status == "RESOLVED"
        assert stats.total_count == 0

    with session_scope(app) as s:
        assert s.get(Review, review_id) is None
        report = s.get(ReviewReport, report_id)
        assert report.status == "RESOLVED"
        assert report.resolution_note == "removed"
        assert s.get(Venue, venue_id).review_count == 0


def test_delete_then_resolve_partial_failure(app, reported, monkeypatch):
    venue_id, review_id, report_id = reported

    def broken_mark(*args, **kwargs):
        raise OperationalError("UPDATE review_reports", {}, Exception("database is locked"))

    monkeypatch.setattr(moderation, "_mark_report", broken_mark)

    with pytest.raises(PartialFailureError) as exc:
        with session_scope(app) as s:
            delete_review_and_resolve_report(s, report_id, user=None)
    assert exc.value.completed == ["review.delete"]
    assert exc.value.failed == "review_report.resolve"

    with session_scope(app) as s:
        # the deletion stays committed; the report is still open
        assert s.get(Review, review_id) is None
        assert s.get(ReviewReport, report_id).status == "OPEN"
        assert s.get(Venue, venue_id).review_count == 0


def test_delete_then_resolve_refuses_dismissed_report(app, reported):
    _, review_id, report_id = reported
    with session_scope(app) as s:
        dismiss_report(s, report_id, user=None)
    with session_scope(app) as s:
        with pytest.raises(ConflictError):
            delete_review_and_resolve_report(s, report_id, user=None)
    with session_scope(app) as s:
        assert s.get(Review, review_id) is not None


# ---------- HTTP ----------
def test_toggle_visibility_endpoint(client, reported):
    venue_id, review_id, _ = reported
    headers = _login(client)

    r = client.patch(f"/admin/reviews/{review_id}", json={}, headers=headers)
    assert r.status_code == 200
    assert r.json["hidden"] is True
    assert r.json["venue"]["hiddenCount"] == 1

    r = client.patch(f"/admin/reviews/{review_id}", json={}, headers=headers)
    assert r.json["hidden"] is False

    r = client.patch(f"/admin/reviews/{review_id}", json={"hidden": False}, headers=headers)
    assert r.json["hidden"] is False
    assert r.json["venue"]["visibleCount"] == 1


def test_visibility_endpoint_rejects_non_boolean_hidden(client, app, reported):
    _, review_id, _ = reported
    with session_scope(app) as s:
        set_review_visibility(s, review_id, user=None, hidden=True)
    with session_scope(app) as s:
        audits_before = s.query(AuditEvent).count()
    headers = _login(client)

    for value in ("true", 1, "false"):
        r = client.patch(f"/admin/reviews/{review_id}", json={"hidden": value}, headers=headers)
        assert r.status_code == 400
        assert r.json["issues"]["fieldErrors"] == {"hidden": ["Must be true or false."]}

    with session_scope(app) as s:
        assert s.get(Review, review_id).hidden_at is not None
        assert s.query(AuditEvent).count() == audits_before


def test_report_endpoint_is_public(client, app, reported):
    venue_id, review_id, _ = reported
    token = client.get("/auth/csrf").json["csrf_token"]
    headers = {"X-CSRF-Token": token, "X-Forwarded-For": "198.51.100.7, 10.0.0.1"}

    r = client.post(f"/api/venues/{venue_id}/reviews/{review_id}/report", json={"reason": "HATE"}, headers=headers)
    assert r.status_code == 201

    r = client.post(f"/api/venues/{venue_id}/reviews/{review_id}/report", json={"reason": "RUDE"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Please fix the report fields."

    r = client.post(f"/api/venues/{venue_id}/reviews/9999/report", json={"reason": "SPAM"}, headers=headers)
    assert r.status_code == 404

    with session_scope(app) as s:
        report = s.query(ReviewReport).filter(ReviewReport.reason == "HATE").one()
        assert report.reporter_ip == "198.51.100.7"


def test_report_endpoints(client, reported):
    _, review_id, report_id = reported
    headers = _login(client)

    r = client.get("/admin/review-reports")
    assert [x["id"] for x in r.json["reports"]] == [report_id]

    r = client.patch(f"/admin/review-reports/{report_id}", json={"status": "OPEN"}, headers=headers)
    assert r.status_code == 400

    r = client.post(f"/admin/review-reports/{report_id}/resolve", json={"resolutionNote": "hidden"}, headers=headers)
    assert r.status_code == 200
    assert r.json["report"]["status"] == "RESOLVED"

    r = client.patch(f"/admin/review-reports/{report_id}", json={"status": "RESOLVED"}, headers=headers)
    assert r.status_code == 200
    assert r.json["venue"] is None

    r = client.post(f"/admin/review-reports/{report_id}/dismiss", headers=headers)
    assert r.status_code == 409

    r = client.get("/admin/review-reports?status=resolved")
    assert [x["id"] for x in r.json["reports"]] == [report_id]


def test_report_on_deleted_review_is_gone(client, reported):
    _, review_id, report_id = reported
    headers = _login(client)

    r = client.delete(f"/admin/reviews/{review_id}", headers=headers)
    assert r.status_code == 200
    assert r.json["venue"]["totalCount"] == 0

    r = client.post(f"/admin/review-reports/{report_id}/resolve", headers=headers)
    assert r.status_code == 410

    r = client.post(f"/admin/review-reports/{report_id}/delete-review", headers=headers)
    assert r.status_code == 410

    r = client.post(f"/admin/review-reports/{report_id}/dismiss", headers=headers)
    assert r.status_code == 200


def test_delete_review_endpoint_resolves_report(client, reported):
    venue_id, review_id, report_id = reported
    headers = _login(client)

    r = client.post(f"/admin/review-reports/{report_id}/delete-review", json={}, headers=headers)
    assert r.status_code == 200
    assert r.json["report"]["status"] == "RESOLVED"
    assert r.json["venue"]["totalCount"] == 0


def test_moderation_requires_permission(client, reported):
    _, review_id, report_id = reported
    headers = _login(client, "author@example.com")
    assert client.patch(f"/admin/reviews/{review_id}", json={}, headers=headers).status_code == 403
    assert client.post(f"/admin/review-reports/{report_id}/resolve", headers=headers).status_code == 403


def test_one_review_per_author(client, reported):
    venue_id, _, _ = reported
    headers = _login(client, "author@example.com")

    r = client.get(f"/api/venues/{venue_id}/reviews")
    assert r.json["review"]["title"] == "Lovely"

    r = client.post(f"/api/venues/{venue_id}/reviews", json={"rating": 5}, headers=headers)
    assert r.status_code == 409

    r = client.patch(f"/api/venues/{venue_id}/reviews", json={"rating": 2}, headers=headers)
    assert r.status_code == 200
    assert r.json["stats"]["avgRating"] == 2.0

    r = client.post(f"/api/venues/{venue_id}/reviews", json={"rating": 9}, headers=_login(client))
    assert r.status_code == 400
