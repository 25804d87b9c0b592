"""Venue review aggregates stay equal to what the reviews table says."""
from datetime import datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.quietmap import create_app
from app.quietmap.db import session_scope
from app.quietmap.models import Base, User
from app.quietmap.modules.reviews.models import Hidden, Review, VISIBLE
from app.quietmap.modules.reviews.moderation import delete_review, set_review_visibility
from app.quietmap.modules.reviews.service import create_review, update_own_review
from app.quietmap.modules.reviews.stats import (
    compute_review_stats,
    recompute_all_venue_stats,
    recompute_venue_review_stats,
)
from app.quietmap.modules.venues.models import Venue

T0 = datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        for i in range(1, 5):
            s.add(User(email=f"user{i}@example.com", password_hash=generate_password_hash("pw"), is_active=True))
        s.add(Venue(name="Calm Café", city="Leeds", postcode="LS1 2AB", tags=["quiet"], image_urls=[]))
    return app


def _ids(app):
    with session_scope(app) as s:
        venue_id = s.query(Venue).one().id
        user_ids = [u.id for u in s.query(User).order_by(User.id).all()]
    return venue_id, user_ids


def _add_review(s, venue_id, author_id, rating, created_at, hidden=False):
    r = Review(
        venue_id=venue_id,
        author_id=author_id,
        rating=rating,
        created_at=created_at,
        updated_at=created_at,
    )
    r.visibility = Hidden(created_at) if hidden else VISIBLE
    s.add(r)
    s.flush()
    return r


def _assert_venue_matches_reviews(s, venue_id):
    venue = s.get(Venue, venue_id)
    reviews = s.query(Review).filter(Review.venue_id == venue_id).all()
    visible = [r for r in reviews if r.hidden_at is None]
    assert venue.review_count == len(reviews)
    assert venue.visible_review_count == len(visible)
    assert venue.hidden_review_count == len(reviews) - len(visible)
    if visible:
        assert venue.avg_rating == pytest.approx(sum(r.rating for r in visible) / len(visible))
        assert venue.last_reviewed_at == max(r.created_at for r in visible)
    else:
        assert venue.avg_rating is None
        assert venue.last_reviewed_at is None


def test_empty_venue_stats(app):
    venue_id, _ = _ids(app)
    with session_scope(app) as s:
        stats = compute_review_stats(s, venue_id)
    assert (stats.visible_count, stats.hidden_count, stats.total_count) == (0, 0, 0)
    assert stats.avg_rating is None
    assert stats.last_reviewed_at is None


def test_hidden_reviews_count_but_do_not_rate(app):
    venue_id, users = _ids(app)
    with session_scope(app) as s:
        _add_review(s, venue_id, users[0], 5, T0)
        _add_review(s, venue_id, users[1], 3, T0 + timedelta(days=1))
        _add_review(s, venue_id, users[2], 1, T0 + timedelta(days=2), hidden=True)
        stats = recompute_venue_review_stats(s, venue_id)

    assert stats.total_count == 3
    assert stats.visible_count == 2
    assert stats.hidden_count == 1
    assert stats.avg_rating == pytest.approx(4.0)
    # the hidden review is newer but does not count as "last reviewed"
    assert stats.last_reviewed_at == T0 + timedelta(days=1)
    assert stats.to_dict()["lastReviewedAt"] == "2024-05-02T12:00:00"

    with session_scope(app) as s:
        _assert_venue_matches_reviews(s, venue_id)


def test_aggregates_track_every_moderation_step(app):
    venue_id, users = _ids(app)
    with session_scope(app) as s:
        authors = [s.get(User, uid) for uid in users[:3]]
        first, _ = create_review(s, venue_id, {"rating": 5}, user=authors[0])
        second, _ = create_review(s, venue_id, {"rating": "3"}, user=authors[1])
        create_review(s, venue_id, {"rating": 4.0}, user=authors[2])
        first_id, second_id = first.id, second.id
        _assert_venue_matches_reviews(s, venue_id)

    steps = [
        lambda s: set_review_visibility(s, first_id, user=None),
        lambda s: set_review_visibility(s, first_id, user=None, hidden=True),
        lambda s: update_own_review(s, venue_id, {"rating": 1}, user=s.get(User, users[1])),
        lambda s: set_review_visibility(s, first_id, user=None),
        lambda s: delete_review(s, second_id, user=None),
    ]
    for step in steps:
        with session_scope(app) as s:
            step(s)
        with session_scope(app) as s:
            _assert_venue_matches_reviews(s, venue_id)

    with session_scope(app) as s:
        venue = s.get(Venue, venue_id)
        assert venue.review_count == 2
        assert venue.hidden_review_count == 0
        assert venue.avg_rating == pytest.approx(4.5)


def test_recompute_all_repairs_drift(app):
    venue_id, users = _ids(app)
    with session_scope(app) as s:
        _add_review(s, venue_id, users[0], 2, T0)
        other = Venue(name="Empty Venue", city="York", postcode="YO1 7HH", tags=[], image_urls=[])
        s.add(other)
        s.flush()
        other.review_count = 7
        other.avg_rating = 3.3

    with session_scope(app) as s:
        assert recompute_all_venue_stats(s) == 2

    with session_scope(app) as s:
        for v in s.query(Venue).all():
            _assert_venue_matches_reviews(s, v.id)


def test_recompute_is_idempotent(app):
    venue_id, users = _ids(app)
    with session_scope(app) as s:
        _add_review(s, venue_id, users[0], 4, T0)
        first = recompute_venue_review_stats(s, venue_id)
        second = recompute_venue_review_stats(s, venue_id)
    assert first == second
