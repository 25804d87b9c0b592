from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.quietmap.constants import GEOHASH_PRECISION
from app.quietmap.models import Base
from app.quietmap.utils import iso, utcnow

if TYPE_CHECKING:
    from app.quietmap.modules.geo.geocoder import Coordinates


class Venue(Base):
    __tablename__ = "venues"
    __table_args__ = (
        Index("idx_venues_postcode", "postcode"),
        Index("idx_venues_archived_at", "archived_at"),
        Index("idx_venues_geohash", "geohash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(512), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Address
    address1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(16), nullable=True)  # canonical "LS1 2AB"
    county: Mapped[str | None] = mapped_column(String(128), nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)  # lowercase

    cover_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Geo: all three set together or all NULL
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    geohash: Mapped[str | None] = mapped_column(String(12), nullable=True)

    # Moderation
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Review aggregates, maintained by reviews.stats
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # visible + hidden
    visible_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hidden_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_rating: Mapped[float | None] = mapped_column(Float, nullable=True)  # visible only
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    sensory: Mapped["VenueSensory | None"] = relationship(
        "VenueSensory",
        back_populates="venue",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    facilities: Mapped["VenueFacilities | None"] = relationship(
        "VenueFacilities",
        back_populates="venue",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def set_geo(self, coords: "Coordinates | None", precision: int = GEOHASH_PRECISION) -> None:
        if coords is None:
            self.lat = None
            self.lng = None
            self.geohash = None
            return
        self.lat = coords.lat
        self.lng = coords.lng
        self.geohash = coords.geohash(precision)

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "city": self.city,
            "postcode": self.postcode,
        }

    def to_dict(self) -> dict:
        return {
            **self.summary(),
            "description": self.description,
            "website": self.website,
            "phone": self.phone,
            "address1": self.address1,
            "address2": self.address2,
            "county": self.county,
            "tags": list(self.tags or []),
            "coverImageUrl": self.cover_image_url,
            "imageUrls": list(self.image_urls or []),
            "lat": self.lat,
            "lng": self.lng,
            "geohash": self.geohash,
            "verifiedAt": iso(self.verified_at),
            "archivedAt": iso(self.archived_at),
            "reviewCount": self.review_count,
            "visibleReviewCount": self.visible_review_count,
            "hiddenReviewCount": self.hidden_review_count,
            "avgRating": self.avg_rating,
            "lastReviewedAt": iso(self.last_reviewed_at),
            "sensory": self.sensory.to_dict() if self.sensory else None,
            "facilities": self.facilities.to_dict() if self.facilities else None,
        }


class VenueSensory(Base):
    __tablename__ = "venue_sensory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, unique=True)

    noise_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lighting: Mapped[str | None] = mapped_column(String(16), nullable=True)
    crowding: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quiet_space: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sensory_hours: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    venue: Mapped[Venue] = relationship("Venue", back_populates="sensory")

    def to_dict(self) -> dict:
        return {
            "noiseLevel": self.noise_level,
            "lighting": self.lighting,
            "crowding": self.crowding,
            "quietSpace": self.quiet_space,
            "sensoryHours": self.sensory_hours,
            "notes": self.notes,
        }


class VenueFacilities(Base):
    __tablename__ = "venue_facilities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, unique=True)

    parking: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    accessible_toilet: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    baby_change: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    wheelchair_access: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    staff_trained: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    venue: Mapped[Venue] = relationship("Venue", back_populates="facilities")

    def to_dict(self) -> dict:
        return {
            "parking": self.parking,
            "accessibleToilet": self.accessible_toilet,
            "babyChange": self.baby_change,
            "wheelchairAccess": self.wheelchair_access,
            "staffTrained": self.staff_trained,
            "notes": self.notes,
        }
