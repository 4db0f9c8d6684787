"""
services/place_service.py — Places, reviews, bookmarks and place look-ups.

Invariants enforced here:
  - rating_average / rating_count always equal the aggregate of the place's
    reviews. Every review write recomputes them in the same transaction.
  - A place with reviews cannot be deleted (PLACE_HAS_REVIEWS, 409); reviews
    are never removed as a side effect.
  - Places are edited and deleted by their creator only; for anyone else the
    place is PLACE_NOT_FOUND (404). Reviews likewise belong to their author.

Proximity search:
  A bounding box around the query point narrows candidates through the
  (lng, lat) index; exact great-circle distance then filters and orders them.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, not_found
from backend.app.models.base import isoformat, point_dict
from backend.app.models.place import Place, PlaceCategory, SavedPlace
from backend.app.models.review import Review, ReviewVote
from backend.app.services.user_service import build_user_summary
from backend.app.utils.geo import bounding_box, haversine
from backend.app.utils.pagination import paginate

NEARBY_DEFAULT_RADIUS_M = 5000
NEARBY_MAX_RESULTS = 50

_PLACE_FIELDS = (
    "name",
    "address",
    "category",
    "phone",
    "website",
    "hours",
    "photos",
    "amenities",
    "price_level",
)
_REVIEW_FIELDS = ("rating", "title", "comment", "photos")


# ── Serialisers ────────────────────────────────────────────────────────────

def build_place_dict(place: Place, distance: float | None = None) -> dict:
    result = {
        "id": place.id,
        "name": place.name,
        "location": point_dict(place.lng, place.lat),
        "address": place.address,
        "category": place.category.value,
        "phone": place.phone,
        "website": place.website,
        "hours": place.hours,
        "rating": {
            "average": place.rating_average,
            "count": place.rating_count,
        },
        "photos": place.photos,
        "amenities": place.amenities,
        "price_level": place.price_level,
        "verified": place.verified,
        "added_by": place.added_by,
        "created_at": isoformat(place.created_at),
        "updated_at": isoformat(place.updated_at),
    }
    if distance is not None:
        result["distance"] = round(distance, 1)
    return result


def build_review_dict(review: Review) -> dict:
    return {
        "id": review.id,
        "place_id": review.place_id,
        "user": build_user_summary(review.author),
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "photos": review.photos,
        "helpful": review.helpful,
        "helpful_count": len(review.votes),
        "reported": review.reported,
        "verified": review.verified,
        "created_at": isoformat(review.created_at),
        "updated_at": isoformat(review.updated_at),
    }


# ── Private helpers ────────────────────────────────────────────────────────

def _get_place_or_404(place_id: int, session: Session) -> Place:
    place = session.get(Place, place_id)
    if place is None:
        raise not_found(ErrorCode.PLACE_NOT_FOUND, "Place", place_id)
    return place


def _get_created_place_or_404(place_id: int, user_id: int, session: Session) -> Place:
    place = _get_place_or_404(place_id, session)
    if place.added_by != user_id:
        raise not_found(ErrorCode.PLACE_NOT_FOUND, "Place", place_id)
    return place


def _get_review_or_404(place_id: int, review_id: int, session: Session) -> Review:
    review = session.execute(
        select(Review).where(Review.id == review_id, Review.place_id == place_id)
    ).scalar_one_or_none()
    if review is None:
        raise not_found(ErrorCode.REVIEW_NOT_FOUND, "Review", review_id)
    return review


def _get_authored_review_or_404(place_id: int, review_id: int, user_id: int, session: Session) -> Review:
    review = _get_review_or_404(place_id, review_id, session)
    if review.user_id != user_id:
        raise not_found(ErrorCode.REVIEW_NOT_FOUND, "Review", review_id)
    return review


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def recompute_rating(place: Place, session: Session) -> None:
    """Sets the place's rating aggregate from its current reviews."""
    session.flush()
    average, count = session.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(Review.place_id == place.id)
    ).one()
    place.rating_count = count
    place.rating_average = round(float(average), 2) if count else 0.0


# ── Search ─────────────────────────────────────────────────────────────────

def search_places(
        query: str,
        session: Session,
        category: PlaceCategory | None = None,
        limit: int = 20,
) -> dict:
    """Case-insensitive substring match over name, formatted address and city."""
    pattern = f"%{_escape_like(query.strip())}%"
    stmt = select(Place).where(
        or_(
            Place.name.ilike(pattern, escape="\\"),
            Place.address["formatted"].as_string().ilike(pattern, escape="\\"),
            Place.address["city"].as_string().ilike(pattern, escape="\\"),
        )
    )
    if category is not None:
        stmt = stmt.where(Place.category == category)
    stmt = stmt.order_by(Place.rating_average.desc(), Place.id.asc()).limit(limit)

    places = session.execute(stmt).scalars().all()
    return {"places": [build_place_dict(p) for p in places]}


def nearby_places(
        lng: float,
        lat: float,
        session: Session,
        radius: float | None = None,
        category: PlaceCategory | None = None,
) -> dict:
    """Places within `radius` metres (default 5000), nearest first, at most 50."""
    radius = radius or NEARBY_DEFAULT_RADIUS_M
    min_lng, min_lat, max_lng, max_lat = bounding_box(lng, lat, radius)

    stmt = select(Place).where(
        Place.lng.between(min_lng, max_lng),
        Place.lat.between(min_lat, max_lat),
    )
    if category is not None:
        stmt = stmt.where(Place.category == category)

    candidates = session.execute(stmt).scalars().all()
    hits = sorted(
        (
            (haversine(lng, lat, place.lng, place.lat), place.id, place)
            for place in candidates
        ),
        key=lambda hit: (hit[0], hit[1]),
    )
    return {
        "places": [
            build_place_dict(place, distance=distance)
            for distance, _, place in hits
            if distance <= radius
        ][:NEARBY_MAX_RESULTS]
    }


# ── Place CRUD ─────────────────────────────────────────────────────────────

def get_place(place_id: int, session: Session) -> dict:
    return {"place": build_place_dict(_get_place_or_404(place_id, session))}


def create_place(user_id: int, data: dict, session: Session) -> dict:
    lng, lat = data["location"]["coordinates"]
    place = Place(
        lng=lng,
        lat=lat,
        added_by=user_id,
        **{k: data[k] for k in _PLACE_FIELDS if k in data},
    )
    session.add(place)
    session.flush()
    return {"place": build_place_dict(place)}


def update_place(place_id: int, user_id: int, changes: dict, session: Session) -> dict:
    place = _get_created_place_or_404(place_id, user_id, session)
    for key in _PLACE_FIELDS:
        if key in changes:
            setattr(place, key, changes[key])
    if "location" in changes:
        place.lng, place.lat = changes["location"]["coordinates"]
    session.flush()
    return {"place": build_place_dict(place)}


def delete_place(place_id: int, user_id: int, session: Session) -> None:
    """
    Raises:
      AppError(PLACE_NOT_FOUND, 404)
      AppError(PLACE_HAS_REVIEWS, 409) — reviews must be removed first
    """
    place = _get_created_place_or_404(place_id, user_id, session)
    if place.rating_count or session.execute(
            select(func.count(Review.id)).where(Review.place_id == place_id)
    ).scalar_one():
        raise AppError(
            ErrorCode.PLACE_HAS_REVIEWS,
            "This place has reviews and cannot be deleted.",
            409,
        )

    session.execute(delete(SavedPlace).where(SavedPlace.place_id == place_id))
    session.delete(place)
    session.flush()


# ── Reviews ────────────────────────────────────────────────────────────────

def list_reviews(place_id: int, page: int, limit: int, session: Session) -> dict:
    _get_place_or_404(place_id, session)
    stmt = (
        select(Review)
        .where(Review.place_id == place_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    items, pagination = paginate(stmt, page, limit, session)
    return {
        "reviews": [build_review_dict(r) for r in items],
        "pagination": pagination,
    }


def create_review(place_id: int, user_id: int, data: dict, session: Session) -> dict:
    place = _get_place_or_404(place_id, session)
    review = Review(
        place_id=place_id,
        user_id=user_id,
        **{k: data[k] for k in _REVIEW_FIELDS if k in data},
    )
    session.add(review)
    recompute_rating(place, session)
    session.flush()
    return {"review": build_review_dict(review), "rating": build_place_dict(place)["rating"]}


def update_review(place_id: int, review_id: int, user_id: int, changes: dict, session: Session) -> dict:
    place = _get_place_or_404(place_id, session)
    review = _get_authored_review_or_404(place_id, review_id, user_id, session)
    for key in _REVIEW_FIELDS:
        if key in changes:
            setattr(review, key, changes[key])
    recompute_rating(place, session)
    session.flush()
    return {"review": build_review_dict(review), "rating": build_place_dict(place)["rating"]}


def delete_review(place_id: int, review_id: int, user_id: int, session: Session) -> dict:
    place = _get_place_or_404(place_id, session)
    review = _get_authored_review_or_404(place_id, review_id, user_id, session)
    session.delete(review)
    recompute_rating(place, session)
    session.flush()
    return {"rating": build_place_dict(place)["rating"]}


def toggle_helpful(place_id: int, review_id: int, user_id: int, session: Session) -> dict:
    """Adds the caller's helpful vote, or removes it if already present."""
    review = _get_review_or_404(place_id, review_id, session)
    existing = next((v for v in review.votes if v.user_id == user_id), None)
    if existing is None:
        review.votes.append(ReviewVote(user_id=user_id))
    else:
        review.votes.remove(existing)
    session.flush()
    return {"review": build_review_dict(review), "voted": existing is None}


# ── Bookmarks ──────────────────────────────────────────────────────────────

def save_place(place_id: int, user_id: int, session: Session) -> dict:
    """Idempotent: saving an already-saved place succeeds without a second row."""
    place = _get_place_or_404(place_id, session)
    if session.get(SavedPlace, (user_id, place_id)) is None:
        session.add(SavedPlace(user_id=user_id, place_id=place_id))
        session.flush()
    return {"place": build_place_dict(place), "saved": True}


def unsave_place(place_id: int, user_id: int, session: Session) -> dict:
    _get_place_or_404(place_id, session)
    saved = session.get(SavedPlace, (user_id, place_id))
    if saved is not None:
        session.delete(saved)
        session.flush()
    return {"place_id": place_id, "saved": False}


def list_saved_places(user_id: int, page: int, limit: int, session: Session) -> dict:
    stmt = (
        select(Place)
        .join(SavedPlace, SavedPlace.place_id == Place.id)
        .where(SavedPlace.user_id == user_id)
        .order_by(SavedPlace.created_at.desc(), Place.id.desc())
    )
    items, pagination = paginate(stmt, page, limit, session)
    return {
        "places": [build_place_dict(p) for p in items],
        "pagination": pagination,
    }


# ── Provider look-ups ──────────────────────────────────────────────────────

def geocode(query: str, mapbox) -> dict:
    return {"result": mapbox.geocode(query)}


def reverse_geocode(lng: float, lat: float, mapbox) -> dict:
    return {"result": mapbox.reverse_geocode(lng, lat)}


def discover(query: str, mapbox, lng: float | None = None, lat: float | None = None, limit: int = 10) -> dict:
    proximity = (lng, lat) if lng is not None and lat is not None else None
    return {"results": mapbox.search_places(query, proximity=proximity, limit=limit)}
