"""Which places a viewer may see: their own, and those of accepted friends.

Nothing here is cached. Callers re-run these reads whenever the underlying
friendships change.
"""
import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.place import Place
from app.services import friendship_service

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass
class NearbyPlace:
    place: Place
    distance_meters: float


def filter_visible(
    viewer_id: uuid.UUID, friend_ids: set[uuid.UUID], places: Iterable[Place]
) -> list[Place]:
    return [p for p in places if p.user_id == viewer_id or p.user_id in friend_ids]


async def visible_places(
    db: AsyncSession, viewer_id: uuid.UUID, places: Iterable[Place]
) -> list[Place]:
    friend_ids = await friendship_service.accepted_friend_ids(db, viewer_id)
    return filter_visible(viewer_id, friend_ids, places)


async def can_see_owner(db: AsyncSession, viewer_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
    if owner_id == viewer_id:
        return True
    return owner_id in await friendship_service.accepted_friend_ids(db, viewer_id)


async def _places_owned_by(db: AsyncSession, owner_ids: set[uuid.UUID]) -> list[Place]:
    if not owner_ids:
        return []
    result = await db.execute(
        select(Place)
        .where(Place.user_id.in_(owner_ids))
        .order_by(Place.created_at.desc())
    )
    return list(result.scalars().all())


async def feed(db: AsyncSession, viewer_id: uuid.UUID) -> list[Place]:
    """The viewer's places plus every accepted friend's, newest first."""
    friend_ids = await friendship_service.accepted_friend_ids(db, viewer_id)
    places = await _places_owned_by(db, friend_ids | {viewer_id})
    return filter_visible(viewer_id, friend_ids, places)


async def friend_places(
    db: AsyncSession, viewer_id: uuid.UUID, friend_id: uuid.UUID
) -> list[Place]:
    """One friend's places. Empty unless that user is an accepted friend."""
    friend_ids = await friendship_service.accepted_friend_ids(db, viewer_id)
    if friend_id != viewer_id and friend_id not in friend_ids:
        return []
    places = await _places_owned_by(db, {friend_id})
    return filter_visible(viewer_id, friend_ids, places)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


async def nearby_friend_places(
    db: AsyncSession,
    viewer_id: uuid.UUID,
    lat: float,
    lng: float,
    radius_meters: float,
) -> list[NearbyPlace]:
    """Friends' places within radius of (lat, lng), nearest first."""
    friend_ids = await friendship_service.accepted_friend_ids(db, viewer_id)
    places = filter_visible(viewer_id, friend_ids, await _places_owned_by(db, friend_ids))

    nearby = []
    for p in places:
        distance = haversine_meters(lat, lng, p.lat, p.lng)
        if distance <= radius_meters:
            nearby.append(NearbyPlace(place=p, distance_meters=distance))
    nearby.sort(key=lambda n: n.distance_meters)
    return nearby
