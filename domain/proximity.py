import math
from typing import Iterable

from domain.models import Profile, ShopProximity


EARTH_RADIUS_KM = 6371


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in degrees (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def rank_shops(lat: float, lng: float, owners: Iterable[Profile]) -> list[ShopProximity]:
    shops = [
        ShopProximity(
            shop_name=owner.shop_name or "Unknown Shop",
            phone=owner.phone,
            store_type=owner.store_type.value if owner.store_type else "General",
            distance=distance_km(lat, lng, owner.lat, owner.lng),  # pyright: ignore[reportArgumentType]
        )
        for owner in owners
        if owner.has_coordinates
    ]
    return sorted(shops, key=lambda s: s.distance)


def nearest(shops: list[ShopProximity], n: int) -> list[ShopProximity]:
    return sorted(shops, key=lambda s: s.distance)[:n]
