import pytest

from domain.models import StoreType
from domain.proximity import distance_km, nearest, rank_shops
from tests.conftest import owner


@pytest.mark.parametrize(
    "a,b",
    (
        ((12.9716, 77.5946), (13.0827, 80.2707)),
        ((0.0, 0.0), (1.0, 1.0)),
        ((51.5, -0.12), (40.7, -74.0)),
    ),
)
def test_distance_is_symmetric(a: tuple[float, float], b: tuple[float, float]) -> None:
    assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a))


def test_distance_to_self_is_zero() -> None:
    assert distance_km(12.9716, 77.5946, 12.9716, 77.5946) == 0


def test_one_degree_of_latitude_at_equator() -> None:
    assert distance_km(0, 0, 1, 0) == pytest.approx(111.2, rel=0.01)


def test_rank_shops_sorts_nearest_first_and_skips_unlocated() -> None:
    owners = [
        owner("9000000010", lat=13.0, lng=77.6, shop_name="Far"),
        owner("9000000011", lat=12.98, lng=77.6, shop_name="Near"),
        owner("9000000012", shop_name="Nowhere"),
        owner("9000000013", lat=12.99, lng=77.6, shop_name=None, store_type=None),
    ]
    shops = rank_shops(12.97, 77.6, owners)
    assert [s.shop_name for s in shops] == ["Near", "Unknown Shop", "Far"]
    assert shops[1].store_type == "General"
    assert shops[0].store_type == StoreType.supermarket.value


def test_nearest() -> None:
    owners = [
        owner("9000000010", lat=13.2, lng=77.6),
        owner("9000000011", lat=12.98, lng=77.6),
        owner("9000000012", lat=13.0, lng=77.6),
    ]
    shops = rank_shops(12.97, 77.6, owners)
    assert [s.phone for s in nearest(shops, 2)] == ["9000000011", "9000000012"]
