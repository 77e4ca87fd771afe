import math

import pytest

from cafe_directory.listing import build_listing, format_distance, region_options, sort_entries
from cafe_directory.models import FilterState, InteractionRecord, Place, ReferencePoint

NOW = 1_760_000_000.0
HOME = ReferencePoint(latitude=37.8866, longitude=127.7354)


def _place(place_id, name, region=None, brand="independent", lon=127.7354, lat=37.8866, **kwargs):
    return Place(
        id=place_id,
        name=name,
        longitude=lon,
        latitude=lat,
        region_label=region,
        brand=brand,
        **kwargs,
    )


def _names(entries):
    return [e.place.name for e in entries]


def test_region_filter_keeps_exact_matches():
    places = [_place("1", "A", region="후평동"), _place("2", "B", region="석사동")]
    entries = build_listing(places, FilterState(region="후평동"), now=NOW)
    assert _names(entries) == ["A"]


def test_region_filter_selects_unlabeled_places_by_empty_value():
    places = [_place("1", "A", region=""), _place("2", "B", region="석사동"), _place("3", "C")]
    entries = build_listing(places, FilterState(region="", sort_order="name"), now=NOW)
    assert _names(entries) == ["A", "C"]


def test_name_sort_orders_names():
    places = [_place("2", "B"), _place("1", "A")]
    entries = build_listing(places, FilterState(sort_order="name"), now=NOW)
    assert _names(entries) == ["A", "B"]


def test_name_sort_handles_hangul_and_case():
    places = [_place("1", "하늘"), _place("2", "가람"), _place("3", "b카페"), _place("4", "A카페"), _place("5", "1호점")]
    entries = build_listing(places, FilterState(sort_order="name"), now=NOW)
    assert _names(entries) == ["1호점", "가람", "하늘", "A카페", "b카페"]


def test_name_sort_ignores_accents_at_first_level():
    places = [_place("1", "cafg"), _place("2", "café"), _place("3", "cafe"), _place("4", "Café Noir")]
    entries = build_listing(places, FilterState(sort_order="name"), now=NOW)
    assert _names(entries) == ["cafe", "café", "Café Noir", "cafg"]


def test_name_sort_follows_hangul_dictionary_order():
    places = [_place("1", "각"), _place("2", "가나"), _place("3", "까치"), _place("4", "가")]
    entries = build_listing(places, FilterState(sort_order="name"), now=NOW)
    assert _names(entries) == ["가", "가나", "각", "까치"]


def test_popularity_sort_uses_score_then_name():
    places = [_place("1", "나"), _place("2", "가"), _place("3", "다")]
    interactions = {
        "3": InteractionRecord(favorite=True),
        "1": InteractionRecord(click_count=1),
        "2": InteractionRecord(click_count=1),
    }
    entries = build_listing(places, FilterState(), interactions=interactions, now=NOW)
    assert _names(entries) == ["다", "가", "나"]
    assert [e.score for e in entries] == [20, 2, 2]


def test_popularity_ties_are_stable_across_input_order():
    places = [_place("1", "같은"), _place("2", "같은"), _place("3", "다른")]
    forward = build_listing(places, FilterState(), now=NOW)
    backward = build_listing(list(reversed(places)), FilterState(), now=NOW)
    assert [e.key for e in forward] == [e.key for e in backward]


def test_nearest_sort_puts_unknown_distance_last():
    near = _place("1", "가까운", lat=37.8870)
    far = _place("2", "먼", lat=37.95)
    broken = _place("3", "깨진", lat=float("nan"))
    entries = build_listing([broken, far, near], FilterState(sort_order="nearest"), reference=HOME, now=NOW)
    assert _names(entries) == ["가까운", "먼", "깨진"]
    assert math.isinf(entries[-1].distance_m)


def test_nearest_without_reference_falls_back_to_name():
    places = [_place("1", "나"), _place("2", "가")]
    entries = build_listing(places, FilterState(sort_order="nearest"), now=NOW)
    assert _names(entries) == ["가", "나"]
    assert all(math.isinf(e.distance_m) for e in entries)


def test_recent_sort_orders_by_last_seen():
    places = [_place("1", "가"), _place("2", "나"), _place("3", "다")]
    interactions = {
        "1": InteractionRecord(click_count=1, last_seen_at=NOW - 100),
        "3": InteractionRecord(click_count=1, last_seen_at=NOW - 10),
    }
    entries = build_listing(places, FilterState(sort_order="recent"), interactions=interactions, now=NOW)
    assert _names(entries) == ["다", "가", "나"]


def test_radius_applies_only_with_reference_point():
    near = _place("1", "가까운", lat=37.8870)
    far = _place("2", "먼", lat=37.95)
    state = FilterState(radius=1000, sort_order="name")

    assert _names(build_listing([near, far], state, now=NOW)) == ["가까운", "먼"]
    assert _names(build_listing([near, far], state, reference=HOME, now=NOW)) == ["가까운"]


def test_radius_excludes_unknown_distance():
    broken = _place("1", "깨진", lat=float("nan"))
    state = FilterState(radius=100000)
    assert build_listing([broken], state, reference=HOME, now=NOW) == []


def test_brand_and_favorites_filters():
    places = [
        _place("1", "스타벅스", brand="chain"),
        _place("2", "소양", brand="independent"),
        _place("3", "메가커피", brand="chain"),
    ]
    interactions = {"3": InteractionRecord(favorite=True)}

    chains = build_listing(places, FilterState(brand="chain", sort_order="name"), now=NOW)
    assert _names(chains) == ["메가커피", "스타벅스"]

    favorites = build_listing(places, FilterState(favorites_only=True), interactions=interactions, now=NOW)
    assert _names(favorites) == ["메가커피"]


def test_query_matches_name_address_region_and_phone():
    places = [
        _place("1", "Latte House", region="효자동"),
        _place("2", "소양", road_address="춘천시 근화성종길 56"),
        _place("3", "호반", phone="033-123-4567"),
    ]
    assert _names(build_listing(places, FilterState(query="  latte "), now=NOW)) == ["Latte House"]
    assert _names(build_listing(places, FilterState(query="근화"), now=NOW)) == ["소양"]
    assert _names(build_listing(places, FilterState(query="효자"), now=NOW)) == ["Latte House"]
    assert _names(build_listing(places, FilterState(query="123-4567"), now=NOW)) == ["호반"]


def test_listing_does_not_mutate_inputs():
    places = [_place("2", "B"), _place("1", "A")]
    before = list(places)
    build_listing(places, FilterState(sort_order="name"), now=NOW)
    assert places == before


def test_unknown_sort_order_is_rejected():
    with pytest.raises(ValueError):
        sort_entries([], "rating")


def test_region_options_put_catch_all_last():
    places = [
        _place("1", "A", region="후평동"),
        _place("2", "B", region=""),
        _place("3", "C", region="석사동"),
        _place("4", "D", region="석사동"),
        _place("5", "E"),
    ]
    assert region_options(places) == [
        ("석사동", "석사동", 2),
        ("후평동", "후평동", 1),
        ("", "기타", 2),
    ]


def test_format_distance():
    assert format_distance(math.inf) == ""
    assert format_distance(420.4) == "420m"
    assert format_distance(1530) == "1.5km"
