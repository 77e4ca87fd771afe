from urllib.parse import parse_qs

from cafe_directory.models import FilterState
from cafe_directory.url_state import load_filter_state, replace_query_string, save_filter_state


def test_default_state_serializes_to_empty_query():
    assert save_filter_state(FilterState()) == ""
    assert load_filter_state("") == FilterState()
    assert load_filter_state("?") == FilterState()


def test_only_non_default_fields_are_written():
    state = FilterState(query="라떼", brand="chain")
    params = parse_qs(save_filter_state(state))
    assert params == {"q": ["라떼"], "brand": ["chain"]}
    assert load_filter_state(save_filter_state(state)) == state


def test_full_state_survives_reload():
    state = FilterState(
        query="flat white",
        region="근화동",
        brand="independent",
        radius=1500,
        sort_order="nearest",
        favorites_only=True,
    )
    query = save_filter_state(state)
    assert load_filter_state("?" + query) == state
    assert "fav=1" in query
    assert "r=1500" in query


def test_fractional_radius():
    state = FilterState(radius=750.5)
    assert load_filter_state(save_filter_state(state)).radius == 750.5


def test_invalid_values_fall_back_to_defaults():
    state = load_filter_state("brand=bakery&sort=rating&r=far&fav=nope")
    assert state == FilterState()


def test_radius_all_and_non_positive_mean_unbounded():
    assert load_filter_state("r=all").radius is None
    assert load_filter_state("r=0").radius is None
    assert load_filter_state("r=-5").radius is None
    assert load_filter_state("r=inf").radius is None
    assert load_filter_state("r=500").radius == 500


def test_blank_region_is_kept():
    state = load_filter_state("region=")
    assert state.region == ""
    assert save_filter_state(state) == "region="


def test_unknown_keys_are_ignored():
    assert load_filter_state("utm_source=x&q=mocha") == FilterState(query="mocha")


def test_replace_query_string_keeps_path_and_fragment():
    url = "https://cafes.example/list?q=old&page=2#map"
    updated = replace_query_string(url, FilterState(sort_order="name"))
    assert updated == "https://cafes.example/list?sort=name#map"
    assert replace_query_string("/list?q=x", FilterState()) == "/list"
