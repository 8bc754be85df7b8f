from parcelgis.properties.search import (
    A_EXACT,
    P_ADDRESS_PREFIX,
    P_EXACT,
    P_KEY_PREFIX,
    P_OWNER,
    SOURCE_ADDRESS_POINT,
    SOURCE_PARCEL,
    PropertyCandidate,
    collapse_address_points,
    normalize_text,
    plan_query,
    rank_address_point,
    rank_candidates,
    rank_parcel,
    tokens_in_order,
)


def _parcel(key, address, owner=None, market_value=None):
    return PropertyCandidate(
        source=SOURCE_PARCEL,
        parcel_key=key,
        address=address,
        match_address=address,
        owner_name=owner,
        market_value=market_value,
    )


def _address_point(point_id, label, parcel_key=None, x=-97.74, y=30.27, county="Travis", parcel_county=None):
    return PropertyCandidate(
        source=SOURCE_ADDRESS_POINT,
        parcel_key=parcel_key,
        address=label,
        match_address=label,
        normalized_address=normalize_text(label),
        county_name=parcel_county or county,
        point_county=county,
        longitude=x,
        latitude=y,
        address_point_id=point_id,
    )


def test_normalize_text_collapses_punctuation():
    assert normalize_text("  123 N. Lamar Blvd., #4 ") == "123 n lamar blvd 4"
    assert normalize_text(None) == ""


def test_plan_query_drops_stop_words_and_house_number():
    plan = plan_query("  1100 N Lamar Blvd Austin TX ")
    assert plan.raw == "1100 N Lamar Blvd Austin TX"
    assert plan.normalized == "1100 n lamar blvd austin tx"
    # single-letter tokens are dropped before stop-word filtering
    assert plan.tokens == ("1100", "lamar", "blvd", "austin", "tx")
    assert plan.token_seed == ("1100", "lamar")
    assert plan.street_seed == ("lamar",)


def test_plan_query_falls_back_to_all_tokens_when_only_stop_words():
    plan = plan_query("North Street")
    assert plan.token_seed == ("north", "street")
    assert plan.street_seed == ("north", "street")


def test_seeds_are_capped_at_five_tokens():
    plan = plan_query("aa bb cc dd ee ff gg")
    assert plan.token_seed == ("aa", "bb", "cc", "dd", "ee")


def test_tokens_in_order():
    assert tokens_in_order("1100 north lamar boulevard", ("1100", "lamar"))
    assert not tokens_in_order("1100 north lamar boulevard", ("lamar", "1100"))


def test_exact_parcel_key_ranks_first():
    plan = plan_query("0123456")
    exact = _parcel("0123456", "500 Oak St", market_value=10.0)
    by_address = _parcel("9999999", "0123456 Ranch Rd", market_value=9_000_000.0)

    ranked = rank_candidates(plan, [by_address, exact], [], limit=10)
    assert [r.key for r in ranked] == ["0123456", "9999999"]
    assert ranked[0].bucket == P_EXACT
    assert ranked[1].bucket == P_ADDRESS_PREFIX


def test_parcel_bucket_ordering_beats_market_value():
    plan = plan_query("smith")
    owner_match = _parcel("A1", "1 Elm St", owner="John Smith", market_value=5_000_000.0)
    address_match = _parcel("B2", "12 Smith Ranch Rd", market_value=100.0)

    ranked = rank_candidates(plan, [owner_match, address_match], [], limit=10)
    assert [r.key for r in ranked] == ["B2", "A1"]
    assert rank_parcel(plan, owner_match).bucket == P_OWNER


def test_ties_break_on_market_value_then_key():
    plan = plan_query("oak")
    parcels = [
        _parcel("C", "Oak Hollow Dr", market_value=None),
        _parcel("B", "Oak Hollow Ln", market_value=200.0),
        _parcel("A", "Oak Hollow Ct", market_value=200.0),
        _parcel("D", "Oak Hollow Trl", market_value=900.0),
    ]
    ranked = rank_candidates(plan, parcels, [], limit=10)
    assert [r.key for r in ranked] == ["D", "A", "B", "C"]


def test_address_point_without_parcel_becomes_synthetic_result():
    plan = plan_query("4500 Bee Cave Rd")
    point = _address_point(42, "4500 BEE CAVE RD")

    ranked = rank_candidates(plan, [], [point], limit=5)
    assert len(ranked) == 1
    assert ranked[0].key == "ADDR-42"
    assert ranked[0].bucket == A_EXACT
    assert rank_address_point(plan, point).score == 10 + 7 + 4 + 3 + 2


def test_parcel_and_address_point_for_same_parcel_are_deduplicated():
    plan = plan_query("700 Congress Ave")
    parcel = _parcel("P-700", "700 CONGRESS AVE", market_value=1_000.0)
    point = _address_point(9, "700 Congress Ave", parcel_key="P-700")

    ranked = rank_candidates(plan, [parcel], [point], limit=5)
    assert len(ranked) == 1
    assert ranked[0].candidate.source == SOURCE_PARCEL


def test_identical_address_points_collapse_to_lowest_id():
    points = [
        _address_point(8, "12 Main St"),
        _address_point(3, "12 MAIN ST"),
        _address_point(5, "12 Main St", x=-97.0),
    ]
    kept = collapse_address_points(points)
    assert sorted(p.address_point_id for p in kept) == [3, 5]


def test_ranking_is_deterministic_under_input_order():
    plan = plan_query("lamar")
    parcels = [_parcel(f"K{i}", f"{i} Lamar Blvd", market_value=float(i % 3)) for i in range(12)]
    points = [_address_point(100 + i, f"{i} N Lamar Blvd", x=-97.7 - i / 1000) for i in range(6)]

    first = [r.key for r in rank_candidates(plan, parcels, points, limit=20)]
    second = [r.key for r in rank_candidates(plan, list(reversed(parcels)), list(reversed(points)), limit=20)]
    assert first == second
    assert len(rank_candidates(plan, parcels, points, limit=4)) == 4


def test_parcel_key_prefix_sets_bucket_but_adds_no_score():
    plan = plan_query("100 main")
    candidate = _parcel("100 MAIN X", "100 Main St")

    ranked = rank_parcel(plan, candidate)
    assert ranked.bucket == P_ADDRESS_PREFIX
    # address prefix + contains + street token + token + key contains
    assert ranked.score == 7 + 4 + 3 + 3 + 2

    key_only = rank_parcel(plan, _parcel("100 MAIN Y", "9 Elm St"))
    assert key_only.bucket == P_KEY_PREFIX
    assert key_only.score == 2


def test_address_point_collapse_uses_point_county_not_backfill():
    same_parcel_county = [
        _address_point(1, "12 Main St", county="Travis", parcel_county="Hays"),
        _address_point(2, "12 Main St", county="Williamson", parcel_county="Hays"),
    ]
    assert sorted(p.address_point_id for p in collapse_address_points(same_parcel_county)) == [1, 2]

    same_point_county = [
        _address_point(3, "12 Main St", county="Travis", parcel_county="Hays"),
        _address_point(4, "12 Main St", county="Travis", parcel_county="Travis"),
    ]
    assert [p.address_point_id for p in collapse_address_points(same_point_county)] == [3]
