"""Query planning and ranking for property search.

Candidates come from two independent sources (parcels and address points)
fetched by ``parcelgis.properties.repository``. Ranking happens here so that
the ordering contract is the same no matter which SQL branch produced a row:

    relevance bucket ASC, relevance score DESC, source rank ASC,
    market value DESC (nulls last), key ASC

Buckets are coarse tiers (exact < prefix < substring < token < owner);
the score breaks ties within a bucket.
"""

import re
from dataclasses import dataclass, field

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_HOUSE_NUMBER_RE = re.compile(r"^\d+[a-z]?$")

MAX_SEED_TOKENS = 5
MIN_TOKEN_LENGTH = 2

SOURCE_PARCEL = "parcel"
SOURCE_ADDRESS_POINT = "address_point"
SOURCE_RANK = {SOURCE_PARCEL: 0, SOURCE_ADDRESS_POINT: 1}

STOP_WORDS = frozenset(
    {
        "st", "street", "rd", "road", "dr", "drive", "ave", "avenue",
        "blvd", "boulevard", "ln", "lane", "ct", "court", "cir", "circle",
        "trl", "trail", "austin", "tx", "texas", "apt", "unit", "suite", "ste",
        "n", "s", "e", "w", "ne", "nw", "se", "sw",
        "north", "south", "east", "west",
    }
)

# Parcel buckets
P_EXACT = 0
P_ADDRESS_PREFIX = 1
P_KEY_PREFIX = 2
P_RAW_PREFIX = 3
P_ADDRESS_CONTAINS = 4
P_STREET_TOKENS = 5
P_TOKENS = 6
P_KEY_CONTAINS = 7
P_OWNER = 8
P_OTHER = 9

# Address point buckets
A_EXACT = 0
A_PREFIX = 1
A_RAW_PREFIX = 2
A_CONTAINS = 3
A_STREET_TOKENS = 4
A_TOKENS = 5
A_OTHER = 6


def normalize_text(value: str | None) -> str:
    """Lowercase, collapse non-alphanumeric runs to one space, trim."""
    return _NON_ALNUM_RE.sub(" ", (value or "").lower()).strip()


@dataclass(frozen=True)
class QueryPlan:
    raw: str
    normalized: str
    tokens: tuple[str, ...]
    token_seed: tuple[str, ...]
    street_seed: tuple[str, ...]


def plan_query(raw_query: str) -> QueryPlan:
    raw = raw_query.strip()
    normalized = normalize_text(raw)
    tokens = tuple(t for t in normalized.split(" ") if len(t) >= MIN_TOKEN_LENGTH)
    primary = tuple(t for t in tokens if t not in STOP_WORDS)
    token_seed = (primary or tokens)[:MAX_SEED_TOKENS]
    street_seed = tuple(
        t for i, t in enumerate(primary or tokens) if not (i == 0 and _HOUSE_NUMBER_RE.match(t))
    )[:MAX_SEED_TOKENS]
    return QueryPlan(
        raw=raw,
        normalized=normalized,
        tokens=tokens,
        token_seed=token_seed,
        street_seed=street_seed,
    )


def tokens_in_order(text: str, tokens: tuple[str, ...]) -> bool:
    """True when every token occurs in ``text`` in the given order (``%a%b%``)."""
    pos = 0
    for token in tokens:
        found = text.find(token, pos)
        if found < 0:
            return False
        pos = found + len(token)
    return True


def _token_match(text: str, tokens: tuple[str, ...], normalized_query: str) -> bool:
    if not tokens:
        return normalized_query in text
    return tokens_in_order(text, tokens)


@dataclass
class PropertyCandidate:
    source: str
    parcel_key: str | None
    address: str | None
    owner_name: str | None = None
    county_name: str | None = None
    acreage: float | None = None
    market_value: float | None = None
    zoning_code: str | None = None
    longitude: float | None = None
    latitude: float | None = None
    address_point_id: int | None = None
    # Text the address predicates run against: parcel situs address, or the
    # address point label.
    match_address: str | None = None
    normalized_address: str | None = None
    # The address point's own county, before the parcel backfill.
    point_county: str | None = None

    @property
    def key(self) -> str:
        if self.parcel_key:
            return self.parcel_key
        return f"ADDR-{self.address_point_id}"


@dataclass
class RankedCandidate:
    candidate: PropertyCandidate
    bucket: int
    score: int
    source_rank: int = field(init=False)

    def __post_init__(self):
        self.source_rank = SOURCE_RANK[self.candidate.source]

    @property
    def key(self) -> str:
        return self.candidate.key

    def sort_key(self) -> tuple:
        market_value = self.candidate.market_value
        return (
            self.bucket,
            -self.score,
            self.source_rank,
            market_value is None,
            -(market_value or 0.0),
            self.key,
            self.candidate.address_point_id or 0,
        )


def rank_parcel(plan: QueryPlan, candidate: PropertyCandidate) -> RankedCandidate:
    q = plan.normalized
    raw_lower = plan.raw.lower()
    address = candidate.match_address or ""
    norm_address = normalize_text(address)
    norm_owner = normalize_text(candidate.owner_name)
    norm_key = normalize_text(candidate.parcel_key)

    exact_address = norm_address == q
    exact_key = norm_key == q
    address_prefix = norm_address.startswith(q)
    key_prefix = norm_key.startswith(q)
    raw_prefix = address.lower().startswith(raw_lower)
    address_contains = q in norm_address
    street_tokens = _token_match(norm_address, plan.street_seed, q)
    tokens = _token_match(norm_address, plan.token_seed, q)
    key_contains = q in norm_key
    owner_contains = q in norm_owner
    owner = owner_contains or (candidate.owner_name or "").lower().startswith(raw_lower)

    if exact_address or exact_key:
        bucket = P_EXACT
    elif address_prefix:
        bucket = P_ADDRESS_PREFIX
    elif key_prefix:
        bucket = P_KEY_PREFIX
    elif raw_prefix:
        bucket = P_RAW_PREFIX
    elif address_contains:
        bucket = P_ADDRESS_CONTAINS
    elif street_tokens:
        bucket = P_STREET_TOKENS
    elif tokens:
        bucket = P_TOKENS
    elif key_contains:
        bucket = P_KEY_CONTAINS
    elif owner:
        bucket = P_OWNER
    else:
        bucket = P_OTHER

    score = (
        10 * exact_address
        + 10 * exact_key
        + 7 * address_prefix
        + 4 * address_contains
        + 3 * street_tokens
        + 3 * tokens
        + 2 * key_contains
        + 1 * owner_contains
    )
    return RankedCandidate(candidate=candidate, bucket=bucket, score=score)


def rank_address_point(plan: QueryPlan, candidate: PropertyCandidate) -> RankedCandidate:
    q = plan.normalized
    label = candidate.match_address or ""
    norm = candidate.normalized_address
    if norm is None:
        norm = normalize_text(label)
    else:
        norm = norm.strip()

    exact = norm == q
    prefix = norm.startswith(q)
    raw_prefix = label.lower().startswith(plan.raw.lower())
    contains = q in norm
    street_tokens = _token_match(norm, plan.street_seed, q)
    tokens = _token_match(norm, plan.token_seed, q)

    if exact:
        bucket = A_EXACT
    elif prefix:
        bucket = A_PREFIX
    elif raw_prefix:
        bucket = A_RAW_PREFIX
    elif contains:
        bucket = A_CONTAINS
    elif street_tokens:
        bucket = A_STREET_TOKENS
    elif tokens:
        bucket = A_TOKENS
    else:
        bucket = A_OTHER

    score = 10 * exact + 7 * prefix + 4 * contains + 3 * street_tokens + 2 * tokens
    return RankedCandidate(candidate=candidate, bucket=bucket, score=score)


def collapse_address_points(candidates: list[PropertyCandidate]) -> list[PropertyCandidate]:
    """Drop address points repeated at the same place with the same text."""
    seen: dict[tuple, PropertyCandidate] = {}
    for c in sorted(candidates, key=lambda c: c.address_point_id or 0):
        norm = c.normalized_address if c.normalized_address is not None else normalize_text(c.match_address)
        marker = (norm.strip(), c.point_county or "", c.longitude, c.latitude)
        seen.setdefault(marker, c)
    return list(seen.values())


def merge_ranked(ranked: list[RankedCandidate]) -> list[RankedCandidate]:
    """Keep the best row per key, then order by the ranking contract."""
    best: dict[str, RankedCandidate] = {}
    for item in ranked:
        current = best.get(item.key)
        if current is None or item.sort_key() < current.sort_key():
            best[item.key] = item
    return sorted(best.values(), key=RankedCandidate.sort_key)


def rank_candidates(
    plan: QueryPlan,
    parcels: list[PropertyCandidate],
    address_points: list[PropertyCandidate],
    limit: int,
) -> list[RankedCandidate]:
    ranked = [rank_parcel(plan, c) for c in parcels]
    ranked.extend(rank_address_point(plan, c) for c in collapse_address_points(address_points))
    return merge_ranked(ranked)[:limit]
