"""PostGIS queries over the parcel and address point tables.

Tolerances are in degrees (SRID 4326).
"""

from sqlalchemy import text
from sqlalchemy.orm import Session

from parcelgis.properties.search import (
    SOURCE_ADDRESS_POINT,
    SOURCE_PARCEL,
    PropertyCandidate,
    QueryPlan,
)

POINT_PARCEL_TOLERANCE = 0.00025
ADDRESS_POINT_BACKFILL_TOLERANCE = 0.003
ADDRESS_POINT_PARCEL_TOLERANCE = 0.0012

# Must match the expression indexes created in the search-index migration.
_NORMALIZED_ADDRESS = "LOWER(REGEXP_REPLACE(COALESCE(p.situs_address, ''), '[^A-Za-z0-9]+', ' ', 'g'))"
_NORMALIZED_OWNER = "LOWER(REGEXP_REPLACE(COALESCE(p.owner_name, ''), '[^A-Za-z0-9]+', ' ', 'g'))"
_NORMALIZED_KEY = "LOWER(REGEXP_REPLACE(p.parcel_key, '[^A-Za-z0-9]+', ' ', 'g'))"

_PARCEL_SEED_COLUMNS = """
    p.parcel_key,
    p.situs_address,
    p.owner_name,
    p.county_name,
    p.acreage,
    p.market_value,
    p.zoning_code,
    ST_X(ST_PointOnSurface(p.geom)) AS longitude,
    ST_Y(ST_PointOnSurface(p.geom)) AS latitude
"""

# (condition, row cap) per retrieval branch
_PARCEL_BRANCHES = (
    (f"{_NORMALIZED_ADDRESS} = :normalized", 120),
    (f"{_NORMALIZED_KEY} = :normalized", 120),
    (f"{_NORMALIZED_ADDRESS} LIKE :normalized_prefix", 220),
    (
        f"{_NORMALIZED_ADDRESS} LIKE :normalized_contains"
        f" OR {_NORMALIZED_ADDRESS} LIKE :token_pattern"
        f" OR {_NORMALIZED_ADDRESS} LIKE :street_pattern",
        720,
    ),
    (f"{_NORMALIZED_OWNER} LIKE :normalized_contains OR p.owner_name ILIKE :raw_prefix", 360),
    (f"{_NORMALIZED_KEY} LIKE :normalized_prefix", 220),
    (f"{_NORMALIZED_KEY} LIKE :normalized_contains", 220),
)

_ADDRESS_BRANCHES = (
    ("ap.normalized_address = :normalized", 120),
    ("ap.normalized_address LIKE :normalized_prefix", 220),
    (
        "ap.normalized_address LIKE :normalized_contains"
        " OR ap.normalized_address LIKE :token_pattern"
        " OR ap.normalized_address LIKE :street_pattern",
        900,
    ),
)

_LATERAL_ADDRESS_POINT = """
    LEFT JOIN LATERAL (
      SELECT ap.address_label
      FROM address_points ap
      WHERE
        ST_Intersects(ap.geom, p.geom)
        OR ST_DWithin(ap.geom, ST_PointOnSurface(p.geom), :ap_tolerance)
      ORDER BY
        CASE WHEN ST_Intersects(ap.geom, p.geom) THEN 0 ELSE 1 END ASC,
        ST_Distance(ap.geom, ST_PointOnSurface(p.geom)) ASC,
        ap.id ASC
      LIMIT 1
    ) ap ON TRUE
"""

_PROPERTY_COLUMNS = """
    p.parcel_key,
    p.situs_address,
    ap.address_label,
    p.owner_name,
    p.owner_mailing_address,
    p.legal_description,
    p.acreage,
    p.county_name,
    p.land_value,
    p.improvement_value,
    p.market_value,
    COALESCE(NULLIF(p.zoning_code, ''), z.zoning_code) AS zoning_code
"""


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _pattern(tokens: tuple[str, ...], fallback: str) -> str:
    if not tokens:
        return fallback
    return "%" + "%".join(tokens) + "%"


def search_params(plan: QueryPlan) -> dict:
    normalized_contains = f"%{plan.normalized}%"
    return {
        "normalized": plan.normalized,
        "raw_prefix": f"{escape_like(plan.raw)}%",
        "normalized_prefix": f"{plan.normalized}%",
        "normalized_contains": normalized_contains,
        "token_pattern": _pattern(plan.token_seed, normalized_contains),
        "street_pattern": _pattern(plan.street_seed, normalized_contains),
    }


def _union(template: str, branches) -> str:
    return "\nUNION ALL\n".join(
        f"({template.format(condition=condition)} LIMIT {cap})" for condition, cap in branches
    )


def fetch_parcel_candidates(db: Session, plan: QueryPlan) -> list[PropertyCandidate]:
    seed = _union(
        f"SELECT {_PARCEL_SEED_COLUMNS} FROM parcels p WHERE {{condition}}",
        _PARCEL_BRANCHES,
    )
    sql = text(
        f"""
        SELECT DISTINCT ON (seed.parcel_key) seed.*
        FROM ({seed}) seed
        ORDER BY seed.parcel_key
        """
    )
    rows = db.execute(sql, search_params(plan)).mappings().all()
    return [
        PropertyCandidate(
            source=SOURCE_PARCEL,
            parcel_key=row["parcel_key"],
            address=row["situs_address"],
            match_address=row["situs_address"],
            owner_name=row["owner_name"],
            county_name=row["county_name"],
            acreage=row["acreage"],
            market_value=None if row["market_value"] is None else float(row["market_value"]),
            zoning_code=row["zoning_code"],
            longitude=row["longitude"],
            latitude=row["latitude"],
        )
        for row in rows
    ]


def fetch_address_point_candidates(db: Session, plan: QueryPlan) -> list[PropertyCandidate]:
    """Address points matching the query, each backfilled from its nearest parcel."""
    seed = _union(
        "SELECT ap.id, ap.address_label, ap.normalized_address, ap.county_name, ap.geom"
        " FROM address_points ap WHERE {condition}",
        _ADDRESS_BRANCHES,
    )
    sql = text(
        f"""
        WITH seed AS MATERIALIZED ({seed}),
        candidates AS (
          SELECT DISTINCT ON (seed.id) seed.* FROM seed ORDER BY seed.id
        )
        SELECT
          c.id AS address_point_id,
          c.address_label,
          c.normalized_address,
          c.county_name AS point_county,
          ST_X(c.geom) AS longitude,
          ST_Y(c.geom) AS latitude,
          p.parcel_key,
          p.situs_address,
          p.owner_name,
          COALESCE(NULLIF(p.county_name, ''), NULLIF(c.county_name, '')) AS county_name,
          p.acreage,
          p.market_value,
          p.zoning_code
        FROM candidates c
        LEFT JOIN LATERAL (
          SELECT
            p.parcel_key, p.situs_address, p.owner_name, p.county_name,
            p.acreage, p.market_value, p.zoning_code
          FROM parcels p
          WHERE ST_DWithin(p.geom, c.geom, :parcel_tolerance)
          ORDER BY
            CASE WHEN ST_Intersects(p.geom, c.geom) THEN 0 ELSE 1 END ASC,
            ST_Distance(ST_PointOnSurface(p.geom), c.geom) ASC,
            p.parcel_key ASC
          LIMIT 1
        ) p ON TRUE
        """
    )
    params = search_params(plan)
    params["parcel_tolerance"] = ADDRESS_POINT_PARCEL_TOLERANCE
    rows = db.execute(sql, params).mappings().all()
    return [
        PropertyCandidate(
            source=SOURCE_ADDRESS_POINT,
            parcel_key=row["parcel_key"],
            address=row["address_label"] or row["situs_address"],
            match_address=row["address_label"],
            normalized_address=row["normalized_address"],
            owner_name=row["owner_name"],
            county_name=row["county_name"],
            point_county=row.get("point_county"),
            acreage=row["acreage"],
            market_value=None if row["market_value"] is None else float(row["market_value"]),
            zoning_code=row["zoning_code"],
            longitude=row["longitude"],
            latitude=row["latitude"],
            address_point_id=row["address_point_id"],
        )
        for row in rows
    ]


def find_parcel_at_point(db: Session, longitude: float, latitude: float) -> dict | None:
    """Intersecting parcel first, else the nearest one within tolerance."""
    sql = text(
        f"""
        WITH point AS (
          SELECT ST_SetSRID(ST_Point(:longitude, :latitude), 4326) AS geom
        ),
        candidate AS (
          SELECT p.*
          FROM parcels p
          CROSS JOIN point pt
          WHERE ST_Intersects(p.geom, pt.geom) OR ST_DWithin(p.geom, pt.geom, :tolerance)
          ORDER BY
            CASE WHEN ST_Intersects(p.geom, pt.geom) THEN 0 ELSE 1 END ASC,
            ST_Distance(ST_PointOnSurface(p.geom), pt.geom) ASC,
            ST_Area(p.geom) ASC
          LIMIT 1
        )
        SELECT {_PROPERTY_COLUMNS}
        FROM candidate p
        CROSS JOIN point pt
        LEFT JOIN LATERAL (
          SELECT zd.zoning_code
          FROM zoning_districts zd
          WHERE ST_Intersects(zd.geom, pt.geom)
          LIMIT 1
        ) z ON TRUE
        {_LATERAL_ADDRESS_POINT}
        LIMIT 1
        """
    )
    row = db.execute(
        sql,
        {
            "longitude": longitude,
            "latitude": latitude,
            "tolerance": POINT_PARCEL_TOLERANCE,
            "ap_tolerance": ADDRESS_POINT_BACKFILL_TOLERANCE,
        },
    ).mappings().first()
    return dict(row) if row else None


def find_parcel_by_key(db: Session, parcel_key: str) -> dict | None:
    sql = text(
        f"""
        SELECT
          {_PROPERTY_COLUMNS},
          ST_X(ST_PointOnSurface(p.geom)) AS longitude,
          ST_Y(ST_PointOnSurface(p.geom)) AS latitude
        FROM parcels p
        LEFT JOIN LATERAL (
          SELECT zd.zoning_code
          FROM zoning_districts zd
          WHERE ST_Intersects(zd.geom, p.geom)
          LIMIT 1
        ) z ON TRUE
        {_LATERAL_ADDRESS_POINT}
        WHERE UPPER(p.parcel_key) = UPPER(:parcel_key)
        LIMIT 1
        """
    )
    row = db.execute(
        sql,
        {"parcel_key": parcel_key, "ap_tolerance": ADDRESS_POINT_BACKFILL_TOLERANCE},
    ).mappings().first()
    return dict(row) if row else None


def find_parcels_in_bounds(
    db: Session, *, west: float, south: float, east: float, north: float, limit: int
) -> list[dict]:
    sql = text(
        """
        WITH bounds AS (
          SELECT ST_MakeEnvelope(:west, :south, :east, :north, 4326) AS geom
        )
        SELECT
          p.parcel_key,
          p.situs_address,
          p.owner_name,
          p.county_name,
          p.acreage,
          p.market_value,
          ST_AsGeoJSON(p.geom)::json AS geometry
        FROM parcels p
        CROSS JOIN bounds b
        WHERE ST_Intersects(p.geom, b.geom)
        ORDER BY p.parcel_key
        LIMIT :limit
        """
    )
    rows = db.execute(
        sql, {"west": west, "south": south, "east": east, "north": north, "limit": limit}
    ).mappings().all()
    return [dict(r) for r in rows]


def parcel_stats(db: Session) -> dict:
    row = db.execute(
        text(
            """
            SELECT
              COUNT(*) AS total_parcels,
              COUNT(DISTINCT county_fips) AS county_count,
              COALESCE(SUM(market_value), 0) AS total_market_value,
              COALESCE(AVG(market_value), 0) AS avg_market_value,
              COALESCE(SUM(COALESCE(acreage, 0)), 0) AS total_acreage
            FROM parcels
            """
        )
    ).mappings().one()
    return dict(row)
