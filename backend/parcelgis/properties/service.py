import json
import logging

from sqlalchemy.orm import Session

from parcelgis.core.errors import NotFound, ValidationError
from parcelgis.properties import repository
from parcelgis.properties.formatting import (
    ADDRESS_UNAVAILABLE,
    OWNER_UNKNOWN,
    ZONING_NOT_MAPPED,
    choose_situs_address,
    format_property_address,
    normalize_acreage,
    to_number,
)
from parcelgis.properties.schemas import (
    Coordinates,
    ParcelFeature,
    ParcelFeatureCollection,
    ParcelFeatureProperties,
    ParcelStats,
    PropertyDetail,
    SearchResponse,
    SearchResult,
)
from parcelgis.properties.search import RankedCandidate, plan_query, rank_candidates

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 120


def _to_search_result(item: RankedCandidate) -> SearchResult:
    c = item.candidate
    return SearchResult(
        parcel_key=c.key,
        address=format_property_address(c.address) or ADDRESS_UNAVAILABLE,
        owner_name=c.owner_name or OWNER_UNKNOWN,
        county=c.county_name,
        acreage=normalize_acreage(c.acreage),
        market_value=to_number(c.market_value),
        zoning=c.zoning_code or ZONING_NOT_MAPPED,
        longitude=to_number(c.longitude),
        latitude=to_number(c.latitude),
    )


def search_properties(db: Session, query: str, limit: int) -> SearchResponse:
    trimmed = query.strip()
    if not MIN_QUERY_LENGTH <= len(trimmed) <= MAX_QUERY_LENGTH:
        raise ValidationError(f"Search query must be {MIN_QUERY_LENGTH}-{MAX_QUERY_LENGTH} characters")

    plan = plan_query(trimmed)
    if not plan.normalized:
        raise ValidationError("Search query must contain letters or digits")

    parcels = repository.fetch_parcel_candidates(db, plan)
    address_points = repository.fetch_address_point_candidates(db, plan)
    ranked = rank_candidates(plan, parcels, address_points, limit)
    logger.debug(
        "property search q=%r parcels=%d address_points=%d results=%d",
        trimmed, len(parcels), len(address_points), len(ranked),
    )

    results = [_to_search_result(item) for item in ranked]
    return SearchResponse(count=len(results), results=results)


def _to_property_detail(row: dict, longitude: float, latitude: float) -> PropertyDetail:
    address = choose_situs_address(row.get("situs_address"), row.get("address_label"))
    return PropertyDetail(
        parcel_key=row["parcel_key"],
        address=format_property_address(address) or ADDRESS_UNAVAILABLE,
        owner_name=row.get("owner_name") or OWNER_UNKNOWN,
        owner_address=format_property_address(row.get("owner_mailing_address")),
        legal_description=row.get("legal_description") or "",
        acreage=normalize_acreage(row.get("acreage")),
        zoning=row.get("zoning_code") or ZONING_NOT_MAPPED,
        county=row.get("county_name"),
        land_value=to_number(row.get("land_value")),
        improvement_value=to_number(row.get("improvement_value")),
        market_value=to_number(row.get("market_value")),
        coordinates=Coordinates(longitude=longitude, latitude=latitude),
    )


def property_at_point(db: Session, longitude: float, latitude: float) -> PropertyDetail:
    row = repository.find_parcel_at_point(db, longitude, latitude)
    if row is None:
        raise NotFound("No parcel found at this location")
    return _to_property_detail(row, longitude, latitude)


def property_by_parcel_key(db: Session, parcel_key: str) -> PropertyDetail:
    row = repository.find_parcel_by_key(db, parcel_key.strip())
    if row is None:
        raise NotFound("Parcel not found")
    return _to_property_detail(row, float(row["longitude"]), float(row["latitude"]))


def parcels_in_bounds(
    db: Session, *, west: float, south: float, east: float, north: float, limit: int
) -> ParcelFeatureCollection:
    if west >= east or south >= north:
        raise ValidationError("Invalid bounds: west/east or south/north order is incorrect")

    rows = repository.find_parcels_in_bounds(
        db, west=west, south=south, east=east, north=north, limit=limit
    )
    features = []
    for row in rows:
        geometry = row.get("geometry")
        if isinstance(geometry, str):
            geometry = json.loads(geometry)
        features.append(
            ParcelFeature(
                properties=ParcelFeatureProperties(
                    parcel_key=row["parcel_key"],
                    address=row.get("situs_address"),
                    owner_name=row.get("owner_name"),
                    acreage=normalize_acreage(row.get("acreage")),
                    market_value=to_number(row.get("market_value")),
                ),
                geometry=geometry,
            )
        )
    return ParcelFeatureCollection(feature_count=len(features), features=features)


def property_stats(db: Session) -> ParcelStats:
    row = repository.parcel_stats(db)
    return ParcelStats(
        total_parcels=int(row["total_parcels"] or 0),
        county_count=int(row["county_count"] or 0),
        total_market_value=round(to_number(row["total_market_value"]) or 0.0, 2),
        average_market_value=round(to_number(row["avg_market_value"]) or 0.0, 2),
        total_acreage=round(to_number(row["total_acreage"]) or 0.0, 2),
    )
