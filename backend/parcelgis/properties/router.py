from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.orm import Session

from parcelgis.activity.deps import get_activity_logger
from parcelgis.activity.service import ActivityLogger
from parcelgis.auth.deps import get_auth_context
from parcelgis.auth.service import AuthContext
from parcelgis.core.errors import NotFound
from parcelgis.db.session import get_db
from parcelgis.properties.schemas import (
    ParcelFeatureCollection,
    ParcelStats,
    PropertyDetail,
    SearchResponse,
)
from parcelgis.properties.service import (
    parcels_in_bounds,
    property_at_point,
    property_by_parcel_key,
    property_stats,
    search_properties,
)

router = APIRouter()


@router.get("/search", response_model=SearchResponse)
def search(
    background_tasks: BackgroundTasks,
    q: str = Query(),
    limit: int = Query(default=20, ge=1, le=50),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    response = search_properties(db, q, limit)
    background_tasks.add_task(
        activity.record,
        "property_search",
        {"query": q.strip(), "resultCount": response.count},
        ctx.user_id,
    )
    return response


@router.get("/by-coordinates", response_model=PropertyDetail)
def by_coordinates(
    background_tasks: BackgroundTasks,
    longitude: float = Query(ge=-180, le=180),
    latitude: float = Query(ge=-90, le=90),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    try:
        detail = property_at_point(db, longitude, latitude)
    except NotFound:
        activity.record(
            "property_lookup_miss",
            {"longitude": longitude, "latitude": latitude},
            user_id=ctx.user_id,
        )
        raise

    background_tasks.add_task(
        activity.record,
        "property_lookup_hit",
        {"parcelKey": detail.parcel_key, "longitude": longitude, "latitude": latitude},
        ctx.user_id,
    )
    return detail


@router.get("/by-parcel-key/{parcel_key}", response_model=PropertyDetail)
def by_parcel_key(
    background_tasks: BackgroundTasks,
    parcel_key: str = Path(min_length=1, max_length=160),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    try:
        detail = property_by_parcel_key(db, parcel_key)
    except NotFound:
        activity.record("property_lookup_miss", {"parcelKey": parcel_key.strip()}, user_id=ctx.user_id)
        raise

    background_tasks.add_task(
        activity.record,
        "property_lookup_hit",
        {"parcelKey": detail.parcel_key, "source": "parcel_key"},
        ctx.user_id,
    )
    return detail


@router.get("/bounds", response_model=ParcelFeatureCollection)
def bounds(
    west: float = Query(ge=-180, le=180),
    south: float = Query(ge=-90, le=90),
    east: float = Query(ge=-180, le=180),
    north: float = Query(ge=-90, le=90),
    limit: int = Query(default=800, ge=1, le=2000),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return parcels_in_bounds(db, west=west, south=south, east=east, north=north, limit=limit)


@router.get("/stats", response_model=ParcelStats)
def stats(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return property_stats(db)
