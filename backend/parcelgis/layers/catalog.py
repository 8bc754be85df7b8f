from dataclasses import dataclass
from datetime import date, datetime
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.orm import Session

from parcelgis.gis.models import DataLayerVersion

REGION = "austin-metro"

LAYER_ALIASES = {"flood-zones": "floodplain"}


@dataclass(frozen=True)
class LayerDefinition:
    key: str
    name: str
    geometry_type: str
    description: str


BASE_LAYER_CATALOG = (
    LayerDefinition("floodplain", "FEMA Floodplain", "fill", "Special flood hazard areas and flood-risk zones."),
    LayerDefinition("contours", "Contour Lines", "line", "Elevation contour lines for grading and drainage planning."),
    LayerDefinition("zoning", "Zoning", "fill", "Local zoning districts and land use regulations."),
    LayerDefinition(
        "water-infrastructure", "Water Infrastructure", "line", "Water transmission mains and related infrastructure."
    ),
    LayerDefinition(
        "sewer-infrastructure",
        "Sewer Infrastructure",
        "line",
        "Sewer lines, force mains, and related wastewater assets.",
    ),
    LayerDefinition("cities-etj", "Cities / ETJ", "fill", "Municipal limits and extra-territorial jurisdictions."),
    LayerDefinition("opportunity-zones", "Opportunity Zone", "fill", "Federal opportunity zone boundaries."),
    LayerDefinition("oil-gas-leases", "Oil & Gas Leases", "mixed", "Active and historical oil and gas lease footprints."),
    LayerDefinition("parcels", "Parcels", "line", "Parcel boundaries for lot-level analysis and site feasibility."),
)


@dataclass(frozen=True)
class LayerVersionInfo:
    layer_name: str
    source_name: str
    source_snapshot_date: date | None
    imported_at: datetime


def canonical_layer_key(key: str) -> str:
    normalized = key.strip().lower()
    return LAYER_ALIASES.get(normalized, normalized)


def latest_versions(db: Session) -> dict[str, LayerVersionInfo]:
    """Newest import per canonical layer key."""
    rows = db.execute(
        select(DataLayerVersion).order_by(DataLayerVersion.imported_at.desc(), DataLayerVersion.id.desc())
    ).scalars()

    latest: dict[str, LayerVersionInfo] = {}
    for row in rows:
        key = canonical_layer_key(row.layer_key)
        if key in latest:
            continue
        latest[key] = LayerVersionInfo(
            layer_name=row.layer_name,
            source_name=row.source_name,
            source_snapshot_date=row.source_snapshot_date,
            imported_at=row.imported_at,
        )
    return latest


def tile_template(base_url: str, key: str, version: LayerVersionInfo | None) -> str:
    template = f"{base_url.rstrip('/')}/{key}/{{z}}/{{x}}/{{y}}.pbf"
    if version is not None:
        template += "?v=" + quote(version.imported_at.isoformat(), safe="")
    return template
