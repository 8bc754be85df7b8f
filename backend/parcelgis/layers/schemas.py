from datetime import date, datetime

from parcelgis.core.schemas import CamelModel


class LayerVersionOut(CamelModel):
    layer_name: str
    source_name: str
    source_snapshot_date: date | None = None
    imported_at: datetime


class LayerOut(CamelModel):
    key: str
    name: str
    geometry_type: str
    description: str
    status: str
    latest_version: LayerVersionOut | None = None
    tile_template: str


class LayerCatalogResponse(CamelModel):
    region: str
    layers: list[LayerOut]
