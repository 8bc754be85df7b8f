from typing import Any, Literal

from parcelgis.core.schemas import CamelModel


class SearchResult(CamelModel):
    parcel_key: str
    address: str
    owner_name: str
    county: str | None = None
    acreage: float | None = None
    market_value: float | None = None
    zoning: str
    longitude: float | None = None
    latitude: float | None = None


class SearchResponse(CamelModel):
    count: int
    results: list[SearchResult]


class Coordinates(CamelModel):
    longitude: float
    latitude: float


class PropertyDetail(CamelModel):
    parcel_key: str
    address: str
    owner_name: str
    owner_address: str | None = None
    legal_description: str = ""
    acreage: float | None = None
    zoning: str
    county: str | None = None
    land_value: float | None = None
    improvement_value: float | None = None
    market_value: float | None = None
    coordinates: Coordinates


class ParcelFeatureProperties(CamelModel):
    parcel_key: str
    address: str | None = None
    owner_name: str | None = None
    acreage: float | None = None
    market_value: float | None = None


class ParcelFeature(CamelModel):
    type: Literal["Feature"] = "Feature"
    properties: ParcelFeatureProperties
    geometry: dict[str, Any] | None = None


class ParcelFeatureCollection(CamelModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    feature_count: int
    features: list[ParcelFeature]


class ParcelStats(CamelModel):
    total_parcels: int
    county_count: int
    total_market_value: float
    average_market_value: float
    total_acreage: float
