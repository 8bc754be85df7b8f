"""Read-only reference tables filled by the data pipeline.

Spatial predicates are written as raw PostGIS SQL in
``parcelgis.properties.repository``; the ORM mappings here cover the
attribute columns used for catalog/stats queries and schema creation.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import UserDefinedType

from parcelgis.auth.models import BigIntId
from parcelgis.db.base import Base


class Geometry(UserDefinedType):
    cache_ok = True

    def __init__(self, geometry_type: str = "GEOMETRY", srid: int = 4326):
        self.geometry_type = geometry_type.upper()
        self.srid = srid

    def get_col_spec(self, **kw):
        return f"GEOMETRY({self.geometry_type}, {self.srid})"


class DataLayerVersion(Base):
    __tablename__ = "data_layer_versions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    layer_key: Mapped[str] = mapped_column(String(64), nullable=False)
    layer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_snapshot_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)


Index("ix_data_layer_versions_layer_key", DataLayerVersion.layer_key, DataLayerVersion.imported_at)


class Parcel(Base):
    __tablename__ = "parcels"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    parcel_key: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)
    county_fips: Mapped[str | None] = mapped_column(String(8), nullable=True, index=True)
    county_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    situs_address: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    owner_name: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    owner_mailing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    legal_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    acreage: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    land_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    improvement_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    market_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    zoning_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    layer_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("data_layer_versions.id", ondelete="SET NULL"), nullable=True
    )
    geom = mapped_column(Geometry("MULTIPOLYGON"), nullable=False)


class AddressPoint(Base):
    __tablename__ = "address_points"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    address_label: Mapped[str] = mapped_column(Text, nullable=False)
    # lower(regexp_replace(address_label, '[^A-Za-z0-9]+', ' ', 'g')), set on import
    normalized_address: Mapped[str] = mapped_column(Text, nullable=False)
    city_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    county_name: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    postal_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    source_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    layer_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("data_layer_versions.id", ondelete="SET NULL"), nullable=True
    )
    geom = mapped_column(Geometry("POINT"), nullable=False)


class ZoningDistrict(Base):
    __tablename__ = "zoning_districts"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    zoning_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zoning_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    jurisdiction: Mapped[str | None] = mapped_column(String(255), nullable=True)
    layer_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("data_layer_versions.id", ondelete="SET NULL"), nullable=True
    )
    geom = mapped_column(Geometry("MULTIPOLYGON"), nullable=False)
