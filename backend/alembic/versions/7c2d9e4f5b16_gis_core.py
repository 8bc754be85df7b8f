"""gis core: layer versions, parcels, zoning and overlay layers

Revision ID: 7c2d9e4f5b16
Revises: 3b8e1f0c2a71
Create Date: 2026-09-02 10:40:00.000000
"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "7c2d9e4f5b16"
down_revision: Union[str, Sequence[str], None] = "3b8e1f0c2a71"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (table, geometry type, extra column DDL)
OVERLAY_LAYERS = (
    ("zoning_districts", "MULTIPOLYGON", "zoning_code VARCHAR(64), zoning_label TEXT, jurisdiction VARCHAR(255),"),
    ("flood_zones", "MULTIPOLYGON", "flood_zone_code TEXT, flood_zone_label TEXT,"),
    ("contour_lines", "MULTILINESTRING", "elevation_ft NUMERIC(10, 2),"),
    (
        "utility_infrastructure",
        "GEOMETRY",
        "utility_type TEXT NOT NULL, utility_subtype TEXT, operator_name TEXT,",
    ),
    ("municipal_boundaries", "MULTIPOLYGON", "boundary_type TEXT NOT NULL, jurisdiction_name TEXT NOT NULL,"),
    ("opportunity_zones", "MULTIPOLYGON", "zone_id TEXT,"),
    (
        "oil_gas_leases",
        "GEOMETRY",
        "lease_id TEXT NOT NULL, lease_name TEXT, operator_name TEXT, county_name TEXT, state_code TEXT,"
        " source_dataset TEXT DEFAULT 'unknown',",
    ),
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    op.execute(
        """
        CREATE TABLE data_layer_versions (
          id BIGSERIAL PRIMARY KEY,
          layer_key VARCHAR(64) NOT NULL,
          layer_name VARCHAR(255) NOT NULL,
          source_name VARCHAR(255) NOT NULL,
          source_url TEXT,
          source_snapshot_date DATE,
          imported_at TIMESTAMP NOT NULL DEFAULT NOW(),
          metadata JSON NOT NULL DEFAULT '{}'
        )
        """
    )
    op.execute(
        "CREATE INDEX ix_data_layer_versions_layer_key ON data_layer_versions (layer_key, imported_at)"
    )

    op.execute(
        """
        CREATE TABLE parcels (
          id BIGSERIAL PRIMARY KEY,
          parcel_key VARCHAR(160) NOT NULL UNIQUE,
          county_fips VARCHAR(8),
          county_name VARCHAR(128),
          situs_address TEXT,
          owner_name TEXT,
          owner_mailing_address TEXT,
          legal_description TEXT,
          acreage NUMERIC(12, 4),
          land_value NUMERIC(14, 2),
          improvement_value NUMERIC(14, 2),
          market_value NUMERIC(14, 2),
          zoning_code VARCHAR(64),
          layer_version_id BIGINT REFERENCES data_layer_versions(id) ON DELETE SET NULL,
          geom GEOMETRY(MULTIPOLYGON, 4326) NOT NULL
        )
        """
    )
    op.execute("CREATE INDEX ix_parcels_county_fips ON parcels (county_fips)")
    op.execute("CREATE INDEX ix_parcels_situs_address ON parcels (situs_address)")
    op.execute("CREATE INDEX ix_parcels_owner_name ON parcels (owner_name)")
    op.execute("CREATE INDEX ix_parcels_geom ON parcels USING GIST (geom)")

    for table, geometry_type, columns in OVERLAY_LAYERS:
        op.execute(
            f"""
            CREATE TABLE {table} (
              id BIGSERIAL PRIMARY KEY,
              {columns}
              layer_version_id BIGINT REFERENCES data_layer_versions(id) ON DELETE SET NULL,
              geom GEOMETRY({geometry_type}, 4326) NOT NULL
            )
            """
        )
        op.execute(f"CREATE INDEX ix_{table}_geom ON {table} USING GIST (geom)")

    op.execute("CREATE INDEX ix_utility_infrastructure_type ON utility_infrastructure (utility_type)")
    op.execute("CREATE INDEX ix_oil_gas_leases_lease_id ON oil_gas_leases (lease_id)")
    op.execute("CREATE INDEX ix_oil_gas_leases_source_dataset ON oil_gas_leases (source_dataset)")


def downgrade() -> None:
    for table, _, _ in reversed(OVERLAY_LAYERS):
        op.execute(f"DROP TABLE IF EXISTS {table}")
    op.execute("DROP TABLE IF EXISTS parcels")
    op.execute("DROP TABLE IF EXISTS data_layer_versions")
