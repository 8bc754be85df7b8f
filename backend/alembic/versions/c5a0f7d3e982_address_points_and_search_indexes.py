"""address points and trigram search indexes

Revision ID: c5a0f7d3e982
Revises: 7c2d9e4f5b16
Create Date: 2026-09-03 09:05:00.000000
"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "c5a0f7d3e982"
down_revision: Union[str, Sequence[str], None] = "7c2d9e4f5b16"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Must stay in sync with the expressions in parcelgis.properties.repository.
NORMALIZED_ADDRESS = "LOWER(REGEXP_REPLACE(COALESCE(situs_address, ''), '[^A-Za-z0-9]+', ' ', 'g'))"
NORMALIZED_OWNER = "LOWER(REGEXP_REPLACE(COALESCE(owner_name, ''), '[^A-Za-z0-9]+', ' ', 'g'))"
NORMALIZED_KEY = "LOWER(REGEXP_REPLACE(parcel_key, '[^A-Za-z0-9]+', ' ', 'g'))"


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")

    op.execute(
        """
        CREATE TABLE address_points (
          id BIGSERIAL PRIMARY KEY,
          address_label TEXT NOT NULL,
          normalized_address TEXT NOT NULL,
          city_name VARCHAR(128),
          county_name VARCHAR(128),
          postal_code VARCHAR(16),
          source_name VARCHAR(255),
          layer_version_id BIGINT REFERENCES data_layer_versions(id) ON DELETE SET NULL,
          geom GEOMETRY(POINT, 4326) NOT NULL
        )
        """
    )
    op.execute("CREATE INDEX ix_address_points_geom ON address_points USING GIST (geom)")
    op.execute("CREATE INDEX ix_address_points_county_name ON address_points (county_name)")
    op.execute(
        "CREATE INDEX ix_address_points_normalized_trgm"
        " ON address_points USING GIN (normalized_address gin_trgm_ops)"
    )

    op.execute(f"CREATE INDEX ix_parcels_normalized_address_trgm ON parcels USING GIN (({NORMALIZED_ADDRESS}) gin_trgm_ops)")
    op.execute(f"CREATE INDEX ix_parcels_normalized_owner_trgm ON parcels USING GIN (({NORMALIZED_OWNER}) gin_trgm_ops)")
    op.execute(f"CREATE INDEX ix_parcels_normalized_key_trgm ON parcels USING GIN (({NORMALIZED_KEY}) gin_trgm_ops)")
    op.execute("CREATE INDEX ix_parcels_parcel_key_upper ON parcels (UPPER(parcel_key))")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_parcels_parcel_key_upper")
    op.execute("DROP INDEX IF EXISTS ix_parcels_normalized_key_trgm")
    op.execute("DROP INDEX IF EXISTS ix_parcels_normalized_owner_trgm")
    op.execute("DROP INDEX IF EXISTS ix_parcels_normalized_address_trgm")
    op.execute("DROP TABLE IF EXISTS address_points")
