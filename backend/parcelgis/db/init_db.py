import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from parcelgis.db.base import Base
from parcelgis.db.session import engine as default_engine
import parcelgis.db.models  # noqa: F401
from parcelgis.gis.models import Geometry

logger = logging.getLogger(__name__)

POSTGRES_EXTENSIONS = ("postgis", "pg_trgm")


def _is_spatial(table) -> bool:
    return any(isinstance(column.type, Geometry) for column in table.columns)


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables. Spatial tables need PostGIS and are skipped elsewhere."""
    bind = bind or default_engine
    if bind.dialect.name == "postgresql":
        with bind.begin() as conn:
            for extension in POSTGRES_EXTENSIONS:
                conn.execute(text(f"CREATE EXTENSION IF NOT EXISTS {extension}"))
        Base.metadata.create_all(bind=bind)
        return

    tables = [t for t in Base.metadata.sorted_tables if not _is_spatial(t)]
    logger.info("Non-PostGIS database (%s); creating %d non-spatial tables", bind.dialect.name, len(tables))
    Base.metadata.create_all(bind=bind, tables=tables)


if __name__ == "__main__":
    init_db()
