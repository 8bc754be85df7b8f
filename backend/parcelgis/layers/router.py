from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from parcelgis.activity.deps import get_activity_logger
from parcelgis.activity.service import ActivityLogger
from parcelgis.auth.deps import get_auth_context
from parcelgis.auth.service import AuthContext
from parcelgis.core.config import settings
from parcelgis.db.session import get_db
from parcelgis.layers.catalog import BASE_LAYER_CATALOG, REGION, latest_versions, tile_template
from parcelgis.layers.schemas import LayerCatalogResponse, LayerOut, LayerVersionOut

router = APIRouter()


@router.get("", response_model=LayerCatalogResponse)
def list_layers(
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    latest = latest_versions(db)
    base_url = settings.tile_base_url

    layers = []
    for layer in BASE_LAYER_CATALOG:
        version = latest.get(layer.key)
        layers.append(
            LayerOut(
                key=layer.key,
                name=layer.name,
                geometry_type=layer.geometry_type,
                description=layer.description,
                status="ready" if version else "missing",
                latest_version=LayerVersionOut.model_validate(version) if version else None,
                tile_template=tile_template(base_url, layer.key, version),
            )
        )

    background_tasks.add_task(activity.record, "layers_catalog_viewed", {"count": len(layers)}, ctx.user_id)
    return LayerCatalogResponse(region=REGION, layers=layers)
