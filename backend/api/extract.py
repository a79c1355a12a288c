"""POST /api/extract, GET /api/schemas/{service_name}/{schema_name} — schema extraction."""
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException

from api.connections import get_connection
from config import settings
from core.db_connector import catalog_from_request
from core.errors import CatalogUnavailable, CyclicViewDependency, ExtractionTimeout
from core.schema_extractor import extract_schema
from models.connection import ConnectionRequest, ExtractRequest
from models.schema import ExtractionResult

router = APIRouter()
logger = logging.getLogger(__name__)


def _run_extraction(req: ConnectionRequest, schema_name: Optional[str], resolve_views: Optional[bool]) -> ExtractionResult:
    try:
        engine, catalog = catalog_from_request(req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    target = schema_name or req.default_schema()
    try:
        return extract_schema(
            catalog,
            target,
            resolve_views=resolve_views,
            timeout=settings.EXTRACT_TIMEOUT_SECONDS,
        )
    except CyclicViewDependency as e:
        raise HTTPException(status_code=422, detail=str(e))
    except CatalogUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ExtractionTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    except Exception as e:
        logger.exception("Extraction failed for %s.%s", req.service_name, target)
        raise HTTPException(status_code=500, detail=f"Extraction error: {e}")
    finally:
        engine.dispose()


@router.post("/extract", response_model=ExtractionResult)
def extract(req: ExtractRequest):
    """Extract a schema through an inline connection."""
    return _run_extraction(req.connection, req.schema_name, req.resolve_views)


@router.get("/schemas/{service_name}/{schema_name}", response_model=ExtractionResult)
def get_schema(service_name: str, schema_name: str, resolve_views: Optional[bool] = None):
    """Extract a schema through a registered connection."""
    conn_req = get_connection(service_name)
    return _run_extraction(conn_req, schema_name, resolve_views)
