"""POST/GET/DELETE /api/connections — connection registry management."""
import logging
from fastapi import APIRouter, HTTPException

from core.db_connector import create_engine_from_request
from models.connection import ConnectionListItem, ConnectionRequest, ConnectionResponse

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory registry: service_name → ConnectionRequest (for later extraction)
_connection_registry: dict[str, ConnectionRequest] = {}


def get_connection(service_name: str) -> ConnectionRequest:
    if service_name not in _connection_registry:
        raise HTTPException(404, detail=f"Service '{service_name}' not found. Please register it first.")
    return _connection_registry[service_name]


def list_connections() -> list[str]:
    return list(_connection_registry.keys())


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
def register_connection(req: ConnectionRequest):
    """Validate the connection and keep it for later extractions."""
    try:
        engine = create_engine_from_request(req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    engine.dispose()

    _connection_registry[req.service_name] = req
    logger.info("Registered connection %s (%s)", req.service_name, req.db_type)
    return ConnectionResponse(service_name=req.service_name, db_type=req.db_type, status="connected")


@router.get("/connections")
def get_connections():
    result = [
        ConnectionListItem(
            service_name=svc_name,
            db_type=conn_req.db_type,
            host=conn_req.host,
            database=conn_req.database,
            file_path=conn_req.file_path,
        )
        for svc_name, conn_req in _connection_registry.items()
    ]
    return {"connections": result}


@router.delete("/connections/{service_name}")
def delete_connection(service_name: str):
    if service_name not in _connection_registry:
        raise HTTPException(404, detail=f"Service '{service_name}' not found.")
    del _connection_registry[service_name]
    return {"message": f"Service '{service_name}' removed successfully."}
