"""Pydantic schemas for database connection and extraction requests."""
from typing import Optional, Literal
from pydantic import BaseModel, Field


class ConnectionRequest(BaseModel):
    db_type: Literal["sqlite", "postgresql"] = Field(..., description="Database engine type")
    service_name: str = Field(..., description="Unique name for this connection (used as registry key)")

    # SQLite only
    file_path: Optional[str] = Field(None, description="Absolute path to .db file (SQLite only)")

    # PostgreSQL only
    host: Optional[str] = Field(None, description="Database host")
    port: Optional[int] = Field(5432, description="Database port")
    database: Optional[str] = Field(None, description="Database name")
    username: Optional[str] = Field(None, description="Username")
    password: Optional[str] = Field(None, description="Password")

    def get_sqlalchemy_url(self) -> str:
        if self.db_type == "sqlite":
            return f"sqlite:///{self.file_path}"
        return (
            f"postgresql+psycopg2://{self.username}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    def default_schema(self) -> str:
        return "main" if self.db_type == "sqlite" else "public"


class ConnectionResponse(BaseModel):
    service_name: str
    db_type: str
    status: str


class ConnectionListItem(BaseModel):
    service_name: str
    db_type: str
    host: Optional[str] = None
    database: Optional[str] = None
    file_path: Optional[str] = None
    status: str = "connected"


class ExtractRequest(BaseModel):
    connection: ConnectionRequest
    schema_name: Optional[str] = Field(None, description="Target schema; defaults to the engine's default schema")
    resolve_views: Optional[bool] = Field(None, description="Trace view column lineage (defaults to RESOLVE_VIEWS)")
