"""Common Pydantic schemas shared across modules."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Error body returned by the API."""

    error: str


class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    app: str
    version: str
    crawl_backend: str
