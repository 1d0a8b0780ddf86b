from pydantic import BaseModel


class RequestInfo(BaseModel):
    """Request context attached to every audit event."""

    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str
