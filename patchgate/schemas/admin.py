"""Admin request/response schemas."""

from pydantic import BaseModel


class ResetCounts(BaseModel):
    """Rows removed by a reset."""

    investigations: int
    patch_evaluations: int


class ResetResponse(BaseModel):
    """POST /v1/admin/reset response."""

    success: bool
    deleted: ResetCounts
    message: str
