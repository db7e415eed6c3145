"""Pydantic schemas for API requests/responses."""

from deckgate.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
]
