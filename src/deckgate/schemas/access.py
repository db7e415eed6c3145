"""Request and response bodies of the viewer access endpoints.

Field names are camelCase on the wire to match the web client.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from deckgate.models import AccessLevel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeRequest(CamelModel):
    token: str
    email: str | None = None


class CodeRequestResponse(CamelModel):
    success: bool = True
    message: str
    requires_verification: bool
    dev_code: str | None = None


class CodeVerify(CamelModel):
    token: str
    email: str | None = None
    code: str | None = None


class CodeVerifyResponse(CamelModel):
    success: bool = True
    access_token: str | None = None
    access_level: AccessLevel
    is_downloadable: bool


class AccessRequirementsResponse(CamelModel):
    access_level: AccessLevel
    require_verification: bool
    allow_anonymous: bool
    is_downloadable: bool
    expires_at: datetime | None


class EvaluateResponse(CamelModel):
    success: bool = True
    requires_verification: bool


class ContentResponse(CamelModel):
    url: str
    deck_name: str
    is_downloadable: bool
    expires_in: int
