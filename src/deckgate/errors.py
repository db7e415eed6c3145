"""Error taxonomy shared by services and the HTTP layer.

Services raise these for request-level failures; the application installs a
single handler that renders them as ``{"detail": ..., "code": ...}``.
Expected business outcomes of the OTP store and the access policy are
returned as values instead and only translated here at the route boundary.
"""


class AppError(Exception):
    """Base class for errors with an HTTP mapping."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        self.detail = detail or self.default_detail
        self.headers = headers
        super().__init__(self.detail)


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"
    default_detail = "Invalid request"


class UnauthenticatedError(AppError):
    """Missing or invalid credentials on an endpoint that requires them."""

    status_code = 401
    code = "unauthenticated"
    default_detail = "Not authenticated"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(detail, headers or {"WWW-Authenticate": "Bearer"})


class PolicyDeniedError(AppError):
    """The candidate identity is not allowed by the link's policy."""

    status_code = 403
    code = "policy_denied"
    default_detail = "This email is not authorized to access this deck"


class NotFoundError(AppError):
    """Unknown (or revoked) resource."""

    status_code = 404
    code = "not_found"
    default_detail = "Invalid or expired share link"


class ConflictError(AppError):
    """The requested state collides with an existing record."""

    status_code = 409
    code = "conflict"
    default_detail = "Resource already exists"


class ExpiredError(AppError):
    """Share link past its expiry or maximum age."""

    status_code = 410
    code = "expired"
    default_detail = "This share link has expired"


class RateLimitedError(AppError):
    """Too many attempts, or a cooldown is still active."""

    status_code = 429
    code = "rate_limited"
    default_detail = "Too many attempts. Please try again later."

    def __init__(self, detail: str | None = None, retry_after: int | None = None):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        super().__init__(detail, headers)
        self.retry_after = retry_after


class InternalError(AppError):
    """Store, cache or mail transport failure."""
