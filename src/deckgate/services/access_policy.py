"""Access policy evaluation for share links.

``evaluate`` is a pure function of the link's configuration, the candidate
email and the current time. It never touches storage and never raises for
expected outcomes: callers branch on the returned verdict.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from deckgate.config import settings
from deckgate.models import AccessLevel, ShareLink, as_utc
from deckgate.models.base import utcnow

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Liveness(str, Enum):
    """Validity state combining absolute expiry and maximum creation age."""

    ALIVE = "alive"
    EXPIRED = "expired"
    TOO_OLD = "too_old"


class VerdictKind(str, Enum):
    GRANTED = "granted"
    REQUIRES_OTP = "requires_otp"
    DENIED = "denied"


class DenialReason(str, Enum):
    EXPIRED = "expired"
    INVALID_EMAIL = "invalid_email"
    NOT_AUTHORIZED = "not_authorized"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    reason: DenialReason | None = None

    @property
    def allowed(self) -> bool:
        return self.kind != VerdictKind.DENIED


GRANTED = Verdict(VerdictKind.GRANTED)
REQUIRES_OTP = Verdict(VerdictKind.REQUIRES_OTP)


def check_liveness(link: ShareLink, now: datetime | None = None) -> Liveness:
    """Whichever of absolute expiry and maximum age comes first ends validity."""
    now = now or utcnow()
    if link.expires_at is not None and as_utc(link.expires_at) < now:
        return Liveness.EXPIRED
    max_age = timedelta(days=settings.share_link_max_age_days)
    if link.created_at is not None and as_utc(link.created_at) < now - max_age:
        return Liveness.TOO_OLD
    return Liveness.ALIVE


def normalize_email(email: str | None) -> str | None:
    """Trim and case-fold an address; None when absent or malformed."""
    if not email or not isinstance(email, str):
        return None
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return None
    return email


def domain_matches(domain: str, allowed: str) -> bool:
    """Exact match or a proper subdomain of the allowed domain."""
    allowed = allowed.strip().lower().lstrip("@")
    if not allowed:
        return False
    return domain == allowed or domain.endswith(f".{allowed}")


def evaluate(link: ShareLink, email: str | None, now: datetime | None = None) -> Verdict:
    """Decide what a candidate needs in order to view the link's deck."""
    if check_liveness(link, now) != Liveness.ALIVE:
        return Verdict(VerdictKind.DENIED, DenialReason.EXPIRED)

    if link.access_level == AccessLevel.PUBLIC:
        return GRANTED

    candidate = normalize_email(email)
    if candidate is None:
        return Verdict(VerdictKind.DENIED, DenialReason.INVALID_EMAIL)

    recipient = (link.recipient_email or "").strip().lower() or None
    allowed_emails = [e.strip().lower() for e in link.allowed_emails or [] if e.strip()]
    allowed_domains = [d for d in link.allowed_domains or [] if d.strip()]

    if allowed_emails or allowed_domains:
        domain = candidate.rpartition("@")[2]
        if (
            candidate in allowed_emails
            or candidate == recipient
            or any(domain_matches(domain, allowed) for allowed in allowed_domains)
        ):
            return REQUIRES_OTP
        return Verdict(VerdictKind.DENIED, DenialReason.NOT_AUTHORIZED)

    if recipient is not None and candidate != recipient:
        return Verdict(VerdictKind.DENIED, DenialReason.NOT_AUTHORIZED)

    return REQUIRES_OTP
