"""
Access policy: may this user see this courseware's content?

Pure decision, no I/O. Metadata is always visible; only the content body is
gated. Callers must resolve the user first; anonymous requests are stopped
by the session gate before the policy is consulted.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cwhub.db.models import Courseware, User


class AccessDecision(str, Enum):
    GRANTED = "granted"
    PAYMENT_REQUIRED = "payment_required"


def can_view(user: User, courseware: Courseware) -> AccessDecision:
    """Granted if the courseware is free or the user is premium."""
    if courseware.is_free or user.is_premium:
        return AccessDecision.GRANTED
    return AccessDecision.PAYMENT_REQUIRED