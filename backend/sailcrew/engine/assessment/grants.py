# engine/assessment/grants.py
"""
Invariant d'utilisabilité d'un DocumentAccessGrant (fonction pure).

    usable ⟺ not is_revoked
             and expires_at > now
             and (max_views is None or view_count < max_views)
             and purpose == requested_purpose

Le repository applique la même condition dans un UPDATE atomique
(check-and-increment) ; cette fonction sert au diagnostic et aux tests.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from sailcrew.shared.enums import GrantPurpose


def denial_reason(grant, purpose: GrantPurpose, now: datetime) -> Optional[str]:
    """None si le grant est utilisable, sinon le premier motif de refus."""
    if grant is None:
        return "no_grant"
    if grant.is_revoked:
        return "revoked"
    if GrantPurpose(grant.purpose) != GrantPurpose(purpose):
        return "purpose_mismatch"
    if grant.expires_at <= now:
        return "expired"
    if grant.max_views is not None and grant.view_count >= grant.max_views:
        return "view_limit_reached"
    return None


def is_grant_usable(grant, purpose: GrantPurpose, now: datetime) -> bool:
    return denial_reason(grant, purpose, now) is None
