"""Quota calculations for permanent rooms, room members and server capacity.

Everything here is a pure function of a ``QuotaProfile`` (and, for the room
count, the injected ``QuotaTable``). None of these functions raise.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from .constants import (
    MAX_ACTIVITY_BONUS,
    MAX_SERVER_CAPACITY,
    MIN_SERVER_CAPACITY,
    UNLIMITED_CAPACITY_THRESHOLD,
)
from .models import AccountReputation, MembershipLevel, PaidTier, QuotaProfile

_BASE_MEMBERS = {
    MembershipLevel.NEWBIE: 2,
    MembershipLevel.REGULAR: 10,
    MembershipLevel.OUTSTANDING: 50,
}

_PAID_MEMBER_BONUS = {
    PaidTier.NONE: 0,
    PaidTier.SUPPORTER: 25,
    PaidTier.UNLIMITED: 950,
}

_LEVEL_SERVER_BONUS = {
    MembershipLevel.NEWBIE: 0,
    MembershipLevel.REGULAR: 50,
    MembershipLevel.OUTSTANDING: 150,
}

_PAID_SERVER_BONUS = {
    PaidTier.NONE: 0,
    PaidTier.SUPPORTER: 200,
    PaidTier.UNLIMITED: 1000,
}

_REPUTATION_SERVER_BONUS = {
    AccountReputation.VETERAN: 500,
    AccountReputation.ESTABLISHED: 200,
    AccountReputation.ACTIVE: 100,
    AccountReputation.STANDARD: 50,
}


@dataclass(frozen=True)
class QuotaTable:
    """Permanent-room allowances owned by the membership service."""

    base_rooms: Mapping[MembershipLevel, int] = field(default_factory=dict)
    paid_tier_bonus_rooms: Mapping[PaidTier, int] = field(default_factory=dict)


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def max_permanent_rooms(profile: QuotaProfile, table: QuotaTable) -> int:
    base = _as_int(table.base_rooms.get(profile.membership_level, 0))
    bonus = _as_int(table.paid_tier_bonus_rooms.get(profile.paid_tier, 0))
    return max(0, base + bonus + _as_int(profile.reputation_bonus_rooms))


def base_members_per_room(level: MembershipLevel) -> int:
    return _BASE_MEMBERS.get(level, _BASE_MEMBERS[MembershipLevel.NEWBIE])


def paid_tier_member_bonus(tier: PaidTier) -> int:
    return _PAID_MEMBER_BONUS.get(tier, 0)


def max_members_per_room(profile: QuotaProfile) -> int:
    total = (
        base_members_per_room(profile.membership_level)
        + paid_tier_member_bonus(profile.paid_tier)
        + _as_int(profile.reputation_bonus_capacity)
    )
    return max(1, total)


def has_unlimited_capacity(profile: QuotaProfile) -> bool:
    # Display sentinel only; the room still carries a finite max_members.
    return max_members_per_room(profile) >= UNLIMITED_CAPACITY_THRESHOLD


def trust_score_bonus(trust_score) -> int:
    score = _as_int(trust_score)
    if score >= 90:
        return 100
    if score >= 80:
        return 50
    if score >= 70:
        return 25
    return 0


def activity_bonus(days_active) -> int:
    days = max(0, _as_int(days_active))
    return min(days * 2, MAX_ACTIVITY_BONUS)


def server_capacity(profile: QuotaProfile) -> int:
    capacity = MIN_SERVER_CAPACITY
    capacity += _LEVEL_SERVER_BONUS.get(profile.membership_level, 0)
    capacity += _PAID_SERVER_BONUS.get(profile.paid_tier, 0)
    capacity += trust_score_bonus(profile.trust_score)
    if profile.reputation is not None:
        capacity += _REPUTATION_SERVER_BONUS.get(profile.reputation, 0)
    capacity += activity_bonus(profile.days_active)
    return max(MIN_SERVER_CAPACITY, min(capacity, MAX_SERVER_CAPACITY))


def available_server_slots(capacity: int, current_rooms: int) -> int:
    return max(0, _as_int(capacity) - max(0, _as_int(current_rooms)))
