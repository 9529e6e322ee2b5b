"""Room, device and quota data types.

Timestamps are float unix seconds. Rooms convert to and from plain dict
records for the state file; ``None`` fields are left out of records since
TOML has no null.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    GUEST_ROOM_MAX_DURATION,
    GUEST_ROOM_MAX_MEMBERS,
    GUEST_ROOM_MIN_DURATION,
    OPENLINK_STANDARD_GRACE_S,
    UNLIMITED_CAPACITY_THRESHOLD,
)
from .util import format_mm_ss


class MembershipLevel(enum.Enum):
    NEWBIE = "newbie"
    REGULAR = "regular"
    OUTSTANDING = "outstanding"


class PaidTier(enum.Enum):
    NONE = "none"
    SUPPORTER = "supporter"
    UNLIMITED = "unlimited"


class AccountReputation(enum.Enum):
    NEW = "new"
    STANDARD = "standard"
    ACTIVE = "active"
    ESTABLISHED = "established"
    VETERAN = "veteran"

    @property
    def bonus_rooms(self) -> int:
        return _REPUTATION_BONUS_ROOMS[self]

    @property
    def bonus_capacity(self) -> int:
        return _REPUTATION_BONUS_CAPACITY[self]


_REPUTATION_BONUS_ROOMS = {
    AccountReputation.NEW: 0,
    AccountReputation.STANDARD: 1,
    AccountReputation.ACTIVE: 2,
    AccountReputation.ESTABLISHED: 4,
    AccountReputation.VETERAN: 8,
}

_REPUTATION_BONUS_CAPACITY = {
    AccountReputation.NEW: 0,
    AccountReputation.STANDARD: 5,
    AccountReputation.ACTIVE: 10,
    AccountReputation.ESTABLISHED: 25,
    AccountReputation.VETERAN: 50,
}


class RotationMode(enum.Enum):
    RANDOM = "Random"
    ROUND_ROBIN = "Round Robin"
    PREFERRED = "Preferred"
    LOAD_BALANCED = "Load Balanced"

    @property
    def description(self) -> str:
        return {
            RotationMode.RANDOM: "Randomly select a device for each room",
            RotationMode.ROUND_ROBIN: "Rotate hosting between devices in order",
            RotationMode.PREFERRED: "Use your preferred device when available",
            RotationMode.LOAD_BALANCED: "Distribute based on device load",
        }[self]


class GracePeriodStatus(enum.Enum):
    ACTIVE = "Active"
    STANDARD = "Grace Period"
    EXTENDED = "Extended"


@dataclass(frozen=True)
class DeviceCandidate:
    """A linked device that can host rooms. Owned by the pairing subsystem."""

    id: str
    base_url: str
    access_token: str | None = None
    is_online: bool = False


@dataclass(frozen=True)
class Owner:
    id: str
    handle: str


@dataclass(frozen=True)
class QuotaProfile:
    """Membership, trust and reputation inputs for quota calculations."""

    membership_level: MembershipLevel = MembershipLevel.NEWBIE
    paid_tier: PaidTier = PaidTier.NONE
    trust_score: int = 0
    reputation_bonus_rooms: int = 0
    reputation_bonus_capacity: int = 0
    days_active: int = 0
    reputation: AccountReputation | None = None
    is_banned: bool = False

    @classmethod
    def from_reputation(
        cls, reputation: AccountReputation | None, **kwargs: Any
    ) -> QuotaProfile:
        """Build a profile whose reputation bonuses follow the reputation tier."""
        if reputation is not None:
            kwargs.setdefault("reputation_bonus_rooms", reputation.bonus_rooms)
            kwargs.setdefault("reputation_bonus_capacity", reputation.bonus_capacity)
        return cls(reputation=reputation, **kwargs)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s else None


def _opt_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class PermanentRoom:
    id: str
    name: str
    description: str
    owner_id: str
    owner_handle: str
    is_private: bool
    max_members: int
    created_at: float
    host_device_id: str | None = None
    has_password: bool = False
    current_members: int = 0
    is_online: bool = True

    @property
    def is_full(self) -> bool:
        return self.current_members >= self.max_members

    @property
    def capacity_display(self) -> str:
        if self.max_members >= UNLIMITED_CAPACITY_THRESHOLD:
            return f"{self.current_members}/∞"
        return f"{self.current_members}/{self.max_members}"

    def summary(self) -> dict[str, Any]:
        """Room summary as broadcast to linked devices."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "hostDeviceId": self.host_device_id or "",
            "maxMembers": self.max_members,
            "currentMembers": self.current_members,
        }

    def to_record(self) -> dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "description": self.description,
                "owner_id": self.owner_id,
                "owner_handle": self.owner_handle,
                "is_private": bool(self.is_private),
                "max_members": int(self.max_members),
                "created_at": float(self.created_at),
                "host_device_id": self.host_device_id,
                "has_password": bool(self.has_password),
                "current_members": int(self.current_members),
                "is_online": bool(self.is_online),
            }
        )

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> PermanentRoom:
        max_members = int(rec["max_members"])
        current = max(0, min(int(rec.get("current_members", 0)), max_members))
        return cls(
            id=str(rec["id"]),
            name=str(rec.get("name", "")),
            description=str(rec.get("description", "")),
            owner_id=str(rec.get("owner_id", "")),
            owner_handle=str(rec.get("owner_handle", "")),
            is_private=bool(rec.get("is_private", False)),
            max_members=max_members,
            created_at=float(rec["created_at"]),
            host_device_id=_opt_str(rec.get("host_device_id")),
            has_password=bool(rec.get("has_password", False)),
            current_members=current,
            is_online=bool(rec.get("is_online", True)),
        )


@dataclass
class GuestRoom:
    id: str
    name: str
    description: str
    created_at: float
    expires_at: float
    duration_minutes: int
    host_device_id: str
    max_members: int = GUEST_ROOM_MAX_MEMBERS
    current_members: int = 0
    is_online: bool = True

    # Guest rooms never support locking or passwords.
    can_lock = False
    can_unlock = False
    can_set_password = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)

    def time_remaining(self, now: float) -> str:
        remaining = self.expires_at - now
        if remaining <= 0:
            return "Expired"
        minutes, seconds = format_mm_ss(remaining)
        if minutes > 0:
            return f"{minutes}m {seconds}s remaining"
        return f"{seconds}s remaining"

    @property
    def capacity_display(self) -> str:
        return f"{self.current_members}/{self.max_members}"

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": float(self.created_at),
            "expires_at": float(self.expires_at),
            "duration_minutes": int(self.duration_minutes),
            "max_members": int(self.max_members),
            "host_device_id": self.host_device_id,
            "current_members": int(self.current_members),
            "is_online": bool(self.is_online),
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> GuestRoom:
        created_at = float(rec["created_at"])
        expires_at = float(rec["expires_at"])
        duration = int(rec["duration_minutes"])
        if not GUEST_ROOM_MIN_DURATION <= duration <= GUEST_ROOM_MAX_DURATION:
            raise ValueError(f"guest room duration {duration} out of range")
        if abs(expires_at - (created_at + duration * 60)) > 1e-3:
            raise ValueError("guest room expires_at does not match its duration")
        return cls(
            id=str(rec["id"]),
            name=str(rec.get("name", "")),
            description=str(rec.get("description", "")),
            created_at=created_at,
            expires_at=expires_at,
            duration_minutes=duration,
            host_device_id=str(rec.get("host_device_id", "")),
            current_members=int(rec.get("current_members", 0)),
            is_online=bool(rec.get("is_online", True)),
        )


@dataclass
class OpenLinkRoom:
    id: str
    initiator_id: str
    visitor_id: str
    created_at: float
    host_device_id: str
    is_connection_active: bool = True
    connection_ended_at: float | None = None
    scheduled_removal_at: float | None = None
    is_hidden: bool = field(default=True, init=False)

    # Visitors get voice only.
    has_basic_voice = True
    has_screen_share = False
    has_recording = False

    def time_until_removal(self, now: float) -> str | None:
        if self.scheduled_removal_at is None:
            return None
        remaining = self.scheduled_removal_at - now
        if remaining <= 0:
            return "Removing..."
        minutes, seconds = format_mm_ss(remaining)
        return f"{minutes}m {seconds}s"

    def grace_period_status(self, now: float) -> GracePeriodStatus:
        ended = self.connection_ended_at
        removal = self.scheduled_removal_at
        if ended is None or removal is None:
            return GracePeriodStatus.ACTIVE
        if now - ended < 0:
            return GracePeriodStatus.ACTIVE
        if removal - ended <= OPENLINK_STANDARD_GRACE_S:
            return GracePeriodStatus.STANDARD
        return GracePeriodStatus.EXTENDED

    def to_record(self) -> dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "initiator_id": self.initiator_id,
                "visitor_id": self.visitor_id,
                "created_at": float(self.created_at),
                "host_device_id": self.host_device_id,
                "is_connection_active": bool(self.is_connection_active),
                "connection_ended_at": self.connection_ended_at,
                "scheduled_removal_at": self.scheduled_removal_at,
            }
        )

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> OpenLinkRoom:
        active = bool(rec.get("is_connection_active", True))
        ended = None if active else _opt_float(rec.get("connection_ended_at"))
        removal = None if active else _opt_float(rec.get("scheduled_removal_at"))
        return cls(
            id=str(rec["id"]),
            initiator_id=str(rec.get("initiator_id", "")),
            visitor_id=str(rec.get("visitor_id", "")),
            created_at=float(rec["created_at"]),
            host_device_id=str(rec.get("host_device_id", "")),
            is_connection_active=active,
            connection_ended_at=ended,
            scheduled_removal_at=removal,
        )
