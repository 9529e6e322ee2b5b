from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from .capacity import QuotaTable
from .models import (
    AccountReputation,
    DeviceCandidate,
    MembershipLevel,
    Owner,
    PaidTier,
    QuotaProfile,
)


@dataclass(frozen=True)
class RoomsRuntimeConfig:
    config_path: str | None = None
    state_path: str | None = None
    client_id: str = ""
    http_timeout_s: float = 10.0
    sweep_interval_s: float = 30.0
    sync_interval_s: float = 300.0
    # Membership-level and paid-tier permanent room allowances, as
    # (name, count) pairs. Owned by the membership service.
    base_permanent_rooms: tuple[tuple[str, int], ...] = ()
    paid_tier_bonus_rooms: tuple[tuple[str, int], ...] = ()
    # Static linked devices for the command line runner.
    devices: tuple[DeviceCandidate, ...] = ()
    # Identity and membership inputs for the command line runner.
    owner_id: str = ""
    owner_handle: str = ""
    membership_level: str = "newbie"
    paid_tier: str = "none"
    trust_score: int = 0
    reputation: str | None = None
    days_active: int = 0
    banned: bool = False
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None
    # (logger name, level) pairs from [logging.levels].
    log_levels: tuple[tuple[str, str], ...] = ()

    def quota_table(self) -> QuotaTable:
        return QuotaTable(
            base_rooms=_enum_table(MembershipLevel, self.base_permanent_rooms),
            paid_tier_bonus_rooms=_enum_table(PaidTier, self.paid_tier_bonus_rooms),
        )

    def owner(self) -> Owner:
        return Owner(id=self.owner_id, handle=self.owner_handle)

    def quota_profile(self) -> QuotaProfile:
        reputation = None
        if self.reputation:
            reputation = AccountReputation(str(self.reputation).lower())
        return QuotaProfile.from_reputation(
            reputation,
            membership_level=MembershipLevel(str(self.membership_level).lower()),
            paid_tier=PaidTier(str(self.paid_tier).lower()),
            trust_score=int(self.trust_score),
            days_active=int(self.days_active),
            is_banned=bool(self.banned),
        )


def _enum_table(enum_cls, pairs) -> dict:
    out = {}
    for name, count in pairs:
        try:
            out[enum_cls(str(name).lower())] = int(count)
        except ValueError as e:
            raise ValueError(f"unknown {enum_cls.__name__} {name!r}") from e
    return out


def load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def _parse_devices(value: Any) -> tuple[DeviceCandidate, ...]:
    if not isinstance(value, list):
        raise ValueError("devices must be an array of tables")
    out: list[DeviceCandidate] = []
    for i, d in enumerate(value):
        if not isinstance(d, dict):
            raise ValueError(f"devices[{i}] must be a table")
        dev_id = str(d.get("id", "")).strip()
        if not dev_id:
            raise ValueError(f"devices[{i}] is missing id")
        token = d.get("access_token")
        out.append(
            DeviceCandidate(
                id=dev_id,
                base_url=str(d.get("base_url", "")),
                access_token=str(token) if token else None,
                is_online=bool(d.get("online", True)),
            )
        )
    return tuple(out)


def apply_config_data(base: RoomsRuntimeConfig, data: dict) -> RoomsRuntimeConfig:
    """Overlay parsed TOML onto a config.

    ``[rooms]`` keys map directly onto fields, ``[logging]`` keys map onto the
    ``log_*`` fields, ``[quota]`` holds the room allowance tables and
    ``[[devices]]`` the static device list.
    """
    rooms = data.get("rooms") if isinstance(data, dict) else None
    if isinstance(rooms, dict):
        data = {**data, **rooms}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "console", "file", "format", "datefmt"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where to reload from; do not let the file override it.
    allowed.discard("config_path")
    allowed.discard("devices")
    allowed.discard("base_permanent_rooms")
    allowed.discard("paid_tier_bonus_rooms")
    allowed.discard("log_levels")

    updates = {k: v for k, v in data.items() if k in allowed}

    quota = data.get("quota")
    if isinstance(quota, dict):
        for key in ("base_permanent_rooms", "paid_tier_bonus_rooms"):
            tbl = quota.get(key)
            if isinstance(tbl, dict):
                updates[key] = tuple((str(k), int(v)) for k, v in tbl.items())

    if isinstance(log_table, dict) and isinstance(log_table.get("levels"), dict):
        updates["log_levels"] = tuple(
            (str(k), str(v)) for k, v in log_table["levels"].items()
        )

    if "devices" in data:
        updates["devices"] = _parse_devices(data["devices"])

    for key in ("state_path", "log_file", "log_datefmt", "reputation"):
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(base, **updates) if updates else base
