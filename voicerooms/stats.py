"""Counters and status report for the room service."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from . import capacity

if TYPE_CHECKING:
    from .service import RoomService


class StatsManager:
    """
    Tracks lifetime counters for:
    - Rooms created, failed creates, deletions
    - Guest expiries and OpenLink removals
    - Fire-and-forget notifications and sync broadcasts
    """

    def __init__(self, service: RoomService) -> None:
        self.service = service

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "rooms_created": 0,
            "create_failures": 0,
            "rooms_deleted": 0,
            "guest_rooms_expired": 0,
            "openlink_rooms_removed": 0,
            "notifications_sent": 0,
            "syncs_sent": 0,
        }

    def set_start_time(self) -> None:
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self.service._state_lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self.service._state_lock:
            return int(self._counters.get(key, 0))

    def format_stats(self) -> str:
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0

        svc = self.service
        with svc._state_lock:
            store = svc.store
            permanent = len(store.permanent_rooms())
            guest = len(store.guest_rooms())
            openlink = store.openlink_rooms()
            grace = sum(1 for r in openlink if not r.is_connection_active)
            server_capacity = store.server_room_capacity
            total = store.total_rooms()
            mode = store.rotation_mode.value
            c = dict(self._counters)

        online = sum(1 for d in svc.devices() if d.is_online)

        lines: list[str] = []
        lines.append(f"voicerooms {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            f"rooms: permanent={permanent} guest={guest} "
            f"openlink={len(openlink)} openlink_in_grace={grace}"
        )
        lines.append(
            f"server: capacity={server_capacity} "
            f"available_slots={capacity.available_server_slots(server_capacity, total)}"
        )
        lines.append(f"devices: online={online} rotation_mode={mode}")
        lines.append(
            "events: created={} create_failures={} deleted={} guest_expired={} "
            "openlink_removed={} notifications={} syncs={}".format(
                c.get("rooms_created", 0),
                c.get("create_failures", 0),
                c.get("rooms_deleted", 0),
                c.get("guest_rooms_expired", 0),
                c.get("openlink_rooms_removed", 0),
                c.get("notifications_sent", 0),
                c.get("syncs_sent", 0),
            )
        )
        return "\n".join(lines)
