"""Hidden rooms for OpenLink visitor connections.

A room stays up while the connection is active. When the connection ends it
enters a grace period (5 minutes, or 10-15 when an extension is needed) and is
removed afterwards. Extensions never push removal past 15 minutes after the
connection ended.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import (
    EV_OPENLINK_CONNECTION_ENDED,
    EV_OPENLINK_ROOM_REMOVED,
    OPENLINK_ABSOLUTE_MAX,
    OPENLINK_GRACE_PERIOD,
    OPENLINK_MAX_EXTENSION,
    OPENLINK_MIN_EXTENSION,
    TIMER_SLACK_S,
)
from .errors import RoomError, RoomNotFoundError
from .models import OpenLinkRoom
from .rotation import first_online

if TYPE_CHECKING:
    from .service import RoomService


class OpenLinkRoomScheduler:
    def __init__(self, service: RoomService) -> None:
        self.service = service
        self.log = logging.getLogger("voicerooms.openlink")

    def create(self, initiator_id: str, visitor_id: str) -> OpenLinkRoom:
        svc = self.service
        with svc._state_lock:
            host = first_online(svc.devices())

        try:
            room_id = svc.transport.create_openlink_room(
                host, initiator_id=initiator_id, visitor_id=visitor_id
            )
        except RoomError as e:
            svc.stats.inc("create_failures")
            self.log.warning("OpenLink room create failed host=%s: %s", host.id, e.message)
            raise

        room = OpenLinkRoom(
            id=room_id,
            initiator_id=initiator_id,
            visitor_id=visitor_id,
            created_at=svc.clock(),
            host_device_id=host.id,
        )

        with svc._state_lock:
            svc.store.put_openlink(room)
            svc.store.save_openlink()

        svc.stats.inc("rooms_created")
        self.log.info("Created OpenLink room id=%s host=%s", room.id, host.id)
        return room

    def grace_minutes(self, needs_extension: bool) -> int:
        if not needs_extension:
            return OPENLINK_GRACE_PERIOD
        return OPENLINK_GRACE_PERIOD + self.service.rng.randint(
            OPENLINK_MIN_EXTENSION, OPENLINK_MAX_EXTENSION
        )

    def end_connection(self, room: OpenLinkRoom, needs_extension: bool = False) -> OpenLinkRoom:
        svc = self.service
        grace = self.grace_minutes(needs_extension)

        with svc._state_lock:
            current = svc.store.get_openlink(room.id)
            if current is None:
                raise RoomNotFoundError(room.id)
            now = svc.clock()
            current.is_connection_active = False
            current.connection_ended_at = now
            current.scheduled_removal_at = now + grace * 60
            svc.store.save_openlink()
            self._schedule(current)

        self.log.info("OpenLink room %s connection ended; grace=%sm", room.id, grace)
        svc.events.emit(EV_OPENLINK_CONNECTION_ENDED, current)
        return current

    def extend(self, room: OpenLinkRoom, additional_minutes: int) -> bool:
        """Move removal to now + additional_minutes, capped at 15 minutes after the
        connection ended. Returns False if the connection never ended."""
        svc = self.service
        with svc._state_lock:
            current = svc.store.get_openlink(room.id)
            if current is None or current.connection_ended_at is None:
                return False
            cap = current.connection_ended_at + OPENLINK_ABSOLUTE_MAX * 60
            requested = svc.clock() + float(additional_minutes) * 60
            current.scheduled_removal_at = min(requested, cap)
            svc.store.save_openlink()
            self._schedule(current)

        self.log.debug(
            "OpenLink room %s removal moved to %s", room.id, current.scheduled_removal_at
        )
        return True

    def cancel(self, room: OpenLinkRoom) -> bool:
        self.service.scheduler.cancel(self._key(room.id))
        return self._remove(room.id)

    def cleanup_on_startup(self) -> list[str]:
        removed = self.sweep_expired()
        with self.service._state_lock:
            for room in self.service.store.openlink_rooms():
                if room.scheduled_removal_at is not None:
                    self._schedule(room)
        return removed

    def sweep_expired(self) -> list[str]:
        now = self.service.clock()
        expired = [
            r.id
            for r in self.service.store.openlink_rooms()
            if r.scheduled_removal_at is not None and r.scheduled_removal_at <= now
        ]
        removed: list[str] = []
        for room_id in expired:
            self.service.scheduler.cancel(self._key(room_id))
            if self._remove(room_id):
                removed.append(room_id)
        return removed

    def _key(self, room_id: str) -> str:
        return f"openlink:{room_id}"

    def _is_due(self, room: OpenLinkRoom) -> bool:
        removal = room.scheduled_removal_at
        return removal is not None and removal - self.service.clock() <= TIMER_SLACK_S

    def _schedule(self, room: OpenLinkRoom) -> None:
        if room.scheduled_removal_at is None:
            return
        delay = max(0.0, room.scheduled_removal_at - self.service.clock())
        self.service.scheduler.schedule(
            self._key(room.id), delay, lambda: self._on_due(room.id)
        )

    def _on_due(self, room_id: str) -> None:
        self._remove(room_id, only_if_due=True)

    def _remove(self, room_id: str, only_if_due: bool = False) -> bool:
        svc = self.service
        with svc._state_lock:
            room = svc.store.get_openlink(room_id)
            if room is None:
                return False
            if only_if_due and not self._is_due(room):
                self.log.debug("OpenLink room %s not due yet; keeping", room_id)
                return False
            svc.store.pop_openlink(room_id)
            svc.store.save_openlink()

        host = svc.find_device(room.host_device_id)
        if host is not None:
            svc.transport.remove_openlink_room(host, room.id)
            svc.stats.inc("notifications_sent")

        svc.stats.inc("openlink_rooms_removed")
        self.log.info("OpenLink room %s removed", room.id)
        svc.events.emit(EV_OPENLINK_ROOM_REMOVED, room)
        return True
