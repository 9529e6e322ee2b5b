"""Short-lived anonymous guest rooms."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import (
    EV_GUEST_ROOM_EXPIRED,
    GUEST_ROOM_MAX_DURATION,
    GUEST_ROOM_MIN_DURATION,
    TIMER_SLACK_S,
)
from .errors import AlreadyHasRoomError, NotGuestError, RoomError
from .models import GuestRoom, Owner
from .rotation import first_online

if TYPE_CHECKING:
    from .service import RoomService


class GuestRoomScheduler:
    """
    Creates guest rooms with a random 10-30 minute lifetime and removes them
    when they expire. A guest may hold only one room at a time. Signed-in
    users get permanent rooms instead.
    """

    def __init__(self, service: RoomService) -> None:
        self.service = service
        self.log = logging.getLogger("voicerooms.guest")
        self._creating = False

    def can_create(self, owner: Owner | None = None) -> bool:
        if owner is not None:
            return False
        return not self.service.store.guest_rooms() and not self._creating

    def random_duration(self) -> int:
        return self.service.rng.randint(GUEST_ROOM_MIN_DURATION, GUEST_ROOM_MAX_DURATION)

    def create(
        self, name: str, description: str, owner: Owner | None = None
    ) -> GuestRoom:
        svc = self.service
        if owner is not None:
            raise NotGuestError()

        with svc._state_lock:
            if svc.store.guest_rooms() or self._creating:
                raise AlreadyHasRoomError()
            host = first_online(svc.devices())
            self._creating = True

        duration = self.random_duration()
        created_at = svc.clock()
        expires_at = created_at + duration * 60

        try:
            room_id = svc.transport.create_guest_room(
                host, name=name, description=description, duration_minutes=duration
            )
        except RoomError as e:
            with svc._state_lock:
                self._creating = False
            svc.stats.inc("create_failures")
            self.log.warning("Guest room create failed host=%s: %s", host.id, e.message)
            raise

        room = GuestRoom(
            id=room_id,
            name=name,
            description=description,
            created_at=created_at,
            expires_at=expires_at,
            duration_minutes=duration,
            host_device_id=host.id,
        )

        with svc._state_lock:
            self._creating = False
            svc.store.put_guest(room)
            svc.store.save_guest()
            self._schedule(room)

        svc.stats.inc("rooms_created")
        self.log.info(
            "Created guest room id=%s host=%s duration=%sm", room.id, host.id, duration
        )
        return room

    def cancel(self, room: GuestRoom) -> bool:
        """Tear a guest room down before it expires."""
        self.service.scheduler.cancel(self._key(room.id))
        return self._remove(room.id)

    def cleanup_on_startup(self) -> list[str]:
        """Drop rooms that expired while we were not running; re-arm the rest."""
        removed = self.sweep_expired()
        with self.service._state_lock:
            for room in self.service.store.guest_rooms():
                self._schedule(room)
        return removed

    def sweep_expired(self) -> list[str]:
        now = self.service.clock()
        expired = [r.id for r in self.service.store.guest_rooms() if r.expires_at <= now]
        removed: list[str] = []
        for room_id in expired:
            self.service.scheduler.cancel(self._key(room_id))
            if self._remove(room_id):
                removed.append(room_id)
        return removed

    def _key(self, room_id: str) -> str:
        return f"guest:{room_id}"

    def _schedule(self, room: GuestRoom) -> None:
        delay = max(0.0, room.expires_at - self.service.clock())
        self.service.scheduler.schedule(
            self._key(room.id), delay, lambda: self._on_expired(room.id)
        )

    def _on_expired(self, room_id: str) -> None:
        self._remove(room_id, only_if_due=True)

    def _remove(self, room_id: str, only_if_due: bool = False) -> bool:
        svc = self.service
        with svc._state_lock:
            room = svc.store.get_guest(room_id)
            if room is None:
                return False
            if only_if_due and room.expires_at - svc.clock() > TIMER_SLACK_S:
                self.log.debug("Guest room %s not due yet; keeping", room_id)
                return False
            svc.store.pop_guest(room_id)
            svc.store.save_guest()

        host = svc.find_device(room.host_device_id)
        if host is not None:
            svc.transport.expire_guest_room(host, room.id)
            svc.stats.inc("notifications_sent")

        svc.stats.inc("guest_rooms_expired")
        self.log.info("Guest room %s expired", room.id)
        svc.events.emit(EV_GUEST_ROOM_EXPIRED, room)
        return True
