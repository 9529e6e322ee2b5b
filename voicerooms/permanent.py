"""Permanent room lifecycle: create, delete, migrate and sync."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from . import capacity
from .errors import (
    BannedError,
    QuotaExceededError,
    RoomError,
    RoomNotFoundError,
)
from .models import DeviceCandidate, Owner, PermanentRoom, QuotaProfile, RotationMode

if TYPE_CHECKING:
    from .service import RoomService


class PermanentRoomLifecycle:
    """
    Manages rooms owned by authenticated identities.

    Handles:
    - Quota and ban checks before anything goes over the network
    - Host placement through the configured rotation mode
    - Best-effort remote deletion with unconditional local removal
    - Host pointer migration (no live session handoff)
    - Room summary broadcast to linked devices
    """

    def __init__(self, service: RoomService) -> None:
        self.service = service
        self.log = logging.getLogger("voicerooms.permanent")
        # owner id -> create requests still waiting on the host
        self._pending: dict[str, int] = {}

    def can_create(self, owner: Owner, profile: QuotaProfile) -> bool:
        if profile.is_banned:
            return False
        limit = capacity.max_permanent_rooms(profile, self.service.quota_table)
        return self.service.store.count_owned(owner.id) < limit

    def create(
        self,
        owner: Owner,
        profile: QuotaProfile,
        name: str,
        description: str,
        is_private: bool,
        password: str | None = None,
    ) -> PermanentRoom:
        svc = self.service
        store = svc.store

        if profile.is_banned:
            raise BannedError()

        limit = capacity.max_permanent_rooms(profile, svc.quota_table)
        max_members = capacity.max_members_per_room(profile)

        with svc._state_lock:
            in_flight = self._pending.get(owner.id, 0)
            if store.count_owned(owner.id) + in_flight >= limit:
                raise QuotaExceededError(limit)

            selection = svc.selector.select(
                svc.devices(),
                store.rotation_mode,
                last_host_id=store.last_host_device,
                preferred_id=store.preferred_host_device,
                hosted_counts=store.hosted_counts(),
            )
            if (
                store.rotation_mode is RotationMode.ROUND_ROBIN
                and selection.last_host_id != store.last_host_device
            ):
                store.last_host_device = selection.last_host_id
                store.save_settings()

            # Hold a slot while the request is out so parallel creates
            # cannot overshoot the quota.
            self._pending[owner.id] = in_flight + 1

        host = selection.device
        try:
            room_id = svc.transport.create_permanent_room(
                host,
                name=name,
                description=description,
                is_private=is_private,
                max_members=max_members,
                owner_id=owner.id,
                owner_handle=owner.handle,
                password=password,
            )
        except RoomError as e:
            with svc._state_lock:
                self._release_slot(owner.id)
            svc.stats.inc("create_failures")
            self.log.warning(
                "Permanent room create failed host=%s: %s", host.id, e.message
            )
            raise

        room = PermanentRoom(
            id=room_id,
            name=name,
            description=description,
            owner_id=owner.id,
            owner_handle=owner.handle,
            is_private=bool(is_private),
            max_members=max_members,
            created_at=svc.clock(),
            host_device_id=host.id,
            has_password=password is not None,
        )

        with svc._state_lock:
            self._release_slot(owner.id)
            store.put_permanent(room)
            store.save_permanent()

        svc.stats.inc("rooms_created")
        self.log.info(
            "Created permanent room id=%s host=%s max_members=%s",
            room.id,
            host.id,
            max_members,
        )
        return room

    def delete(self, room: PermanentRoom) -> bool:
        """Delete a room. Returns True if the host confirmed the delete.

        The room is removed locally whatever the host says.
        """
        svc = self.service
        host = self._known_device(room.host_device_id)

        confirmed = False
        if host is not None and host.is_online:
            try:
                svc.transport.delete_permanent_room(host, room.id)
                confirmed = True
            except RoomError as e:
                self.log.info(
                    "Remote delete failed room=%s host=%s: %s", room.id, host.id, e.message
                )
        else:
            self.log.info(
                "Host %s unavailable; removing room %s locally only",
                room.host_device_id or "-",
                room.id,
            )

        with svc._state_lock:
            svc.store.pop_permanent(room.id)
            svc.store.save_permanent()

        svc.stats.inc("rooms_deleted")
        return confirmed

    def migrate(self, room: PermanentRoom, to_device: DeviceCandidate) -> PermanentRoom:
        # Only the host pointer moves; live session handoff is not implemented.
        svc = self.service
        with svc._state_lock:
            current = svc.store.get_permanent(room.id)
            if current is None:
                raise RoomNotFoundError(room.id)
            old_host = current.host_device_id
            current.host_device_id = to_device.id
            svc.store.save_permanent()

        self.log.info(
            "Repointed room %s host %s -> %s (no session handoff)",
            room.id,
            old_host or "-",
            to_device.id,
        )
        return current

    def sync_across_devices(self) -> int:
        """Broadcast room summaries to every online device. Returns devices targeted."""
        svc = self.service
        summaries = [r.summary() for r in svc.store.permanent_rooms()]

        sent = 0
        for device in svc.devices():
            if not device.is_online:
                continue
            svc.transport.sync_rooms(device, summaries)
            sent += 1

        svc.stats.inc("syncs_sent", sent)
        self.log.debug("Synced %s rooms to %s devices", len(summaries), sent)
        return sent

    def set_rotation_mode(self, mode: RotationMode) -> None:
        with self.service._state_lock:
            self.service.store.rotation_mode = mode
            self.service.store.save_settings()

    def set_preferred_device(self, device_id: str | None) -> None:
        with self.service._state_lock:
            self.service.store.preferred_host_device = device_id or None
            self.service.store.save_settings()

    def _known_device(self, device_id: str | None) -> DeviceCandidate | None:
        if not device_id:
            return None
        for d in self.service.devices():
            if d.id == device_id:
                return d
        return None

    def _release_slot(self, owner_id: str) -> None:
        left = self._pending.get(owner_id, 1) - 1
        if left > 0:
            self._pending[owner_id] = left
        else:
            self._pending.pop(owner_id, None)
