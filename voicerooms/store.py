"""Room state storage.

Holds the permanent, guest and OpenLink room collections plus the rotation
settings, and persists them to a TOML state file. Each room kind lives in its
own versioned table so the kinds can be written independently:

    [state]
    schema_version = 1

    [settings]
    rotation_mode = "Random"
    server_room_capacity = 50

    [permanent_rooms]
    version = 1
    [[permanent_rooms.items]]
    id = "..."
"""

from __future__ import annotations

import logging
import os
import threading
from collections import Counter
from collections.abc import Callable
from pathlib import Path
from typing import Any

import tomlkit

from .constants import MIN_SERVER_CAPACITY, ROOM_RECORD_VERSION, STATE_SCHEMA_VERSION
from .models import GuestRoom, OpenLinkRoom, PermanentRoom, RotationMode
from .paths import ensure_private_dir

SECTION_PERMANENT = "permanent_rooms"
SECTION_GUEST = "guest_rooms"
SECTION_OPENLINK = "openlink_rooms"


class RoomStore:
    """In-memory room collections backed by a TOML state file."""

    def __init__(self, path: str | None, lock: threading.RLock | None = None) -> None:
        self.path = path
        self.log = logging.getLogger("voicerooms.store")
        self._lock = lock or threading.RLock()
        self._write_lock = threading.Lock()

        self._permanent: dict[str, PermanentRoom] = {}
        self._guest: dict[str, GuestRoom] = {}
        self._openlink: dict[str, OpenLinkRoom] = {}

        self.rotation_mode: RotationMode = RotationMode.RANDOM
        self.preferred_host_device: str | None = None
        self.last_host_device: str | None = None
        self.server_room_capacity: int = MIN_SERVER_CAPACITY

    # Queries

    def permanent_rooms(self) -> list[PermanentRoom]:
        with self._lock:
            return list(self._permanent.values())

    def guest_rooms(self) -> list[GuestRoom]:
        with self._lock:
            return list(self._guest.values())

    def openlink_rooms(self) -> list[OpenLinkRoom]:
        with self._lock:
            return list(self._openlink.values())

    def get_permanent(self, room_id: str) -> PermanentRoom | None:
        with self._lock:
            return self._permanent.get(room_id)

    def get_guest(self, room_id: str) -> GuestRoom | None:
        with self._lock:
            return self._guest.get(room_id)

    def get_openlink(self, room_id: str) -> OpenLinkRoom | None:
        with self._lock:
            return self._openlink.get(room_id)

    def count_owned(self, owner_id: str) -> int:
        with self._lock:
            return sum(1 for r in self._permanent.values() if r.owner_id == owner_id)

    def hosted_counts(self) -> dict[str, int]:
        """Permanent rooms per host device id (guest and OpenLink rooms excluded)."""
        with self._lock:
            return dict(
                Counter(r.host_device_id for r in self._permanent.values() if r.host_device_id)
            )

    def total_rooms(self) -> int:
        with self._lock:
            return len(self._permanent) + len(self._guest) + len(self._openlink)

    # Mutations

    def put_permanent(self, room: PermanentRoom) -> None:
        with self._lock:
            self._permanent[room.id] = room

    def pop_permanent(self, room_id: str) -> PermanentRoom | None:
        with self._lock:
            return self._permanent.pop(room_id, None)

    def put_guest(self, room: GuestRoom) -> None:
        with self._lock:
            self._guest[room.id] = room

    def pop_guest(self, room_id: str) -> GuestRoom | None:
        with self._lock:
            return self._guest.pop(room_id, None)

    def put_openlink(self, room: OpenLinkRoom) -> None:
        with self._lock:
            self._openlink[room.id] = room

    def pop_openlink(self, room_id: str) -> OpenLinkRoom | None:
        with self._lock:
            return self._openlink.pop(room_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._permanent.clear()
            self._guest.clear()
            self._openlink.clear()

    # Loading

    def load(self) -> tuple[bool, str | None]:
        """Load state from disk. Returns (loaded, error_msg)."""
        if not self.path or not os.path.exists(self.path):
            return False, None

        try:
            with open(self.path, encoding="utf-8") as f:
                data = tomlkit.parse(f.read()).unwrap()
        except Exception as e:
            return False, f"parse error: {e}"

        state = data.get("state")
        if isinstance(state, dict):
            try:
                version = int(state.get("schema_version", STATE_SCHEMA_VERSION))
            except (TypeError, ValueError):
                version = STATE_SCHEMA_VERSION
            if version > STATE_SCHEMA_VERSION:
                return False, f"unsupported state schema_version {version}"

        permanent = self._load_section(data, SECTION_PERMANENT, PermanentRoom.from_record)
        guest = self._load_section(data, SECTION_GUEST, GuestRoom.from_record)
        openlink = self._load_section(data, SECTION_OPENLINK, OpenLinkRoom.from_record)

        with self._lock:
            self._permanent = {r.id: r for r in permanent}
            self._guest = {r.id: r for r in guest}
            self._openlink = {r.id: r for r in openlink}
            self._apply_settings(data.get("settings"))

        self.log.info(
            "Loaded state permanent=%s guest=%s openlink=%s",
            len(permanent),
            len(guest),
            len(openlink),
        )
        return True, None

    def _load_section(
        self, data: dict[str, Any], name: str, parse: Callable[[dict[str, Any]], Any]
    ) -> list[Any]:
        section = data.get(name)
        if not isinstance(section, dict):
            return []

        try:
            version = int(section.get("version", ROOM_RECORD_VERSION))
        except (TypeError, ValueError):
            version = ROOM_RECORD_VERSION
        if version > ROOM_RECORD_VERSION:
            self.log.warning("Skipping %s with unsupported version %s", name, version)
            return []

        items = section.get("items", [])
        if not isinstance(items, list):
            return []

        out: list[Any] = []
        for rec in items:
            if not isinstance(rec, dict):
                continue
            try:
                out.append(parse(rec))
            except (KeyError, TypeError, ValueError) as e:
                self.log.warning("Skipping malformed %s entry: %s", name, e)
        return out

    def _apply_settings(self, settings: Any) -> None:
        if not isinstance(settings, dict):
            return

        mode = settings.get("rotation_mode")
        try:
            self.rotation_mode = RotationMode(mode)
        except ValueError:
            self.rotation_mode = RotationMode.RANDOM

        preferred = settings.get("preferred_host_device")
        self.preferred_host_device = preferred if isinstance(preferred, str) and preferred else None

        last = settings.get("last_host_device")
        self.last_host_device = last if isinstance(last, str) and last else None

        try:
            capacity = int(settings.get("server_room_capacity", 0))
        except (TypeError, ValueError):
            capacity = 0
        self.server_room_capacity = capacity if capacity > 0 else MIN_SERVER_CAPACITY

    # Persistence

    def save_permanent(self) -> None:
        with self._lock:
            records = [r.to_record() for r in self._permanent.values()]
        self._write_section(SECTION_PERMANENT, _rooms_table(records))

    def save_guest(self) -> None:
        with self._lock:
            records = [r.to_record() for r in self._guest.values()]
        self._write_section(SECTION_GUEST, _rooms_table(records))

    def save_openlink(self) -> None:
        with self._lock:
            records = [r.to_record() for r in self._openlink.values()]
        self._write_section(SECTION_OPENLINK, _rooms_table(records))

    def save_settings(self) -> None:
        tbl = tomlkit.table()
        with self._lock:
            tbl["rotation_mode"] = self.rotation_mode.value
            if self.preferred_host_device:
                tbl["preferred_host_device"] = self.preferred_host_device
            if self.last_host_device:
                tbl["last_host_device"] = self.last_host_device
            tbl["server_room_capacity"] = int(self.server_room_capacity)
        self._write_section("settings", tbl)

    def save_all(self) -> None:
        self.save_settings()
        self.save_permanent()
        self.save_guest()
        self.save_openlink()

    def _write_section(self, name: str, value: Any) -> None:
        if not self.path:
            return

        with self._write_lock:
            file_stat = None
            try:
                file_stat = os.stat(self.path)
            except OSError:
                file_stat = None

            doc = None
            if file_stat is not None:
                try:
                    with open(self.path, encoding="utf-8") as f:
                        doc = tomlkit.parse(f.read())
                except Exception as e:
                    self.log.warning("State file unreadable, rewriting: %s", e)
                    doc = None
            if doc is None:
                doc = tomlkit.document()
                doc.add(tomlkit.comment("voicerooms state (maintained automatically)"))
                parent = os.path.dirname(self.path)
                if parent:
                    ensure_private_dir(Path(parent))

            state = tomlkit.table()
            state["schema_version"] = STATE_SCHEMA_VERSION
            doc["state"] = state
            doc[name] = value

            with open(self.path, "w", encoding="utf-8") as f:
                f.write(tomlkit.dumps(doc))

            if file_stat is not None:
                try:
                    os.chmod(self.path, file_stat.st_mode)
                except OSError:
                    pass
            else:
                try:
                    os.chmod(self.path, 0o600)
                except OSError:
                    pass


def _rooms_table(records: list[dict[str, Any]]) -> Any:
    tbl = tomlkit.table()
    tbl["version"] = ROOM_RECORD_VERSION
    items = tomlkit.aot()
    for rec in records:
        t = tomlkit.table()
        for k, v in rec.items():
            t[k] = v
        items.append(t)
    tbl["items"] = items
    return tbl
