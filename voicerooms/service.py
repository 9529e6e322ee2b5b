from __future__ import annotations

import logging
import random
import signal
import threading
import time
from collections.abc import Callable, Iterable

from . import capacity
from .config import RoomsRuntimeConfig
from .events import EventEmitter
from .guest import GuestRoomScheduler
from .models import DeviceCandidate, QuotaProfile
from .openlink import OpenLinkRoomScheduler
from .permanent import PermanentRoomLifecycle
from .rotation import DeviceRotationSelector
from .stats import StatsManager
from .store import RoomStore
from .timers import RemovalScheduler
from .transport import HostingClient
from .util import expand_path


class RoomService:
    def __init__(
        self,
        config: RoomsRuntimeConfig,
        device_source: Callable[[], Iterable[DeviceCandidate]] | None = None,
        *,
        transport: HostingClient | None = None,
        scheduler: RemovalScheduler | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("voicerooms.service")

        # Room collections are touched from callers, timer threads and the
        # sweep thread. Guard them with a single re-entrant lock.
        self._state_lock = threading.RLock()
        self._shutdown = threading.Event()
        self._sweep_thread: threading.Thread | None = None
        self._sync_thread: threading.Thread | None = None

        self._device_source = device_source or (lambda: list(config.devices))
        self.clock = clock
        self.rng = rng or random.Random()
        self.quota_table = config.quota_table()

        state_path = expand_path(config.state_path) if config.state_path else None
        self.store = RoomStore(state_path, lock=self._state_lock)
        self.transport = transport or HostingClient(
            client_id=config.client_id, timeout_s=config.http_timeout_s
        )
        self.scheduler = scheduler or RemovalScheduler()
        self.selector = DeviceRotationSelector(self.rng)
        self.events = EventEmitter()
        self.stats = StatsManager(self)

        self.permanent = PermanentRoomLifecycle(self)
        self.guest = GuestRoomScheduler(self)
        self.openlink = OpenLinkRoomScheduler(self)

    def devices(self) -> list[DeviceCandidate]:
        return list(self._device_source())

    def find_device(self, device_id: str | None) -> DeviceCandidate | None:
        if not device_id:
            return None
        for d in self.devices():
            if d.id == device_id:
                return d
        return None

    def start(self) -> None:
        self.stats.set_start_time()

        loaded, err = self.store.load()
        if err:
            self.log.error("Failed to load state from %s: %s", self.store.path, err)
        elif not loaded:
            self.log.info("No saved state; starting empty")

        expired_guest = self.guest.cleanup_on_startup()
        expired_openlink = self.openlink.cleanup_on_startup()
        if expired_guest or expired_openlink:
            self.log.info(
                "Startup cleanup removed guest=%s openlink=%s",
                len(expired_guest),
                len(expired_openlink),
            )

        if self.config.sweep_interval_s and self.config.sweep_interval_s > 0:
            self._sweep_thread = threading.Thread(
                target=self._sweep_loop, name="voicerooms-sweep", daemon=True
            )
            self._sweep_thread.start()

        if self.config.sync_interval_s and self.config.sync_interval_s > 0:
            self._sync_thread = threading.Thread(
                target=self._sync_loop, name="voicerooms-sync", daemon=True
            )
            self._sync_thread.start()

        self.log.info(
            "Room service running permanent=%s guest=%s openlink=%s rotation=%s",
            len(self.store.permanent_rooms()),
            len(self.store.guest_rooms()),
            len(self.store.openlink_rooms()),
            self.store.rotation_mode.value,
        )

    def sweep_once(self) -> None:
        # Catches deadlines missed while the process was suspended.
        self.guest.sweep_expired()
        self.openlink.sweep_expired()

    def _sweep_loop(self) -> None:
        while not self._shutdown.is_set():
            interval = float(self.config.sweep_interval_s)
            if self._shutdown.wait(interval if interval > 0 else 1.0):
                break
            try:
                self.sweep_once()
            except Exception:
                self.log.exception("Expiry sweep failed")

    def _sync_loop(self) -> None:
        while not self._shutdown.is_set():
            if self._shutdown.wait(float(self.config.sync_interval_s)):
                break
            try:
                self.permanent.sync_across_devices()
            except Exception:
                self.log.exception("Room sync failed")

    def run_forever(self) -> None:
        if self.stats.started_monotonic is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        self._shutdown.set()
        self.scheduler.cancel_all()
        self.transport.close()

    def recalculate_server_capacity(self, profile: QuotaProfile) -> int:
        """Recompute and persist the server room capacity for a profile."""
        value = capacity.server_capacity(profile)
        with self._state_lock:
            if value != self.store.server_room_capacity:
                self.store.server_room_capacity = value
                self.store.save_settings()
        return value

    def available_server_slots(self) -> int:
        with self._state_lock:
            return capacity.available_server_slots(
                self.store.server_room_capacity, self.store.total_rooms()
            )

    def format_stats(self) -> str:
        return self.stats.format_stats()
