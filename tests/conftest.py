import random
from dataclasses import replace

import pytest

from voicerooms.config import RoomsRuntimeConfig
from voicerooms.errors import NetworkFailureError
from voicerooms.models import DeviceCandidate
from voicerooms.service import RoomService

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScheduler:
    """Records timers instead of starting threads; tests fire them by hand."""

    def __init__(self) -> None:
        self.timers = {}
        self.cancelled = []

    def schedule(self, key, delay_s, callback):
        self.timers[key] = (max(0.0, float(delay_s)), callback)

    def cancel(self, key):
        self.cancelled.append(key)
        return self.timers.pop(key, None) is not None

    def cancel_all(self):
        self.timers.clear()

    def pending(self):
        return list(self.timers)

    def delay(self, key):
        return self.timers[key][0]

    def fire(self, key):
        _, callback = self.timers.pop(key)
        callback()


class FakeTransport:
    """Stands in for HostingClient; records every call."""

    def __init__(self) -> None:
        self.calls = []
        self.fail_with = None
        self.delete_fails = False
        self._next_id = 0

    def _new_id(self, prefix):
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def create_permanent_room(self, device, **kwargs):
        self.calls.append(("create", device.id, kwargs))
        if self.fail_with is not None:
            raise self.fail_with
        return self._new_id("room")

    def create_guest_room(self, device, **kwargs):
        self.calls.append(("create-guest", device.id, kwargs))
        if self.fail_with is not None:
            raise self.fail_with
        return self._new_id("guest")

    def create_openlink_room(self, device, **kwargs):
        self.calls.append(("create-openlink", device.id, kwargs))
        if self.fail_with is not None:
            raise self.fail_with
        return self._new_id("openlink")

    def delete_permanent_room(self, device, room_id):
        self.calls.append(("delete", device.id, room_id))
        if self.delete_fails:
            raise NetworkFailureError("timed out")

    def expire_guest_room(self, device, room_id):
        self.calls.append(("expire", device.id, room_id))

    def remove_openlink_room(self, device, room_id):
        self.calls.append(("remove-openlink", device.id, room_id))

    def sync_rooms(self, device, rooms):
        self.calls.append(("sync", device.id, rooms))

    def close(self):
        pass

    def names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def devices():
    return [
        DeviceCandidate("dev-a", "http://10.0.0.1:3010", "tok-a", True),
        DeviceCandidate("dev-b", "http://10.0.0.2:3010", "tok-b", True),
        DeviceCandidate("dev-c", "http://10.0.0.3:3010", None, False),
    ]


@pytest.fixture
def make_service(tmp_path, clock, scheduler, transport, devices):
    def _make(**overrides):
        cfg = RoomsRuntimeConfig(
            state_path=str(tmp_path / "state.toml"),
            client_id="client-1",
            sweep_interval_s=0.0,
            sync_interval_s=0.0,
            base_permanent_rooms=(("newbie", 2), ("regular", 3)),
            paid_tier_bonus_rooms=(("supporter", 1),),
        )
        cfg = replace(cfg, **overrides)
        return RoomService(
            cfg,
            lambda: list(devices),
            transport=transport,
            scheduler=scheduler,
            clock=clock,
            rng=random.Random(7),
        )

    return _make


@pytest.fixture
def service(make_service):
    return make_service()
