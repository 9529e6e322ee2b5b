import random

import pytest

from voicerooms.errors import NoDeviceAvailableError
from voicerooms.models import DeviceCandidate, RotationMode
from voicerooms.rotation import DeviceRotationSelector, first_online


def _devices(n: int, offline: tuple[int, ...] = ()) -> list[DeviceCandidate]:
    return [
        DeviceCandidate(f"d{i}", f"http://10.0.0.{i}", None, i not in offline)
        for i in range(n)
    ]


def test_round_robin_visits_every_device_once_before_repeating() -> None:
    sel = DeviceRotationSelector(random.Random(1))
    devices = _devices(4)
    pointer = None
    seen = []
    for _ in range(8):
        s = sel.select(devices, RotationMode.ROUND_ROBIN, last_host_id=pointer)
        pointer = s.last_host_id
        seen.append(s.device.id)
    assert seen[:4] == ["d0", "d1", "d2", "d3"]
    assert seen[4:] == seen[:4]


def test_round_robin_restarts_when_last_host_went_offline() -> None:
    sel = DeviceRotationSelector()
    devices = _devices(3, offline=(1,))
    s = sel.select(devices, RotationMode.ROUND_ROBIN, last_host_id="d1")
    assert s.device.id == "d0"
    assert s.last_host_id == "d0"


def test_round_robin_wraps_over_online_list_only() -> None:
    sel = DeviceRotationSelector()
    devices = _devices(3, offline=(1,))
    s = sel.select(devices, RotationMode.ROUND_ROBIN, last_host_id="d0")
    assert s.device.id == "d2"
    s = sel.select(devices, RotationMode.ROUND_ROBIN, last_host_id="d2")
    assert s.device.id == "d0"


def test_preferred_device_when_online() -> None:
    sel = DeviceRotationSelector()
    s = sel.select(_devices(3), RotationMode.PREFERRED, preferred_id="d2")
    assert s.device.id == "d2"


def test_preferred_falls_back_to_first_online() -> None:
    sel = DeviceRotationSelector()
    devices = _devices(3, offline=(0, 2))
    s = sel.select(devices, RotationMode.PREFERRED, preferred_id="d2")
    assert s.device.id == "d1"


def test_load_balanced_picks_least_loaded_first_on_ties() -> None:
    sel = DeviceRotationSelector()
    devices = _devices(4)
    counts = {"d0": 3, "d1": 1, "d2": 1, "d3": 2}
    s = sel.select(devices, RotationMode.LOAD_BALANCED, hosted_counts=counts)
    assert s.device.id == "d1"


def test_load_balanced_result_is_minimal_among_online() -> None:
    sel = DeviceRotationSelector()
    rng = random.Random(3)
    for _ in range(50):
        devices = [
            DeviceCandidate(f"d{i}", "http://h", None, rng.random() > 0.3)
            for i in range(6)
        ]
        if not any(d.is_online for d in devices):
            continue
        counts = {d.id: rng.randint(0, 5) for d in devices}
        s = sel.select(devices, RotationMode.LOAD_BALANCED, hosted_counts=counts)
        online_counts = [counts[d.id] for d in devices if d.is_online]
        assert s.device.is_online
        assert counts[s.device.id] == min(online_counts)


def test_random_only_returns_online_devices() -> None:
    sel = DeviceRotationSelector(random.Random(5))
    devices = _devices(5, offline=(0, 3))
    picks = {sel.select(devices, RotationMode.RANDOM).device.id for _ in range(100)}
    assert picks == {"d1", "d2", "d4"}


def test_non_round_robin_modes_keep_pointer() -> None:
    sel = DeviceRotationSelector()
    s = sel.select(_devices(2), RotationMode.PREFERRED, last_host_id="d1")
    assert s.last_host_id == "d1"


@pytest.mark.parametrize("mode", list(RotationMode))
def test_no_online_devices_raises(mode) -> None:
    sel = DeviceRotationSelector()
    with pytest.raises(NoDeviceAvailableError):
        sel.select(_devices(2, offline=(0, 1)), mode)
    with pytest.raises(NoDeviceAvailableError):
        sel.select([], mode)


def test_first_online() -> None:
    assert first_online(_devices(3, offline=(0,))).id == "d1"
    with pytest.raises(NoDeviceAvailableError):
        first_online(_devices(1, offline=(0,)))
