"""Host device selection across linked devices."""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .errors import NoDeviceAvailableError
from .models import DeviceCandidate, RotationMode


@dataclass(frozen=True)
class Selection:
    device: DeviceCandidate
    # Round-robin pointer to persist; unchanged for the other modes.
    last_host_id: str | None


def online_devices(candidates: Iterable[DeviceCandidate]) -> list[DeviceCandidate]:
    return [d for d in candidates if d.is_online]


def first_online(candidates: Iterable[DeviceCandidate]) -> DeviceCandidate:
    for d in candidates:
        if d.is_online:
            return d
    raise NoDeviceAvailableError("No server available to host room")


class DeviceRotationSelector:
    """
    Picks the device that hosts a new room.

    Modes:
    - random: uniform choice
    - round robin: next device after the last host, wrapping
    - preferred: the preferred device if online, else the first online one
    - load balanced: fewest hosted rooms, first in list wins ties

    The selector keeps no state; the caller persists ``Selection.last_host_id``.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def select(
        self,
        candidates: Iterable[DeviceCandidate],
        mode: RotationMode,
        *,
        last_host_id: str | None = None,
        preferred_id: str | None = None,
        hosted_counts: Mapping[str, int] | None = None,
    ) -> Selection:
        online = online_devices(candidates)
        if not online:
            raise NoDeviceAvailableError()

        if mode is RotationMode.ROUND_ROBIN:
            return self._round_robin(online, last_host_id)
        if mode is RotationMode.PREFERRED:
            return Selection(self._preferred(online, preferred_id), last_host_id)
        if mode is RotationMode.LOAD_BALANCED:
            return Selection(self._least_loaded(online, hosted_counts or {}), last_host_id)
        return Selection(self.rng.choice(online), last_host_id)

    def _round_robin(
        self, online: list[DeviceCandidate], last_host_id: str | None
    ) -> Selection:
        ids = [d.id for d in online]
        if last_host_id in ids:
            nxt = online[(ids.index(last_host_id) + 1) % len(online)]
        else:
            nxt = online[0]
        return Selection(nxt, nxt.id)

    def _preferred(
        self, online: list[DeviceCandidate], preferred_id: str | None
    ) -> DeviceCandidate:
        if preferred_id:
            for d in online:
                if d.id == preferred_id:
                    return d
        return online[0]

    def _least_loaded(
        self, online: list[DeviceCandidate], hosted_counts: Mapping[str, int]
    ) -> DeviceCandidate:
        # min() keeps the first of equal keys.
        return min(online, key=lambda d: int(hosted_counts.get(d.id, 0)))
