"""HTTP/JSON client for the room endpoints of hosting devices."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests

from .constants import (
    GUEST_ROOM_MAX_MEMBERS,
    PATH_CREATE_GUEST,
    PATH_CREATE_OPENLINK,
    PATH_CREATE_ROOM,
    PATH_DELETE_ROOM,
    PATH_EXPIRE_GUEST,
    PATH_REMOVE_OPENLINK,
    PATH_SYNC_ROOMS,
)
from .errors import InvalidEndpointError, NetworkFailureError, ServerRejectedError
from .models import DeviceCandidate
from .util import is_http_url


class HostingClient:
    """
    Talks to the room API of a hosting device.

    Creation and deletion calls are synchronous and raise typed errors.
    Expire/remove/sync notifications are fire-and-forget: they run on a small
    worker pool, are never retried, and failures are only logged.
    """

    def __init__(
        self,
        *,
        client_id: str = "",
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
        max_workers: int = 4,
    ) -> None:
        self.client_id = client_id
        self.timeout_s = float(timeout_s)
        self.log = logging.getLogger("voicerooms.transport")
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)), thread_name_prefix="voicerooms-notify"
        )

    def close(self) -> None:
        self._pool.shutdown(wait=False)
        self.session.close()

    # Room creation

    def create_permanent_room(
        self,
        device: DeviceCandidate,
        *,
        name: str,
        description: str,
        is_private: bool,
        max_members: int,
        owner_id: str,
        owner_handle: str,
        password: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "name": name,
            "description": description,
            "isPrivate": bool(is_private),
            "maxMembers": int(max_members),
            "ownerId": owner_id,
            "ownerUsername": owner_handle,
            "permanent": True,
        }
        if password is not None:
            body["password"] = password
        data = self._request(device, "POST", PATH_CREATE_ROOM, body)
        return self._room_id(data, "Failed to create room")

    def create_guest_room(
        self,
        device: DeviceCandidate,
        *,
        name: str,
        description: str,
        duration_minutes: int,
    ) -> str:
        body = {
            "name": name,
            "description": description,
            "maxMembers": GUEST_ROOM_MAX_MEMBERS,
            "durationMinutes": int(duration_minutes),
            "isGuest": True,
            "deviceId": self.client_id,
        }
        data = self._request(device, "POST", PATH_CREATE_GUEST, body)
        return self._room_id(data, "Failed to create guest room")

    def create_openlink_room(
        self, device: DeviceCandidate, *, initiator_id: str, visitor_id: str
    ) -> str:
        body = {
            "initiatorId": initiator_id,
            "visitorId": visitor_id,
            "isHidden": True,
            "type": "openlink",
            "deviceId": self.client_id,
        }
        data = self._request(device, "POST", PATH_CREATE_OPENLINK, body)
        return self._room_id(data, "Failed to create OpenLink room")

    # Deletion and notifications

    def delete_permanent_room(self, device: DeviceCandidate, room_id: str) -> None:
        data = self._request(
            device, "DELETE", PATH_DELETE_ROOM.format(room_id=room_id), None
        )
        if not (isinstance(data, dict) and data.get("success") is True):
            raise ServerRejectedError(_error_text(data) or "Failed to delete room")

    def expire_guest_room(self, device: DeviceCandidate, room_id: str) -> None:
        self.fire_and_forget(
            device, "POST", PATH_EXPIRE_GUEST.format(room_id=room_id), None
        )

    def remove_openlink_room(self, device: DeviceCandidate, room_id: str) -> None:
        self.fire_and_forget(
            device, "POST", PATH_REMOVE_OPENLINK.format(room_id=room_id), None
        )

    def sync_rooms(self, device: DeviceCandidate, rooms: list[dict[str, Any]]) -> None:
        body = {"rooms": rooms, "clientId": self.client_id}
        self.fire_and_forget(device, "POST", PATH_SYNC_ROOMS, body)

    def fire_and_forget(
        self,
        device: DeviceCandidate,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> None:
        try:
            self._pool.submit(self._send_quietly, device, method, path, body)
        except RuntimeError:
            # Pool already shut down.
            self.log.debug("Dropped %s %s to device=%s", method, path, device.id)

    def _send_quietly(
        self,
        device: DeviceCandidate,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> None:
        try:
            self._request(device, method, path, body)
        except Exception as e:
            self.log.debug("%s %s to device=%s failed: %s", method, path, device.id, e)

    # Plumbing

    def _url(self, device: DeviceCandidate, path: str) -> str:
        if not is_http_url(device.base_url):
            raise InvalidEndpointError(device.base_url)
        return device.base_url.strip().rstrip("/") + path

    def _request(
        self,
        device: DeviceCandidate,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> Any:
        url = self._url(device, path)
        headers: dict[str, str] = {}
        if device.access_token:
            headers["Authorization"] = device.access_token

        try:
            resp = self.session.request(
                method, url, json=body, headers=headers, timeout=self.timeout_s
            )
        except requests.exceptions.RequestException as e:
            raise NetworkFailureError(str(e) or "Network request failed") from e

        self.log.debug("%s %s -> %s", method, url, resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return None

    def _room_id(self, data: Any, fallback: str) -> str:
        if isinstance(data, dict) and data.get("success") is True:
            room_id = data.get("roomId")
            if isinstance(room_id, str) and room_id:
                return room_id
        raise ServerRejectedError(_error_text(data) or fallback)


def _error_text(data: Any) -> str | None:
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, str) and err:
            return err
    return None
