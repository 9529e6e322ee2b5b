import pytest
import requests

from voicerooms.errors import InvalidEndpointError, NetworkFailureError, ServerRejectedError
from voicerooms.models import DeviceCandidate
from voicerooms.transport import HostingClient


class FakeResponse:
    def __init__(self, payload, status_code=200) -> None:
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, payload=None, error=None) -> None:
        self.headers = {}
        self.payload = payload
        self.error = error
        self.requests = []
        self.closed = False

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append(
            {"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout}
        )
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload)

    def close(self):
        self.closed = True


DEVICE = DeviceCandidate("dev-a", "http://10.0.0.1:3010/", "tok-a", True)


def _client(session) -> HostingClient:
    return HostingClient(client_id="client-1", timeout_s=5, session=session, max_workers=1)


def _create(client, device=DEVICE, password=None):
    return client.create_permanent_room(
        device,
        name="Lobby",
        description="hang out",
        is_private=True,
        max_members=12,
        owner_id="alice",
        owner_handle="@alice",
        password=password,
    )


def test_create_permanent_room_request() -> None:
    session = FakeSession({"success": True, "roomId": "r-1"})
    client = _client(session)

    assert _create(client, password="pw") == "r-1"

    [req] = session.requests
    assert req["method"] == "POST"
    assert req["url"] == "http://10.0.0.1:3010/api/rooms/create"
    assert req["headers"] == {"Authorization": "tok-a"}
    assert req["timeout"] == 5.0
    assert req["json"] == {
        "name": "Lobby",
        "description": "hang out",
        "isPrivate": True,
        "maxMembers": 12,
        "ownerId": "alice",
        "ownerUsername": "@alice",
        "permanent": True,
        "password": "pw",
    }
    assert session.headers["Accept"] == "application/json"


def test_no_token_means_no_authorization_header() -> None:
    session = FakeSession({"success": True, "roomId": "r-1"})
    client = _client(session)
    _create(client, device=DeviceCandidate("dev-b", "http://h:1", None, True))

    [req] = session.requests
    assert req["headers"] == {}
    assert "password" not in req["json"]


def test_guest_and_openlink_bodies() -> None:
    session = FakeSession({"success": True, "roomId": "x"})
    client = _client(session)

    client.create_guest_room(DEVICE, name="g", description="", duration_minutes=17)
    client.create_openlink_room(DEVICE, initiator_id="u", visitor_id="v")

    guest, openlink = session.requests
    assert guest["url"].endswith("/api/rooms/create-guest")
    assert guest["json"] == {
        "name": "g",
        "description": "",
        "maxMembers": 15,
        "durationMinutes": 17,
        "isGuest": True,
        "deviceId": "client-1",
    }
    assert openlink["url"].endswith("/api/rooms/create-openlink")
    assert openlink["json"] == {
        "initiatorId": "u",
        "visitorId": "v",
        "isHidden": True,
        "type": "openlink",
        "deviceId": "client-1",
    }


@pytest.mark.parametrize("base_url", ["", "not a url", "ftp://host/x", "http://"])
def test_invalid_endpoint(base_url) -> None:
    session = FakeSession({"success": True, "roomId": "r"})
    client = _client(session)
    with pytest.raises(InvalidEndpointError):
        _create(client, device=DeviceCandidate("d", base_url, None, True))
    assert session.requests == []


def test_server_error_text_is_passed_through() -> None:
    client = _client(FakeSession({"success": False, "error": "Room limit reached on host"}))
    with pytest.raises(ServerRejectedError) as exc:
        _create(client)
    assert exc.value.message == "Room limit reached on host"


@pytest.mark.parametrize(
    "payload",
    [{"success": False}, {"success": True}, {"roomId": "r"}, [], ValueError("not json")],
)
def test_unusable_response_uses_fallback_message(payload) -> None:
    client = _client(FakeSession(payload))
    with pytest.raises(ServerRejectedError) as exc:
        _create(client)
    assert exc.value.message == "Failed to create room"


def test_network_failure() -> None:
    client = _client(FakeSession(error=requests.exceptions.ConnectionError("refused")))
    with pytest.raises(NetworkFailureError) as exc:
        _create(client)
    assert "refused" in exc.value.message


def test_delete_requires_success() -> None:
    session = FakeSession({"success": True})
    _client(session).delete_permanent_room(DEVICE, "r-9")
    [req] = session.requests
    assert req["method"] == "DELETE"
    assert req["url"] == "http://10.0.0.1:3010/api/rooms/r-9/delete"

    with pytest.raises(ServerRejectedError) as exc:
        _client(FakeSession({"success": False})).delete_permanent_room(DEVICE, "r-9")
    assert exc.value.message == "Failed to delete room"


def test_notifications_never_raise() -> None:
    session = FakeSession(error=requests.exceptions.Timeout("slow"))
    client = _client(session)

    client.expire_guest_room(DEVICE, "g-1")
    client.remove_openlink_room(DEVICE, "o-1")
    client.sync_rooms(DEVICE, [{"id": "r"}])
    client._pool.shutdown(wait=True)

    urls = [r["url"] for r in session.requests]
    assert urls == [
        "http://10.0.0.1:3010/api/rooms/g-1/expire",
        "http://10.0.0.1:3010/api/rooms/o-1/remove-openlink",
        "http://10.0.0.1:3010/api/rooms/sync",
    ]
    assert session.requests[2]["json"] == {"rooms": [{"id": "r"}], "clientId": "client-1"}


def test_notification_after_close_is_dropped() -> None:
    session = FakeSession({"success": True})
    client = _client(session)
    client.close()
    assert session.closed is True

    client.expire_guest_room(DEVICE, "g-1")
    assert session.requests == []
