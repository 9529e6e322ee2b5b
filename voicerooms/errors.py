"""Exceptions raised by room lifecycle operations."""

from __future__ import annotations


class RoomError(Exception):
    """Base class for room lifecycle failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BannedError(RoomError):
    def __init__(self, message: str = "Your account is banned from creating rooms") -> None:
        super().__init__(message)


class QuotaExceededError(RoomError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum permanent rooms reached ({limit})")


class AlreadyHasRoomError(RoomError):
    def __init__(self, message: str = "You can only have one room at a time as a guest") -> None:
        super().__init__(message)


class NoDeviceAvailableError(RoomError):
    def __init__(self, message: str = "No online devices available to host") -> None:
        super().__init__(message)


class InvalidEndpointError(RoomError):
    def __init__(self, base_url: str | None) -> None:
        self.base_url = base_url
        super().__init__(f"Invalid server URL: {base_url!r}")


class NetworkFailureError(RoomError):
    pass


class ServerRejectedError(RoomError):
    """The hosting device answered with success=false (or an unusable body)."""


class RoomNotFoundError(RoomError):
    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"unknown room {room_id}")


class NotGuestError(RoomError):
    def __init__(self, message: str = "Use create for signed-in users") -> None:
        super().__init__(message)
