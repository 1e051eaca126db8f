from __future__ import annotations


class RoomError(Exception):
    """Error reported back to the sending connection only."""

    code = "ROOM_ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_payload(self) -> dict[str, str]:
        return {"type": "error", "code": self.code, "message": self.message}


class InvalidMessageError(RoomError):
    code = "INVALID_MESSAGE"
    default_message = "Invalid message"


class AuthorizationError(RoomError):
    code = "HOST_ONLY"
    default_message = "Only the host can perform this action."


class TransitionRejected(RoomError):
    code = "QUIZ_FINISHED"
    default_message = "The quiz is already finished."
