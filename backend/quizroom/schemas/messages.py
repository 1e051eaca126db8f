from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, TypeAdapter, ValidationError

from ..runtime_constants import MAX_NAME_LENGTH
from ..runtime_errors import InvalidMessageError, RoomError
from .quiz import Question

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_BYTES = 65536


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class IdentifyAction(_Action):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    type: Literal["identify"]
    name: StrictStr = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    isHost: StrictBool


class AddQuestionAction(_Action):
    type: Literal["addQuestion"]
    question: Question


class RemoveQuestionAction(_Action):
    type: Literal["removeQuestion"]
    questionId: StrictStr


class UpdateQuestionAction(_Action):
    type: Literal["updateQuestion"]
    question: Question


class StartQuizAction(_Action):
    type: Literal["startQuiz"]


class NextQuestionAction(_Action):
    type: Literal["nextQuestion"]


class FinishQuizAction(_Action):
    type: Literal["finishQuiz"]


class AnswerPayload(_Action):
    questionId: StrictStr = Field(min_length=1)
    answers: list[StrictStr]
    # Clients may echo their own id; the server always uses the sender's.
    participantId: StrictStr | None = None


class SubmitAnswerAction(_Action):
    type: Literal["submitAnswer"]
    answer: AnswerPayload


class ResetQuizAction(_Action):
    type: Literal["resetQuiz"]


ClientAction = Annotated[
    Union[
        IdentifyAction,
        AddQuestionAction,
        RemoveQuestionAction,
        UpdateQuestionAction,
        StartQuizAction,
        NextQuestionAction,
        FinishQuizAction,
        SubmitAnswerAction,
        ResetQuizAction,
    ],
    Field(discriminator="type"),
]

_action_adapter: TypeAdapter[ClientAction] = TypeAdapter(ClientAction)


def decode_action(
    raw: str | bytes | None,
    *,
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
) -> ClientAction:
    """Decode one untrusted frame into a typed action.

    Undecodable text, unknown tags and mistyped fields all raise the same
    ``InvalidMessageError`` so callers can answer them uniformly.
    """
    if raw is None:
        raise InvalidMessageError()

    if isinstance(raw, bytes):
        if len(raw) > max_message_bytes:
            raise InvalidMessageError()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidMessageError() from exc
    else:
        text = raw
        if len(text.encode("utf-8", errors="replace")) > max_message_bytes:
            raise InvalidMessageError()

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as exc:
        logger.debug("Rejected undecodable payload: %s", exc)
        raise InvalidMessageError() from exc

    try:
        return _action_adapter.validate_python(data)
    except ValidationError as exc:
        logger.debug("Rejected payload failing schema: %s", exc.errors(include_url=False))
        raise InvalidMessageError() from exc


def sync_message(state_payload: dict[str, Any]) -> dict[str, Any]:
    return {"type": "sync", "state": state_payload}


def error_message(error: RoomError) -> dict[str, Any]:
    return error.to_payload()


def host_disconnected_message() -> dict[str, Any]:
    return {"type": "hostDisconnected"}


def identified_message(participant_id: str, is_host: bool) -> dict[str, Any]:
    return {"type": "identified", "participantId": participant_id, "isHost": is_host}
