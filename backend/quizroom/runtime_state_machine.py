from __future__ import annotations

from dataclasses import replace

from .runtime_errors import TransitionRejected
from .runtime_types import Participant, RoomState
from .schemas.messages import (
    AddQuestionAction,
    ClientAction,
    FinishQuizAction,
    IdentifyAction,
    NextQuestionAction,
    RemoveQuestionAction,
    ResetQuizAction,
    StartQuizAction,
    SubmitAnswerAction,
    UpdateQuestionAction,
)


def initial_state() -> RoomState:
    return RoomState()


def apply_action(state: RoomState, action: ClientAction, sender_id: str) -> RoomState:
    """Return the state that results from ``action`` sent by ``sender_id``.

    The input state is left untouched. Benign no-ops (unknown ids, advancing
    past the last question or before the start, a host identify) return an equal state. Host
    authority is checked by the caller before this runs.
    """
    if isinstance(action, IdentifyAction):
        if action.isHost:
            return state
        return upsert_participant(state, Participant(id=sender_id, name=action.name))

    if isinstance(action, AddQuestionAction):
        # Ids come from the host; duplicates are kept as sent.
        return replace(state, questions=state.questions + (action.question,))

    if isinstance(action, RemoveQuestionAction):
        return replace(
            state,
            questions=tuple(q for q in state.questions if q.id != action.questionId),
        )

    if isinstance(action, UpdateQuestionAction):
        return replace(
            state,
            questions=tuple(
                action.question if q.id == action.question.id else q for q in state.questions
            ),
        )

    if isinstance(action, StartQuizAction):
        # Restarting is allowed and simply rewinds to the first question.
        return replace(state, is_quiz_started=True, current_question_index=0)

    if isinstance(action, NextQuestionAction):
        if state.is_quiz_finished:
            raise TransitionRejected()
        if not state.is_quiz_started:
            return state
        next_index = state.current_question_index + 1
        if next_index >= len(state.questions):
            return state
        return replace(state, current_question_index=next_index)

    if isinstance(action, FinishQuizAction):
        return replace(state, is_quiz_finished=True)

    if isinstance(action, SubmitAnswerAction):
        if state.is_quiz_finished:
            raise TransitionRejected()
        question_id = action.answer.questionId
        answers = {key: dict(value) for key, value in state.answers.items()}
        answers.setdefault(question_id, {})[sender_id] = list(action.answer.answers)
        return replace(state, answers=answers)

    if isinstance(action, ResetQuizAction):
        return initial_state()

    raise TypeError(f"Unsupported action: {type(action).__name__}")


def upsert_participant(state: RoomState, participant: Participant) -> RoomState:
    participants = tuple(p for p in state.participants if p.id != participant.id)
    return replace(state, participants=participants + (participant,))


def remove_participant(state: RoomState, participant_id: str) -> RoomState:
    if state.find_participant(participant_id) is None:
        return state
    return replace(
        state,
        participants=tuple(p for p in state.participants if p.id != participant_id),
    )
