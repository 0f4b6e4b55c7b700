"""Booking lifecycle: the one table every status change is checked against."""

import logging

from core.settings import settings
from models.enums import BookingActor, BookingStatus

logger = logging.getLogger(__name__)

S = BookingStatus
A = BookingActor

TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[BookingActor]] = {
    (S.PENDING_PAYMENT, S.CONFIRMED): frozenset({A.RENTER}),
    (S.PENDING_PAYMENT, S.PRE_CHECKING): frozenset({A.PAYMENT, A.ADMIN}),
    (S.CONFIRMED, S.PRE_CHECKING): frozenset({A.PAYMENT, A.ADMIN}),
    (S.PRE_CHECKING, S.CHECKED_IN): frozenset({A.OWNER, A.ADMIN}),
    (S.CONFIRMED, S.CHECKED_IN): frozenset({A.OWNER, A.ADMIN}),
    (S.CHECKED_IN, S.CHECKED_OUT): frozenset({A.OWNER, A.ADMIN}),
    (S.PENDING_PAYMENT, S.CANCELLED): frozenset({A.RENTER, A.OWNER, A.ADMIN}),
    (S.PRE_CHECKING, S.CANCELLED): frozenset({A.OWNER, A.ADMIN}),
    (S.CONFIRMED, S.CANCELLED): frozenset({A.OWNER, A.ADMIN}),
    (S.CHECKED_IN, S.CANCELLED): frozenset({A.ADMIN}),
}

TERMINAL_STATUSES = frozenset({S.CHECKED_OUT, S.CANCELLED})
PAYMENT_CLOSED_STATUSES = frozenset({S.CHECKED_IN, S.CHECKED_OUT, S.CANCELLED})
CHAT_UNLOCKING_STATUSES = frozenset({S.PRE_CHECKING, S.CHECKED_IN, S.CHECKED_OUT})


class BookingTransitionError(Exception):
    def __init__(self, current: BookingStatus, target: BookingStatus, actor: BookingActor):
        self.current = current
        self.target = target
        self.actor = actor
        super().__init__(
            f"A {actor.value} cannot move a booking from {current.value} to {target.value}."
        )


def _manual_path_disabled(current, target, actor, allow_manual) -> bool:
    if (current, target, actor) != (S.PENDING_PAYMENT, S.CONFIRMED, A.RENTER):
        return False
    if allow_manual is None:
        allow_manual = settings.ALLOW_MANUAL_PAYMENT_CONFIRMATION
    return not allow_manual


def can_transition(
    current: BookingStatus,
    target: BookingStatus,
    actor: BookingActor,
    allow_manual_confirmation: bool | None = None,
) -> bool:
    current, target, actor = S(current), S(target), A(actor)
    if actor not in TRANSITIONS.get((current, target), frozenset()):
        return False
    return not _manual_path_disabled(current, target, actor, allow_manual_confirmation)


def ensure_transition(
    current: BookingStatus,
    target: BookingStatus,
    actor: BookingActor,
    allow_manual_confirmation: bool | None = None,
) -> None:
    if not can_transition(current, target, actor, allow_manual_confirmation):
        raise BookingTransitionError(S(current), S(target), A(actor))


def allowed_targets(
    current: BookingStatus,
    actor: BookingActor,
    allow_manual_confirmation: bool | None = None,
) -> list[BookingStatus]:
    return [
        target
        for (source, target) in TRANSITIONS
        if source == S(current)
        and can_transition(source, target, actor, allow_manual_confirmation)
    ]


def blocked_sources(target: BookingStatus, actor: BookingActor) -> frozenset[BookingStatus]:
    """Statuses from which ``actor`` may not move a booking into ``target``.

    A booking already at ``target`` is blocked too, so applying the same
    transition twice changes nothing.
    """
    return frozenset(
        status
        for status in S
        if A(actor) not in TRANSITIONS.get((status, S(target)), frozenset())
    )


# pending_payment and confirmed may advance; pre_checking and later never regress
PAYMENT_BLOCKED_STATUSES = blocked_sources(S.PRE_CHECKING, A.PAYMENT)


def log_transition(booking_id, current, target, actor) -> None:
    logger.info(
        "Booking %s: %s -> %s by %s",
        booking_id,
        S(current).value,
        S(target).value,
        A(actor).value,
    )
