import re

from models.enums import BookingStatus, ConversationStatus

from .booking_state_machine import CHAT_UNLOCKING_STATUSES

MAX_MESSAGE_LENGTH = 1000

BLOCKED_CONTENT = (
    (re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE), "e-mail addresses"),
    (re.compile(r"\d{8,}"), "phone numbers"),
    (re.compile(r"(https?://|www\.)", re.IGNORECASE), "links"),
    (
        re.compile(
            r"\b(whatsapp|zap|telefone|phone|contato|contact|pix|instagram|facebook|telegram)\b",
            re.IGNORECASE,
        ),
        "outside contact channels",
    ),
)


class MessageRejected(ValueError):
    pass


def content_violation(text: str) -> str | None:
    if not text or not text.strip():
        return "Message is empty."
    if len(text) > MAX_MESSAGE_LENGTH:
        return f"Message is longer than {MAX_MESSAGE_LENGTH} characters."
    for pattern, label in BLOCKED_CONTENT:
        if pattern.search(text):
            return f"For your safety, {label} cannot be shared in the chat."
    return None


def ensure_message_allowed(text: str) -> None:
    reason = content_violation(text)
    if reason:
        raise MessageRejected(reason)


def is_chat_unlocked(
    booking_status: BookingStatus, conversation_status: ConversationStatus
) -> bool:
    return (
        BookingStatus(booking_status) in CHAT_UNLOCKING_STATUSES
        and ConversationStatus(conversation_status) == ConversationStatus.OPEN
    )
