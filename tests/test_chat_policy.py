"""Tests for chat content filtering and the unlock rule."""

import pytest

from models.enums import BookingStatus, ConversationStatus
from policy.chat_policy import (
    MAX_MESSAGE_LENGTH,
    MessageRejected,
    content_violation,
    ensure_message_allowed,
    is_chat_unlocked,
)


@pytest.mark.parametrize(
    "text",
    [
        "Que horas posso chegar?",
        "A chave fica na portaria, apartamento 12.",
        "Check-in às 14h, ok?",
    ],
)
def test_plain_messages_pass(text):
    assert content_violation(text) is None
    ensure_message_allowed(text)


@pytest.mark.parametrize(
    "text",
    [
        "me manda um email em joao.silva@gmail.com",
        "liga 11987654321",
        "veja https://example.com/casa",
        "www.example.com",
        "me chama no WhatsApp",
        "meu zap é esse",
        "paga por pix direto",
        "segue no instagram",
    ],
)
def test_contact_details_are_rejected(text):
    assert content_violation(text) is not None
    with pytest.raises(MessageRejected):
        ensure_message_allowed(text)


def test_short_numbers_are_allowed():
    assert content_violation("Somos 4 pessoas, chegamos dia 12") is None


def test_keyword_inside_another_word_is_allowed():
    # "zap" only matches as a whole word
    assert content_violation("Vou de zapping na TV") is None


def test_empty_and_oversized_messages():
    assert content_violation("   ") == "Message is empty."
    assert content_violation("a" * (MAX_MESSAGE_LENGTH + 1)) is not None
    assert content_violation("a" * MAX_MESSAGE_LENGTH) is None


@pytest.mark.parametrize(
    "status,unlocked",
    [
        (BookingStatus.PENDING_PAYMENT, False),
        (BookingStatus.CONFIRMED, False),
        (BookingStatus.CANCELLED, False),
        (BookingStatus.PRE_CHECKING, True),
        (BookingStatus.CHECKED_IN, True),
        (BookingStatus.CHECKED_OUT, True),
    ],
)
def test_unlock_follows_booking_status(status, unlocked):
    assert is_chat_unlocked(status, ConversationStatus.OPEN) is unlocked


def test_closed_conversation_stays_locked():
    assert not is_chat_unlocked(BookingStatus.PRE_CHECKING, ConversationStatus.CLOSED)
    assert not is_chat_unlocked(BookingStatus.CHECKED_IN, ConversationStatus.BLOCKED)
