"""Tests for booking conversations, the unlock gate and live delivery."""

import pytest
from fastapi import HTTPException

from models.enums import BookingStatus, ConversationStatus
from realtime.change_feed import ChangeFeed
from realtime.connection_manager import ConnectionManager
from services.admin_service import AdminService
from services.chat_service import ChatService

from conftest import make_booking, make_user


class FakeWebSocket:
    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, payload):
        self.sent.append(payload)


async def open_conversation(db, user, booking):
    view = await ChatService(db).open_for_booking(user, booking.id)
    return view.conversation.id


@pytest.mark.asyncio
async def test_conversation_is_opened_once_per_booking(db, renter, owner, booking):
    service = ChatService(db)

    first = await service.open_for_booking(renter, booking.id)
    second = await service.open_for_booking(owner, booking.id)

    assert first.conversation.id == second.conversation.id
    assert first.conversation.renter_id == renter.id
    assert first.conversation.owner_id == owner.id


@pytest.mark.asyncio
async def test_unpaid_booking_keeps_chat_locked(db, renter, booking):
    convo_id = await open_conversation(db, renter, booking)
    service = ChatService(db)

    view = await service.get_conversation(renter, convo_id)
    assert not view.unlocked
    assert view.booking_status == BookingStatus.PENDING_PAYMENT

    with pytest.raises(HTTPException) as exc:
        await service.send_message(renter, convo_id, "Olá, tudo bem?")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_manually_confirmed_booking_keeps_chat_locked(db, listing, renter):
    confirmed = await make_booking(db, listing, renter, status=BookingStatus.CONFIRMED)
    convo_id = await open_conversation(db, renter, confirmed)

    with pytest.raises(HTTPException) as exc:
        await ChatService(db).send_message(renter, convo_id, "Olá!")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_paid_booking_unlocks_chat(db, listing, renter, owner):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)
    service = ChatService(db)

    sent = await service.send_message(renter, convo_id, "Que horas posso chegar?")
    reply = await service.send_message(owner, convo_id, "A partir das 14h.")

    assert sent.sender_id == renter.id
    assert not sent.is_system
    messages = await service.list_messages(owner, convo_id)
    assert [m.text for m in messages] == ["Que horas posso chegar?", "A partir das 14h."]
    assert messages[-1].id == reply.id

    view = await service.get_conversation(owner, convo_id)
    assert view.unlocked
    assert view.conversation.last_message_at is not None


@pytest.mark.asyncio
async def test_contact_details_are_blocked(db, listing, renter):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)
    service = ChatService(db)

    with pytest.raises(HTTPException) as exc:
        await service.send_message(renter, convo_id, "me chama no whatsapp 11987654321")
    assert exc.value.status_code == 400
    assert await service.list_messages(renter, convo_id) == []


@pytest.mark.asyncio
async def test_strangers_cannot_read_or_write(db, listing, renter):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)
    stranger = await make_user(db, full_name="Curioso")
    service = ChatService(db)

    with pytest.raises(HTTPException) as exc:
        await service.list_messages(stranger, convo_id)
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        await service.send_message(stranger, convo_id, "Oi")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_closed_conversation_rejects_messages(db, admin, listing, renter):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)

    view = await AdminService(db).set_conversation_status(
        admin, convo_id, ConversationStatus.CLOSED
    )
    assert not view.unlocked

    with pytest.raises(HTTPException) as exc:
        await ChatService(db).send_message(renter, convo_id, "Oi")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_system_messages_skip_the_content_filter(db, admin, listing, renter):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)

    message = await AdminService(db).post_system_message(
        admin, convo_id, "Suporte: contato pelo e-mail suporte@aluga.test"
    )

    assert message.is_system
    assert message.sender_id == admin.id


@pytest.mark.asyncio
async def test_system_messages_respect_the_lock(db, admin, renter, booking):
    convo_id = await open_conversation(db, renter, booking)

    with pytest.raises(HTTPException) as exc:
        await AdminService(db).post_system_message(admin, convo_id, "Aviso")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_messages_after_a_timestamp(db, listing, renter):
    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)
    service = ChatService(db)

    first = await service.send_message(renter, convo_id, "Primeira")
    await service.send_message(renter, convo_id, "Segunda")

    newer = await service.list_messages(renter, convo_id, after=first.created_at)
    assert [m.text for m in newer] == ["Segunda"]


@pytest.mark.asyncio
async def test_live_delivery_reaches_the_room_once(db, listing, renter, monkeypatch):
    feed = ChangeFeed()
    monkeypatch.setattr("services.chat_service.change_feed", feed)
    manager = ConnectionManager(feed=feed)

    paid = await make_booking(db, listing, renter, status=BookingStatus.PRE_CHECKING)
    convo_id = await open_conversation(db, renter, paid)
    socket = FakeWebSocket()
    await manager.connect(convo_id, socket)
    assert socket.accepted
    assert feed.subscriber_count("chat_messages") == 1

    message = await ChatService(db).send_message(renter, convo_id, "Cheguei!")
    await manager.send(socket, message.model_dump(mode="json"))

    assert len(socket.sent) == 1
    assert socket.sent[0]["text"] == "Cheguei!"
    assert socket.sent[0]["id"] == str(message.id)

    await manager.disconnect(convo_id, socket)
    assert feed.subscriber_count("chat_messages") == 0


@pytest.mark.asyncio
async def test_other_rooms_do_not_receive_messages(db, listing, renter, monkeypatch):
    feed = ChangeFeed()
    monkeypatch.setattr("services.chat_service.change_feed", feed)
    manager = ConnectionManager(feed=feed)

    first = await make_booking(
        db, listing, renter, "2024-06-01", "2024-06-05", BookingStatus.PRE_CHECKING
    )
    second = await make_booking(
        db, listing, renter, "2024-07-01", "2024-07-05", BookingStatus.PRE_CHECKING
    )
    first_convo = await open_conversation(db, renter, first)
    second_convo = await open_conversation(db, renter, second)

    listener = FakeWebSocket()
    await manager.connect(second_convo, listener)
    await ChatService(db).send_message(renter, first_convo, "Só para a primeira")

    assert listener.sent == []
