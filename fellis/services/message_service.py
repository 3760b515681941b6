"""
Message Service

Direct messages between two users, presented as one thread per
conversation partner.
"""

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.exceptions import UserNotFoundError, ValidationError
from fellis.models.message import Message
from fellis.models.user import User
from fellis.schemas.social import MessageResponse, ThreadResponse

logger = logging.getLogger(__name__)


class MessageService:
    """Service for direct messages."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_threads(self, user_id: int) -> list[ThreadResponse]:
        """
        Every conversation the user takes part in.

        Messages inside a thread are oldest first; threads are ordered by
        their latest message, newest first. ``unread`` counts the partner's
        messages the user has not read.
        """
        result = await self.db.execute(
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at, Message.id)
        )
        messages = result.scalars().all()
        if not messages:
            return []

        by_partner: dict[int, list[Message]] = {}
        for message in messages:
            partner_id = message.receiver_id if message.sender_id == user_id else message.sender_id
            by_partner.setdefault(partner_id, []).append(message)

        result = await self.db.execute(
            select(User.id, User.name).where(User.id.in_(set(by_partner) | {user_id}))
        )
        names = dict(result.all())

        threads = [
            ThreadResponse(
                friend_id=partner_id,
                friend=names.get(partner_id, ""),
                messages=[self._message_response(m, names.get(m.sender_id, "")) for m in thread],
                unread=sum(1 for m in thread if m.sender_id == partner_id and not m.is_read),
            )
            for partner_id, thread in by_partner.items()
        ]
        threads.sort(key=lambda t: (t.messages[-1].created_at, t.messages[-1].id), reverse=True)
        return threads

    async def send_message(self, sender: User, receiver_id: int, text: str) -> MessageResponse:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text required", field="text")
        if receiver_id == sender.id:
            raise ValidationError("You cannot send a message to yourself", field="receiver_id")
        if await self.db.get(User, receiver_id) is None:
            raise UserNotFoundError(receiver_id)

        message = Message(sender_id=sender.id, receiver_id=receiver_id, text=text)
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)

        logger.info(f"Message sent: id={message.id}, from={sender.id}, to={receiver_id}")
        return self._message_response(message, sender.name)

    async def mark_thread_read(self, user_id: int, partner_id: int) -> int:
        """Mark every message from partner_id to the user as read. Returns how many changed."""
        result = await self.db.execute(
            update(Message)
            .where(
                Message.sender_id == partner_id,
                Message.receiver_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    @staticmethod
    def _message_response(message: Message, sender: str) -> MessageResponse:
        return MessageResponse(
            id=message.id,
            sender_id=message.sender_id,
            sender=sender,
            text=message.text,
            created_at=message.created_at,
        )
