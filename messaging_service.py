"""
Messaging Service
=================

Two-party conversations between a business owner and one of their
customers.

- at most one conversation per (business owner, customer) pair
- messages are ordered by insertion within a conversation
- each party owns its own unread counter and read receipts
- messages are never hard-deleted, only tombstoned by their sender
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import settings
from models import (
    CONVERSATION_PRIORITIES, CONVERSATION_STATUSES, Conversation, Message,
    MessageReadReceipt, User, utcnow,
)
from service_result import ErrorKind, ServiceResult

log = logging.getLogger(__name__)


def _unread_column(side: str):
    return Conversation.unread_business_owner if side == "business_owner" else Conversation.unread_customer


class MessagingService:

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    @staticmethod
    async def get_conversation_for_pair(
        db: AsyncSession, business_owner_id: int, customer_id: int
    ) -> Optional[Conversation]:
        result = await db.execute(
            select(Conversation).where(
                and_(
                    Conversation.business_owner_id == business_owner_id,
                    Conversation.customer_id == customer_id,
                )
            )
        )
        return result.scalars().first()

    @staticmethod
    async def find_or_create_conversation(
        db: AsyncSession,
        business_owner_id: int,
        customer_id: int,
        display_info: Optional[Dict] = None,
    ) -> ServiceResult:
        """
        Return (conversation, is_new) for the pair, creating it if absent.

        display_info may carry name, email and phone for the customer; they
        default to the customer's profile and are not re-synced later.
        """
        if business_owner_id == customer_id:
            return ServiceResult.fail(ErrorKind.INVALID_RECIPIENT, "Cannot start a conversation with yourself")

        existing = await MessagingService.get_conversation_for_pair(db, business_owner_id, customer_id)
        if existing:
            return ServiceResult.success((existing, False))

        owner = await db.get(User, business_owner_id)
        customer = await db.get(User, customer_id)
        if owner is None or customer is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")

        info = display_info or {}
        conversation = Conversation(
            business_owner_id=business_owner_id,
            customer_id=customer_id,
            business_owner_name=owner.full_name,
            customer_name=info.get("name") or customer.full_name,
            customer_email=info.get("email") or customer.email,
            customer_phone=info.get("phone") or customer.phone,
            unread_business_owner=0,
            unread_customer=0,
            status="active",
            priority="normal",
            tags=[],
        )
        db.add(conversation)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent creation for the same pair won the unique constraint
            await db.rollback()
            existing = await MessagingService.get_conversation_for_pair(db, business_owner_id, customer_id)
            return ServiceResult.success((existing, False))

        await db.refresh(conversation)
        log.info(f"Conversation {conversation.id} created: owner {business_owner_id} / customer {customer_id}")
        return ServiceResult.success((conversation, True))

    @staticmethod
    async def get_conversation(db: AsyncSession, conversation_id: int, user_id: int) -> ServiceResult:
        conversation = await db.get(Conversation, conversation_id)
        if conversation is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Conversation not found")
        if conversation.side_of(user_id) is None:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Not a participant of this conversation")
        return ServiceResult.success(conversation)

    @staticmethod
    async def list_conversations(db: AsyncSession, user_id: int, include_archived: bool = False) -> List[Dict]:
        """Conversations the user takes part in, most recently active first."""
        conditions = [or_(Conversation.business_owner_id == user_id, Conversation.customer_id == user_id)]
        if not include_archived:
            conditions.append(Conversation.status != "archived")

        result = await db.execute(
            select(Conversation)
            .where(and_(*conditions))
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .limit(settings.CONVERSATION_LIST_LIMIT)
            .execution_options(populate_existing=True)
        )

        summaries = []
        for conv in result.scalars().all():
            is_owner = conv.side_of(user_id) == "business_owner"
            summaries.append({
                "id": conv.id,
                "counterpartId": conv.counterpart_of(user_id),
                "counterpartName": conv.customer_name if is_owner else conv.business_owner_name,
                "email": conv.customer_email if is_owner else None,
                "phone": conv.customer_phone if is_owner else None,
                "lastMessage": conv.last_message_content or "",
                "lastMessageTime": conv.last_message_at,
                "unreadCount": conv.unread_for(user_id),
                "status": conv.status,
                "priority": conv.priority,
                "tags": conv.tags or [],
            })
        return summaries

    @staticmethod
    async def list_customers(db: AsyncSession, business_owner_id: int) -> ServiceResult:
        """Active customers invited by the owner, flagged with their open conversation if any."""
        owner = await db.get(User, business_owner_id)
        if owner is None or owner.role != "business_owner":
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Only business owners have customers")

        customers = await crud.get_customers_of(db, business_owner_id)
        result = await db.execute(
            select(Conversation)
            .where(and_(Conversation.business_owner_id == business_owner_id, Conversation.status == "active"))
            .execution_options(populate_existing=True)
        )
        by_customer = {conv.customer_id: conv for conv in result.scalars().all()}

        listing = []
        for customer in customers:
            conv = by_customer.get(customer.id)
            listing.append({
                "id": customer.id,
                "name": customer.full_name,
                "email": customer.email,
                "phone": customer.phone,
                "joinedDate": customer.created_at,
                "hasConversation": conv is not None,
                "conversationId": conv.id if conv else None,
                "unreadCount": conv.unread_business_owner if conv else 0,
            })
        return ServiceResult.success(listing)

    @staticmethod
    async def update_conversation(
        db: AsyncSession,
        conversation_id: int,
        user_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        tags: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> ServiceResult:
        """Business-owner housekeeping: archive/block, priority, tags, notes."""
        conversation = await db.get(Conversation, conversation_id)
        if conversation is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Conversation not found")
        if conversation.side_of(user_id) != "business_owner":
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Only the business owner can update this conversation")

        if status is not None and status not in CONVERSATION_STATUSES:
            return ServiceResult.fail(ErrorKind.INVALID_STATUS_TRANSITION, f"Unknown conversation status {status}")
        if priority is not None and priority not in CONVERSATION_PRIORITIES:
            return ServiceResult.fail(ErrorKind.INVALID_STATUS_TRANSITION, f"Unknown priority {priority}")

        if status is not None:
            conversation.status = status
        if priority is not None:
            conversation.priority = priority
        if tags is not None:
            conversation.tags = sorted({t.strip() for t in tags if t and t.strip()})
        if notes is not None:
            conversation.notes = notes

        await db.commit()
        await db.refresh(conversation)
        log.info(f"Conversation {conversation_id} updated by owner {user_id}")
        return ServiceResult.success(conversation)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    @staticmethod
    async def send_message(
        db: AsyncSession,
        conversation_id: int,
        sender_id: int,
        content: str,
        attachments: Optional[List[Dict]] = None,
        sender_kind: Optional[str] = None,
    ) -> ServiceResult:
        """
        Append a message and bump the counterpart's unread counter.

        Returns the stored Message with status 'sent'.
        """
        content = (content or "").strip()
        if not content:
            return ServiceResult.fail(ErrorKind.EMPTY_CONTENT, "Message content cannot be empty")
        if len(content) > settings.MESSAGE_MAX_LENGTH:
            return ServiceResult.fail(
                ErrorKind.CONTENT_TOO_LONG,
                f"Message content cannot exceed {settings.MESSAGE_MAX_LENGTH} characters",
            )

        conversation = await db.get(Conversation, conversation_id)
        if conversation is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Conversation not found")

        side = conversation.side_of(sender_id)
        if side is None:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Not a participant of this conversation")
        if sender_kind is not None and sender_kind != side:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Sender kind does not match participant")
        if conversation.status == "blocked":
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Conversation is blocked")

        sender = await db.get(User, sender_id)
        now = utcnow()
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_kind=side,
            sender_name=sender.full_name if sender else "Unknown",
            sender_role=sender.role if sender else side,
            content=content,
            attachments=attachments or [],
            status="sent",
            is_deleted=False,
            created_at=now,
            read_by=[],
        )
        db.add(message)

        # Counterpart's counter only; the sender's own counter is untouched
        counterpart_side = "customer" if side == "business_owner" else "business_owner"
        counter = _unread_column(counterpart_side)
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values({
                counter: counter + 1,
                Conversation.last_message_content: content,
                Conversation.last_message_sender_id: sender_id,
                Conversation.last_message_at: now,
                Conversation.updated_at: now,
                # A new message re-opens an archived conversation
                Conversation.status: case(
                    (Conversation.status == "archived", "active"),
                    else_=Conversation.status,
                ),
            })
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(conversation)
        log.info(f"Message {message.id} sent in conversation {conversation_id} by user {sender_id}")
        return ServiceResult.success(message)

    @staticmethod
    async def get_messages(
        db: AsyncSession, conversation_id: int, requester_id: int, mark_read: bool = True
    ) -> ServiceResult:
        """Non-deleted messages in insertion order; marks them read for the requester."""
        found = await MessagingService.get_conversation(db, conversation_id, requester_id)
        if not found.ok:
            return found

        if mark_read:
            await MessagingService.mark_conversation_read(db, conversation_id, requester_id)

        result = await db.execute(
            select(Message)
            .where(and_(Message.conversation_id == conversation_id, Message.is_deleted.is_(False)))
            .order_by(Message.id.desc())
            .limit(settings.MESSAGE_FETCH_LIMIT)
            .execution_options(populate_existing=True)
        )
        messages = list(reversed(result.scalars().all()))
        return ServiceResult.success(messages)

    @staticmethod
    async def mark_conversation_read(db: AsyncSession, conversation_id: int, reader_id: int) -> ServiceResult:
        """
        Add a receipt from reader_id to every unread counterpart message and
        zero the reader's unread counter. Returns the number of messages marked.
        """
        found = await MessagingService.get_conversation(db, conversation_id, reader_id)
        if not found.ok:
            return found
        side = found.value.side_of(reader_id)

        marked = 0
        for attempt in range(2):
            result = await db.execute(
                select(Message).where(
                    and_(
                        Message.conversation_id == conversation_id,
                        Message.sender_id != reader_id,
                        Message.is_deleted.is_(False),
                        ~Message.read_by.any(MessageReadReceipt.reader_id == reader_id),
                    )
                )
            )
            unread = result.scalars().all()
            now = utcnow()
            for message in unread:
                message.read_by.append(MessageReadReceipt(reader_id=reader_id, read_at=now))
                message.status = "read"

            await db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values({_unread_column(side): 0})
                .execution_options(synchronize_session=False)
            )
            try:
                await db.commit()
            except IntegrityError:
                # A concurrent reader wrote some of the same receipts
                await db.rollback()
                if attempt:
                    # The other reader's commit already holds these receipts
                    log.warning(f"Mark-read for user {reader_id} in conversation {conversation_id} lost twice")
                continue
            marked = len(unread)
            break

        await db.refresh(found.value)

        if marked:
            log.info(f"User {reader_id} read {marked} message(s) in conversation {conversation_id}")
        return ServiceResult.success(marked)

    @staticmethod
    async def mark_message_read(db: AsyncSession, message_id: int, reader_id: int) -> ServiceResult:
        """
        Add a single read receipt. Returns True if a receipt was added.

        Senders cannot read their own messages and repeat reads are no-ops;
        both succeed with False.
        """
        message = await db.get(Message, message_id, populate_existing=True)
        if message is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Message not found")
        conversation = await db.get(Conversation, message.conversation_id)
        side = conversation.side_of(reader_id)
        if side is None:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Not a participant of this conversation")

        if message.sender_id == reader_id:
            return ServiceResult.success(False)
        if any(receipt.reader_id == reader_id for receipt in message.read_by):
            return ServiceResult.success(False)

        message.read_by.append(MessageReadReceipt(reader_id=reader_id, read_at=utcnow()))
        message.status = "read"
        counter = _unread_column(side)
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation.id)
            .values({counter: case((counter > 0, counter - 1), else_=0)})
            .execution_options(synchronize_session=False)
        )
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            return ServiceResult.success(False)

        await db.refresh(conversation)
        log.debug(f"Message {message_id} read by user {reader_id}")
        return ServiceResult.success(True)

    @staticmethod
    async def mark_delivered(db: AsyncSession, message_id: int, recipient_id: int) -> ServiceResult:
        """
        Transport acknowledgement from the recipient's client.

        Only moves 'sent' to 'delivered'; returns True if the status changed.
        """
        message = await db.get(Message, message_id)
        if message is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Message not found")
        conversation = await db.get(Conversation, message.conversation_id)
        if conversation.side_of(recipient_id) is None:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Not a participant of this conversation")
        if message.sender_id == recipient_id:
            return ServiceResult.success(False)

        result = await db.execute(
            update(Message)
            .where(and_(Message.id == message_id, Message.status == "sent"))
            .values(status="delivered")
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(message)
        return ServiceResult.success(result.rowcount == 1)

    @staticmethod
    async def delete_message(db: AsyncSession, message_id: int, user_id: int) -> ServiceResult:
        """Tombstone a message. Only its sender may do this."""
        message = await db.get(Message, message_id)
        if message is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Message not found")
        if message.sender_id != user_id:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, "Only the sender can delete a message")

        if not message.is_deleted:
            message.is_deleted = True
            message.deleted_at = utcnow()
            await db.commit()
            log.info(f"Message {message_id} deleted by user {user_id}")
        return ServiceResult.success(message)
