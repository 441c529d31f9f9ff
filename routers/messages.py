"""Messaging API routes: conversations between a business owner and a customer."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

import schemas
from deps import CurrentUserDep, SessionDep, get_current_user
from messaging_service import MessagingService
from notification_service import NotificationService
from service_result import ErrorKind, unwrap


router = APIRouter(
    prefix="/api/v1/messages",
    tags=["messages"],
    dependencies=[Depends(get_current_user)]
)


@router.get("/conversations", response_model=List[schemas.ConversationSummary])
async def list_conversations(current_user: CurrentUserDep, db_session: SessionDep, include_archived: bool = False):
    return await MessagingService.list_conversations(db_session, current_user.id, include_archived)


@router.get("/customers", response_model=List[schemas.CustomerSummary])
async def list_customers(current_user: CurrentUserDep, db_session: SessionDep):
    """Business owners only: invited customers and whether a chat is open with each."""
    return unwrap(await MessagingService.list_customers(db_session, current_user.id))


@router.post("/conversations", response_model=schemas.ConversationCreated)
async def find_or_create_conversation(
    payload: schemas.ConversationCreate,
    current_user: CurrentUserDep,
    db_session: SessionDep,
):
    """
    Open the conversation for a business owner / customer pair.

    Business owners name the customer; customers talk to the business owner
    that invited them unless one is given. Calling again returns the same
    conversation with isNew false.
    """
    if current_user.role == "customer":
        business_owner_id = payload.business_owner_id or current_user.invited_by_id
        customer_id = current_user.id
    else:
        business_owner_id = current_user.id
        customer_id = payload.customer_id

    if business_owner_id is None or customer_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": ErrorKind.MISSING_RECIPIENT.value, "message": "Conversation counterpart required"},
        )

    display_info = {
        "name": payload.customer_name,
        "email": payload.customer_email,
        "phone": payload.customer_phone,
    } if current_user.role != "customer" else None

    conversation, is_new = unwrap(await MessagingService.find_or_create_conversation(
        db_session, business_owner_id, customer_id, display_info
    ))
    is_owner = conversation.side_of(current_user.id) == "business_owner"
    return {
        "id": conversation.id,
        "name": conversation.customer_name if is_owner else conversation.business_owner_name,
        "email": conversation.customer_email if is_owner else None,
        "phone": conversation.customer_phone if is_owner else None,
        "isNew": is_new,
    }


@router.get("/conversations/{conversation_id}", response_model=List[schemas.Message])
async def get_messages(
    conversation_id: int,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    background_tasks: BackgroundTasks,
):
    """Ordered messages; fetching them marks the counterpart's messages read."""
    marked = unwrap(await MessagingService.mark_conversation_read(db_session, conversation_id, current_user.id))
    messages = unwrap(await MessagingService.get_messages(
        db_session, conversation_id, current_user.id, mark_read=False
    ))
    if marked:
        conversation = unwrap(await MessagingService.get_conversation(db_session, conversation_id, current_user.id))
        background_tasks.add_task(
            NotificationService.conversation_read,
            conversation.counterpart_of(current_user.id), conversation_id, current_user.id,
        )
    return messages


@router.patch("/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: int,
    payload: schemas.ConversationUpdate,
    current_user: CurrentUserDep,
    db_session: SessionDep,
):
    conversation = unwrap(await MessagingService.update_conversation(
        db_session,
        conversation_id,
        current_user.id,
        status=payload.status,
        priority=payload.priority,
        tags=payload.tags,
        notes=payload.notes,
    ))
    return {
        "id": conversation.id,
        "status": conversation.status,
        "priority": conversation.priority,
        "tags": conversation.tags or [],
        "notes": conversation.notes,
    }


@router.post("/conversations/{conversation_id}/read", response_model=schemas.MarkReadResponse)
async def mark_conversation_read(
    conversation_id: int,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    background_tasks: BackgroundTasks,
):
    marked = unwrap(await MessagingService.mark_conversation_read(db_session, conversation_id, current_user.id))
    if marked:
        conversation = unwrap(await MessagingService.get_conversation(db_session, conversation_id, current_user.id))
        background_tasks.add_task(
            NotificationService.conversation_read,
            conversation.counterpart_of(current_user.id), conversation_id, current_user.id,
        )
    return {"success": True, "marked": marked}


@router.post("/send", response_model=schemas.Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: schemas.SendMessageRequest,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    background_tasks: BackgroundTasks,
):
    message = unwrap(await MessagingService.send_message(
        db_session,
        payload.conversation_id,
        current_user.id,
        payload.content,
        attachments=[a.model_dump() for a in payload.attachments],
    ))
    conversation = unwrap(await MessagingService.get_conversation(db_session, payload.conversation_id, current_user.id))
    background_tasks.add_task(
        NotificationService.message_received,
        conversation.counterpart_of(current_user.id),
        conversation.id,
        schemas.Message.model_validate(message).model_dump(mode="json"),
    )
    return message


@router.post("/{message_id}/read", response_model=schemas.MarkReadResponse)
async def mark_message_read(message_id: int, current_user: CurrentUserDep, db_session: SessionDep):
    added = unwrap(await MessagingService.mark_message_read(db_session, message_id, current_user.id))
    return {"success": True, "marked": 1 if added else 0}


@router.delete("/{message_id}")
async def delete_message(message_id: int, current_user: CurrentUserDep, db_session: SessionDep):
    unwrap(await MessagingService.delete_message(db_session, message_id, current_user.id))
    return {"message": "Message deleted"}
