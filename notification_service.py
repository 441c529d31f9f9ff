"""
Notification Service
Fans domain events out to the user channels held by ws_manager.

Called from FastAPI background tasks after the database commit, so a push
failure can never undo a ledger or messaging write. Failures are logged
and swallowed here, nowhere else.
"""

import logging
from typing import Any, Dict, Optional

from ws_manager import ConnectionManager, manager as default_manager

log = logging.getLogger(__name__)


class NotificationService:
    """Realtime event emission for wallet and messaging events"""

    @staticmethod
    async def _emit(user_id: int, event: str, data: Dict[str, Any], manager: Optional[ConnectionManager] = None) -> int:
        manager = manager or default_manager
        try:
            delivered = await manager.send_to_user(user_id, event, data)
        except Exception as e:
            log.error(f"Failed to emit {event} to user {user_id}: {e}")
            return 0
        log.debug(f"{event} delivered to {delivered} socket(s) for user {user_id}")
        return delivered

    @staticmethod
    async def wallet_updated(
        user_id: int,
        balance: float,
        transaction: Optional[Dict[str, Any]],
        update_type: str,
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        """update_type is deposit, withdrawal, transfer_out or transfer_in."""
        return await NotificationService._emit(
            user_id,
            "wallet_updated",
            {"balance": balance, "transaction": transaction, "type": update_type},
            manager,
        )

    @staticmethod
    async def payment_result(
        user_id: int,
        success: bool,
        data: Dict[str, Any],
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        event = "payment_success" if success else "payment_failed"
        return await NotificationService._emit(user_id, event, data, manager)

    @staticmethod
    async def message_received(
        recipient_id: int,
        conversation_id: int,
        message: Dict[str, Any],
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        return await NotificationService._emit(
            recipient_id,
            "message_received",
            {"conversationId": conversation_id, "message": message},
            manager,
        )

    @staticmethod
    async def conversation_read(
        counterpart_id: int,
        conversation_id: int,
        reader_id: int,
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        return await NotificationService._emit(
            counterpart_id,
            "conversation_read",
            {"conversationId": conversation_id, "readerId": reader_id},
            manager,
        )

    @staticmethod
    async def message_delivered(
        sender_id: int,
        conversation_id: int,
        message_id: int,
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        return await NotificationService._emit(
            sender_id,
            "message_delivered",
            {"conversationId": conversation_id, "messageId": message_id},
            manager,
        )

    @staticmethod
    async def typing(
        recipient_id: int,
        conversation_id: int,
        user_id: int,
        user_name: str,
        started: bool,
        manager: Optional[ConnectionManager] = None,
    ) -> int:
        """Relay a typing indicator to the other participant."""
        if started:
            event = "user_typing"
            data = {"conversationId": conversation_id, "userId": user_id, "userName": user_name}
        else:
            event = "user_stopped_typing"
            data = {"conversationId": conversation_id, "userId": user_id}
        return await NotificationService._emit(recipient_id, event, data, manager)
