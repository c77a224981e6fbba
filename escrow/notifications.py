"""
Per-user notification inbox.

Notifications are written by other components inside their own unit of work,
so a notice exists exactly when the change it announces was committed.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update

from .errors import NotFoundError, ValidationError
from .models import Caller, MarkNotificationsRequest, Notification, NotificationsResponse
from .store import LedgerStore
from .tables import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationInbox:
    def __init__(self, store: LedgerStore):
        self.store = store

    @staticmethod
    def notify(session, user_id: UUID, message: str, href: Optional[str] = None) -> NotificationRecord:
        notification = NotificationRecord(user_id=user_id, message=message, href=href, is_read=False)
        session.add(notification)
        return notification

    def list_notifications(self, caller: Caller) -> NotificationsResponse:
        with self.store.transaction() as session:
            stmt = (
                select(NotificationRecord)
                .where(NotificationRecord.user_id == caller.user_id)
                .order_by(NotificationRecord.created_at.desc())
            )
            notifications = [Notification.model_validate(n) for n in session.execute(stmt).scalars()]
            unread_count = session.execute(
                select(func.count()).select_from(NotificationRecord).where(
                    NotificationRecord.user_id == caller.user_id,
                    NotificationRecord.is_read.is_(False),
                )
            ).scalar_one()

        return NotificationsResponse(notifications=notifications, unread_count=unread_count)

    def mark_read(self, caller: Caller, request: MarkNotificationsRequest) -> int:
        """Mark one notification, or all of the caller's, as read. Returns the number changed."""
        if not request.mark_all and request.notification_id is None:
            raise ValidationError("Either notification_id or mark_all is required")

        criteria = [NotificationRecord.user_id == caller.user_id, NotificationRecord.is_read.is_(False)]
        with self.store.transaction() as session:
            if not request.mark_all:
                notification = session.get(NotificationRecord, request.notification_id)
                # Other users' notifications are reported as missing
                if not notification or notification.user_id != caller.user_id:
                    raise NotFoundError(f"Notification {request.notification_id} not found")
                criteria.append(NotificationRecord.id == notification.id)

            result = session.execute(
                update(NotificationRecord)
                .where(*criteria)
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )

        logger.debug("Marked %d notifications read for %s", result.rowcount, caller.user_id)
        return result.rowcount
