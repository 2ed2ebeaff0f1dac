# app/services/notification_service.py
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.notification_model import Notification
from app.models.user_model import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    user_id: int
    title: str
    message: str
    type: str


class Notifier:
    """
    Best-effort notification sink.

    Services queue payloads while the business transaction is open; the router
    calls `flush()` only after that transaction committed. A failing dispatch
    is logged and dropped, never rolled back into the financial mutation.
    """

    def __init__(self, db: Session):
        self.db = db
        self.outbox: List[NotificationPayload] = []

    def notify(self, user_id: Optional[int], title: str, message: str, type: str) -> None:
        if user_id is None:
            logger.info("No recipient for notification %r, skipped", title)
            return
        self.outbox.append(NotificationPayload(user_id, title, message, type))

    def notify_role(self, role: UserRole, title: str, message: str, type: str,
                    exclude_user_ids: Iterable[int] = ()) -> None:
        """Address the first user holding `role` who is not in `exclude_user_ids`."""
        q = self.db.query(User.user_id).filter(User.role == role.value)
        excluded = set(exclude_user_ids)
        if excluded:
            q = q.filter(User.user_id.notin_(excluded))
        row = q.order_by(User.user_id.asc()).first()
        self.notify(row.user_id if row else None, title, message, type)

    def notify_all_of_role(self, role: UserRole, title: str, message: str, type: str) -> None:
        for (user_id,) in self.db.query(User.user_id).filter(User.role == role.value).all():
            self.notify(user_id, title, message, type)

    def notify_member(self, member_id: int, title: str, message: str, type: str) -> None:
        row = self.db.query(User.user_id).filter(User.member_id == member_id).first()
        self.notify(row.user_id if row else None, title, message, type)

    def flush(self) -> int:
        sent = 0
        pending, self.outbox = self.outbox, []
        for payload in pending:
            try:
                self.db.add(
                    Notification(
                        user_id=payload.user_id,
                        title=payload.title,
                        message=payload.message,
                        notification_type=payload.type,
                    )
                )
                self.db.commit()
                sent += 1
                logger.info("Notification sent to user %s: %s", payload.user_id, payload.title)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Error sending notification to user %s", payload.user_id)
        return sent
