"""
Notification Engine Module

Delivers client-facing overdue alerts and payment reminders through in-app
storage, an optional webhook or the log.
Each message may carry a dedupe key so a re-run job never emits it twice.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
from abc import ABC, abstractmethod
import uuid

import requests

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType, AuditSeverity
from .exceptions import NotificationDeliveryError
from .logging_config import get_logger


class NotificationChannel(Enum):
    """Available notification channels"""
    IN_APP = "in_app"
    WEBHOOK = "webhook"
    LOG = "log"


class NotificationPriority(Enum):
    """Notification priority levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationType(Enum):
    """Types of notifications"""
    PAYMENT_OVERDUE = "payment_overdue"
    LOAN_PAYMENT_REMINDER = "loan_payment_reminder"


class NotificationStatus(Enum):
    """Status of notifications"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class Notification(StorageRecord):
    """Individual notification instance"""
    notification_type: NotificationType
    priority: NotificationPriority
    recipient_id: str
    title: str
    message: str
    action_link: Optional[str] = None
    dedupe_key: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    channels_sent: List[str] = field(default_factory=list)
    sent_at: Optional[datetime] = None
    failed_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['notification_type'] = self.notification_type.value
        result['priority'] = self.priority.value
        result['status'] = self.status.value
        result['sent_at'] = self.sent_at.isoformat() if self.sent_at else None
        return result


class ChannelProvider(ABC):
    """Abstract base class for notification channel providers"""

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Send notification via this channel. Returns True if successful."""
        pass


class LogChannelProvider(ChannelProvider):
    """Logs notifications instead of delivering them"""

    def __init__(self, logger=None):
        self.logger = logger or get_logger("ngna_soro.notifications")

    def send(self, notification: Notification) -> bool:
        self.logger.info(
            f"Notification to {notification.recipient_id}: "
            f"{notification.title} | {notification.message[:100]}"
        )
        return True


class InAppChannelProvider(ChannelProvider):
    """In-app notification provider using storage"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table = "in_app_notifications"

    def send(self, notification: Notification) -> bool:
        """Store notification for display in the client's notification center"""
        now = datetime.now(timezone.utc).isoformat()
        in_app_data = {
            "id": str(uuid.uuid4()),
            "created_at": now,
            "updated_at": now,
            "notification_id": notification.id,
            "recipient_id": notification.recipient_id,
            "type": notification.notification_type.value,
            "priority": notification.priority.value,
            "title": notification.title,
            "message": notification.message,
            "action_link": notification.action_link,
            "read": False
        }
        self.storage.save(self.table, in_app_data["id"], in_app_data)
        return True

    def list_for_recipient(self, recipient_id: str) -> List[Dict[str, Any]]:
        """In-app notifications for one recipient, oldest first"""
        items = self.storage.find(self.table, {"recipient_id": recipient_id})
        items.sort(key=lambda x: x["created_at"])
        return items


class WebhookChannelProvider(ChannelProvider):
    """Webhook channel provider for push/SMS gateways"""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def send(self, notification: Notification) -> bool:
        """Send notification via webhook POST"""
        payload = {
            "notification_id": notification.id,
            "type": notification.notification_type.value,
            "priority": notification.priority.value,
            "recipient_id": notification.recipient_id,
            "title": notification.title,
            "message": notification.message,
            "action_link": notification.action_link,
            "timestamp": notification.created_at.isoformat()
        }
        response = requests.post(
            self.url,
            json=payload,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"}
        )
        return 200 <= response.status_code < 300


class NotificationEngine:
    """Sends notifications through the registered channel providers"""

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None,
                 webhook_url: Optional[str] = None, webhook_timeout: float = 10.0):
        self.storage = storage
        self.audit = audit_trail or AuditTrail(storage)
        self.logger = get_logger("ngna_soro.notifications")

        self.notifications_table = "notifications"
        self.dedupe_table = "notification_keys"

        self.providers: Dict[NotificationChannel, ChannelProvider] = {
            NotificationChannel.IN_APP: InAppChannelProvider(storage)
        }
        if webhook_url:
            self.providers[NotificationChannel.WEBHOOK] = WebhookChannelProvider(webhook_url, webhook_timeout)

    def register_provider(self, channel: NotificationChannel, provider: ChannelProvider):
        """Register or replace a channel provider"""
        self.providers[channel] = provider

    def unregister_provider(self, channel: NotificationChannel) -> None:
        self.providers.pop(channel, None)

    def already_sent(self, dedupe_key: str) -> bool:
        """Check whether a notification with this key was delivered before"""
        return self.storage.load(self.dedupe_table, dedupe_key) is not None

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        action_link: Optional[str] = None,
        notification_type: NotificationType = NotificationType.PAYMENT_OVERDUE,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        dedupe_key: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Send a notification to a user on every registered channel.

        Delivery succeeds when at least one channel accepts the message.

        Args:
            user_id: Recipient user ID
            title: Short title
            message: Message body
            action_link: In-app route the notification points to
            notification_type: Kind of notification
            priority: Delivery priority
            dedupe_key: Key that must be delivered at most once
            metadata: Extra data stored with the notification record

        Returns:
            The notification ID, or None when the dedupe key was already sent

        Raises:
            NotificationDeliveryError: if no channel delivered the message
        """
        if dedupe_key and self.already_sent(dedupe_key):
            self.logger.debug(f"Skipping duplicate notification {dedupe_key}")
            return None

        now = datetime.now(timezone.utc)
        notification = Notification(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            notification_type=notification_type,
            priority=priority,
            recipient_id=user_id,
            title=title,
            message=message,
            action_link=action_link,
            dedupe_key=dedupe_key,
            metadata=metadata or {}
        )

        errors = []
        for channel, provider in self.providers.items():
            try:
                if provider.send(notification):
                    notification.channels_sent.append(channel.value)
                else:
                    errors.append(f"{channel.value}: provider send failed")
            except Exception as e:
                errors.append(f"{channel.value}: {e}")

        if notification.channels_sent:
            notification.status = NotificationStatus.SENT
            notification.sent_at = now
        else:
            notification.status = NotificationStatus.FAILED
            notification.failed_reason = "; ".join(errors) or "No channel provider registered"

        self.storage.save(self.notifications_table, notification.id, notification.to_dict())

        if notification.status == NotificationStatus.FAILED:
            self.audit.log_event(
                AuditEventType.NOTIFICATION_FAILED,
                "notification",
                notification.id,
                {"recipient_id": user_id, "type": notification_type.value,
                 "reason": notification.failed_reason},
                "system",
                AuditSeverity.WARNING
            )
            raise NotificationDeliveryError(
                f"Notification to {user_id} failed: {notification.failed_reason}"
            )

        if dedupe_key:
            self.storage.save(self.dedupe_table, dedupe_key, {
                "id": dedupe_key,
                "notification_id": notification.id,
                "created_at": now.isoformat()
            })

        self.audit.log_event(
            AuditEventType.NOTIFICATION_SENT,
            "notification",
            notification.id,
            {"recipient_id": user_id, "type": notification_type.value,
             "channels": notification.channels_sent, "dedupe_key": dedupe_key},
            "system"
        )
        return notification.id

    def get_notifications(self, recipient_id: str) -> List[Dict[str, Any]]:
        """Stored notification records for a recipient, oldest first"""
        records = self.storage.find(self.notifications_table, {"recipient_id": recipient_id})
        records.sort(key=lambda x: x["created_at"])
        return records
