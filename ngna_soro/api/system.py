"""
Loan engine wiring and FastAPI dependencies
"""

from typing import Optional
from fastapi import HTTPException

from ..config import NgnaSoroConfig, get_config
from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..cache import InMemoryCache
from ..notifications import NotificationEngine, NotificationChannel, LogChannelProvider
from ..loans import LoanRepository, ScheduleService
from ..delinquency import DelinquencyProcessor, LateFeePolicy
from ..reminders import PaymentReminderService
from ..exceptions import LoanNotFoundError, TransientPersistenceError


class LoanSystem:
    """Loan engine with all components initialized"""

    def __init__(self, config: Optional[NgnaSoroConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)

        self.audit_trail = AuditTrail(self.storage)
        self.cache = InMemoryCache(default_ttl_seconds=self.config.cache_ttl_seconds)
        self.repository = LoanRepository(self.storage)

        self.notification_engine = NotificationEngine(
            self.storage, self.audit_trail,
            webhook_url=self.config.notification_webhook_url,
            webhook_timeout=self.config.notification_timeout
        )
        if not self.config.notification_webhook_url:
            # Mirror in-app messages to the log until a push gateway is configured
            self.notification_engine.register_provider(NotificationChannel.LOG, LogChannelProvider())

        self.schedule_service = ScheduleService(self.repository, self.audit_trail, self.cache)
        self.delinquency_processor = DelinquencyProcessor(
            self.repository,
            self.notification_engine,
            self.audit_trail,
            policy=LateFeePolicy(
                grace_period_days=self.config.grace_period_days,
                tier1_last_day=self.config.late_fee_tier1_days,
                tier1_rate=self.config.late_fee_tier1_rate,
                tier2_rate=self.config.late_fee_tier2_rate
            ),
            notification_threshold_days=self.config.notification_threshold_days,
            severe_delinquency_days=self.config.severe_delinquency_days,
            currency_label=self.config.currency_label,
            cache=self.cache
        )
        self.reminder_service = PaymentReminderService(
            self.repository,
            self.notification_engine,
            self.audit_trail,
            reminder_days_before=self.config.reminder_days_before,
            currency_label=self.config.currency_label
        )


_loan_system: Optional[LoanSystem] = None


def get_loan_system() -> LoanSystem:
    """FastAPI dependency returning the process-wide loan system"""
    global _loan_system
    if _loan_system is None:
        _loan_system = LoanSystem()
    return _loan_system


def to_http_exception(error: Exception) -> HTTPException:
    """Map engine errors onto HTTP status codes"""
    if isinstance(error, LoanNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransientPersistenceError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
