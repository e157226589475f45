"""
Payment attempts and their lifecycle.

    IDLE --(charge accepted)--> PENDING
    IDLE --(charge rejected)--> FAILED
    PENDING --(record completed)--> SUCCESS --(reset delay)--> IDLE
    PENDING --(record failed or poll task crashed)--> FAILED
    PENDING --(deadline)--> TIMED_OUT_FAILED | TIMED_OUT_UNKNOWN   (per profile)
    FAILED / TIMED_OUT_* --(retry)--> IDLE

An attempt lives in memory only; the store row it watches is never written
here. Each target (invoice, payment link, subscriber) has at most one attempt
initiating or PENDING at a time.
"""
import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from checkout.errors import AttemptConflictError, AttemptStateError, ChargeInitiationError
from checkout.gateways.base import BaseGateway, ChargeRequest
from checkout.services.normalizer import classify_record
from checkout.services.poller import (
    OUTCOME_COMPLETED,
    OUTCOME_FAILED,
    PollResult,
    poll_payment,
)
from checkout.services.store import PaymentStore

logger = logging.getLogger(__name__)


class AttemptStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT_FAILED = "timed_out_failed"
    TIMED_OUT_UNKNOWN = "timed_out_unknown"


RETRYABLE_STATUSES = (
    AttemptStatus.FAILED,
    AttemptStatus.TIMED_OUT_FAILED,
    AttemptStatus.TIMED_OUT_UNKNOWN,
)


class PaymentProfile:
    """Polling cadence and payer-facing messages for one kind of checkout."""

    def __init__(
        self,
        name: str,
        gateway_name: str,
        record_source: str,
        interval: float,
        deadline: float,
        timeout_status: AttemptStatus,
        initiated_message: str,
        success_message: str,
        failure_message: str,
        timeout_message: str,
    ):
        self.name = name
        self.gateway_name = gateway_name
        self.record_source = record_source
        self.interval = interval
        self.deadline = deadline
        self.timeout_status = timeout_status
        self.initiated_message = initiated_message
        self.success_message = success_message
        self.failure_message = failure_message
        self.timeout_message = timeout_message


PROFILES = {
    "invoice": PaymentProfile(
        name="invoice",
        gateway_name="mpesa_invoice",
        record_source="transactions",
        interval=3.0,
        deadline=120.0,
        timeout_status=AttemptStatus.TIMED_OUT_FAILED,
        initiated_message="Payment request sent! Please check your phone.",
        success_message="Payment received successfully!",
        failure_message="Payment failed. Please try again.",
        timeout_message="Payment timeout. Please try again.",
    ),
    "payment_link": PaymentProfile(
        name="payment_link",
        gateway_name="payment_link",
        record_source="transactions",
        interval=2.0,
        deadline=60.0,
        timeout_status=AttemptStatus.TIMED_OUT_UNKNOWN,
        initiated_message="Please check your phone and enter your M-PESA PIN to complete the payment.",
        success_message="Payment received. Thank you!",
        failure_message="Payment failed. Please try again.",
        timeout_message="Payment is still processing. Check back later.",
    ),
    "subscription": PaymentProfile(
        name="subscription",
        gateway_name="subscription",
        record_source="subscriptions",
        interval=3.0,
        deadline=120.0,
        timeout_status=AttemptStatus.TIMED_OUT_UNKNOWN,
        initiated_message="Check your phone for the M-PESA prompt to confirm your upgrade.",
        success_message="Your plan has been upgraded.",
        failure_message="Upgrade payment failed. Please try again.",
        timeout_message="We have not received confirmation yet. Your plan will update once the payment clears.",
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification:
    def __init__(self, level: str, title: str, message: str):
        self.level = level  # info / success / warning / error
        self.title = title
        self.message = message
        self.created_at = _utcnow()


class PaymentAttempt:
    def __init__(
        self,
        profile: PaymentProfile,
        target_id: str,
        phone_number: str,
        amount: float,
        target: Optional[Dict[str, Any]] = None,
    ):
        self.id = uuid.uuid4().hex
        self.profile = profile
        self.target_id = target_id
        self.target = target
        self.phone_number = phone_number
        self.amount = amount
        self.reference: Optional[str] = None
        self.status = AttemptStatus.IDLE
        self.receipt_number: Optional[str] = None
        self.poll_reads = 0
        self.notifications: List[Notification] = []
        self.created_at = _utcnow()
        self.finished_at: Optional[datetime] = None

    @property
    def target_key(self) -> str:
        return f"{self.profile.name}:{self.target_id}"

    @property
    def message(self) -> Optional[str]:
        return self.notifications[-1].message if self.notifications else None

    def notify(self, level: str, title: str, message: str):
        self.notifications.append(Notification(level, title, message))

    def record_read(self, reads: int):
        self.poll_reads = reads

    def enter_pending(self, reference: str, message: str):
        if self.status != AttemptStatus.IDLE:
            raise AttemptStateError(f"Cannot start polling from {self.status.value}")
        self.reference = reference
        self.status = AttemptStatus.PENDING
        self.notify("info", "Payment initiated", message)

    def reject(self, error: str):
        """Charge initiation failed; the attempt never enters PENDING."""
        self.status = AttemptStatus.FAILED
        self.finished_at = _utcnow()
        self.notify("error", "Payment failed", error)

    def finish(self, status: AttemptStatus, level: str, title: str, message: str) -> bool:
        """Terminal transition out of PENDING. First write wins; later calls are ignored."""
        if self.status != AttemptStatus.PENDING:
            return False
        self.status = status
        self.finished_at = _utcnow()
        self.notify(level, title, message)
        return True

    def reset(self):
        """Back to a clean IDLE state; the previous reference is discarded."""
        self.status = AttemptStatus.IDLE
        self.reference = None
        self.receipt_number = None
        self.poll_reads = 0
        self.notifications = []
        self.finished_at = None


RefreshHook = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


class AttemptRegistry:
    """
    Owns every in-memory payment attempt and the single poll task of each.

    The store and the gateways are injected; nothing here reaches for a
    module-level client. Attempts that left PENDING are kept for
    retention_seconds so clients can still read the outcome, then dropped
    on the next start().
    """

    def __init__(
        self,
        store: PaymentStore,
        gateways: Dict[str, BaseGateway],
        profiles: Optional[Dict[str, PaymentProfile]] = None,
        success_reset_seconds: Optional[float] = 5.0,
        retention_seconds: Optional[float] = 900.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.gateways = gateways
        self.profiles = profiles or PROFILES
        self.success_reset_seconds = success_reset_seconds
        self.retention_seconds = retention_seconds
        self.clock = clock
        self.sleep = sleep
        self._attempts: Dict[str, PaymentAttempt] = {}
        self._active: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._reset_handles: Dict[str, asyncio.TimerHandle] = {}
        # attempt id -> clock() when it last left PENDING
        self._settled_at: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._attempts)

    def get(self, attempt_id: str) -> PaymentAttempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise ValueError(f"Attempt {attempt_id} not found")
        return attempt

    def active_for(self, profile_name: str, target_id: str) -> Optional[PaymentAttempt]:
        attempt_id = self._active.get(f"{profile_name}:{target_id}")
        return self._attempts.get(attempt_id) if attempt_id else None

    async def start(
        self,
        profile_name: str,
        request: ChargeRequest,
        target: Optional[Dict[str, Any]] = None,
        refresh: Optional[RefreshHook] = None,
    ) -> PaymentAttempt:
        """
        Initiate a charge and start watching for its outcome.

        Raises:
            AttemptConflictError: the target already has an attempt in flight
            ChargeInitiationError: the remote function did not accept the charge
        """
        profile = self.profiles[profile_name]
        gateway = self.gateways[profile.gateway_name]
        self._evict_settled()

        attempt = PaymentAttempt(
            profile, request.target_id, request.phone_number, request.amount, target=target
        )
        if attempt.target_key in self._active:
            raise AttemptConflictError(
                "A payment for this item is already in progress. "
                "Complete it on your phone or wait for it to finish."
            )

        # Reserve the slot before awaiting the gateway so a double submit is refused
        self._attempts[attempt.id] = attempt
        self._active[attempt.target_key] = attempt.id

        try:
            result = await gateway.initiate_charge(request)
        except ChargeInitiationError as e:
            result = None
            error = str(e)
        except BaseException:
            self._release(attempt)
            self._attempts.pop(attempt.id, None)
            raise
        else:
            error = result.error

        if result is None or not result.success:
            # Only the raised error carries a rejected attempt; the registry drops it
            self._release(attempt)
            self._attempts.pop(attempt.id, None)
            attempt.reject(error or profile.failure_message)
            logger.error("Charge initiation for %s rejected: %s", attempt.target_key, error)
            raise ChargeInitiationError(attempt.message, attempt)

        attempt.enter_pending(result.checkout_request_id, result.message or profile.initiated_message)
        logger.info(
            "Attempt %s for %s pending on %s", attempt.id, attempt.target_key, attempt.reference
        )

        task = asyncio.create_task(self._watch(attempt, refresh))
        self._tasks[attempt.id] = task
        task.add_done_callback(lambda t, attempt_id=attempt.id: self._task_done(attempt_id, t))
        return attempt

    async def _watch(self, attempt: PaymentAttempt, refresh: Optional[RefreshHook]):
        profile = attempt.profile

        async def fetch(reference):
            return await self.store.find_record(profile.record_source, reference)

        result = await poll_payment(
            attempt.reference,
            fetch,
            lambda record: classify_record(profile.record_source, record),
            interval=profile.interval,
            deadline=profile.deadline,
            clock=self.clock,
            sleep=self.sleep,
            on_read=attempt.record_read,
        )
        self._settle(attempt, result)

        if attempt.status == AttemptStatus.SUCCESS and refresh is not None:
            try:
                refreshed = await refresh()
            except Exception as e:
                logger.warning("Refreshing %s after payment failed: %s", attempt.target_key, e)
            else:
                if refreshed is not None:
                    attempt.target = refreshed

    def _settle(self, attempt: PaymentAttempt, result: PollResult):
        profile = attempt.profile
        record = result.record or {}

        if result.outcome == OUTCOME_COMPLETED:
            changed = attempt.finish(
                AttemptStatus.SUCCESS, "success", "Payment successful", profile.success_message
            )
            if changed:
                attempt.receipt_number = record.get("mpesa_receipt_number")
                self._schedule_reset(attempt)
        elif result.outcome == OUTCOME_FAILED:
            changed = attempt.finish(
                AttemptStatus.FAILED,
                "error",
                "Payment failed",
                record.get("result_desc") or profile.failure_message,
            )
        else:
            level = "error" if profile.timeout_status == AttemptStatus.TIMED_OUT_FAILED else "warning"
            changed = attempt.finish(
                profile.timeout_status, level, "Payment not confirmed", profile.timeout_message
            )

        self._release(attempt)
        self._settled_at[attempt.id] = self.clock()
        if changed:
            logger.info(
                "Attempt %s for %s finished as %s after %d reads",
                attempt.id, attempt.target_key, attempt.status.value, result.reads,
            )

    def _schedule_reset(self, attempt: PaymentAttempt):
        if self.success_reset_seconds is None:
            return
        loop = asyncio.get_running_loop()
        self._reset_handles[attempt.id] = loop.call_later(
            self.success_reset_seconds, self._reset_after_success, attempt.id
        )

    def _reset_after_success(self, attempt_id: str):
        self._reset_handles.pop(attempt_id, None)
        attempt = self._attempts.get(attempt_id)
        if attempt is not None and attempt.status == AttemptStatus.SUCCESS:
            attempt.reset()

    def _release(self, attempt: PaymentAttempt):
        if self._active.get(attempt.target_key) == attempt.id:
            del self._active[attempt.target_key]

    def _task_done(self, attempt_id: str, task: asyncio.Task):
        self._tasks.pop(attempt_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Poll task for attempt %s crashed: %s", attempt_id, exc)
            attempt = self._attempts.get(attempt_id)
            if attempt is not None:
                attempt.finish(
                    AttemptStatus.FAILED,
                    "error",
                    "Payment not confirmed",
                    "We could not check the payment status. Please try again.",
                )
                self._release(attempt)
                self._settled_at[attempt_id] = self.clock()

    def _evict_settled(self):
        """Forget attempts that left PENDING more than retention_seconds ago."""
        if self.retention_seconds is None:
            return
        now = self.clock()
        for attempt_id, settled_at in list(self._settled_at.items()):
            if now - settled_at < self.retention_seconds:
                continue
            if attempt_id in self._tasks or attempt_id in self._reset_handles:
                continue
            del self._settled_at[attempt_id]
            self._attempts.pop(attempt_id, None)

    def retry(self, attempt_id: str) -> PaymentAttempt:
        """Return a failed or timed-out attempt to IDLE so the payer can start over."""
        attempt = self.get(attempt_id)
        if attempt.status not in RETRYABLE_STATUSES:
            raise AttemptStateError(f"Cannot retry an attempt that is {attempt.status.value}")
        attempt.reset()
        self._settled_at[attempt_id] = self.clock()
        return attempt

    def cancel(self, attempt_id: str):
        """
        Stop watching and discard the attempt.

        The poll task and the success-reset timer go down together; the
        attempt object receives no further updates.
        """
        attempt = self._attempts.pop(attempt_id, None)
        if attempt is None:
            raise ValueError(f"Attempt {attempt_id} not found")
        self._settled_at.pop(attempt_id, None)
        task = self._tasks.pop(attempt_id, None)
        if task is not None:
            task.cancel()
        handle = self._reset_handles.pop(attempt_id, None)
        if handle is not None:
            handle.cancel()
        self._release(attempt)

    async def wait(self, attempt_id: str) -> PaymentAttempt:
        attempt = self.get(attempt_id)
        task = self._tasks.get(attempt_id)
        if task is not None:
            await asyncio.wait({task})
        return attempt

    async def shutdown(self):
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for handle in self._reset_handles.values():
            handle.cancel()
        self._reset_handles.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._settled_at.clear()
        self._active.clear()
