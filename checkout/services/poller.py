"""
Payment confirmation poller.

After a charge is initiated the payer has to read a prompt on their phone and
enter a PIN, out of band. The outcome eventually lands in the store, written
by the gateway callback. The poller watches the record for one reference
until it reaches a terminal status or the deadline passes.

Reads are serialized: each cycle awaits its read, then sleeps for the
interval, so results are always consumed in issuance order. The whole loop is
one coroutine; cancelling the task that runs it tears down the interval and
the deadline together.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


OUTCOME_COMPLETED = "completed"
OUTCOME_FAILED = "failed"
OUTCOME_TIMEOUT = "timeout"


class PollResult:
    def __init__(
        self,
        reference: str,
        outcome: str,
        record: Optional[Dict[str, Any]],
        reads: int,
        elapsed: float,
    ):
        self.reference = reference
        self.outcome = outcome
        self.record = record
        self.reads = reads
        self.elapsed = elapsed


async def poll_payment(
    reference: str,
    fetch: Callable[[str], Awaitable[Optional[Dict[str, Any]]]],
    classify: Callable[[Optional[Dict[str, Any]]], str],
    *,
    interval: float,
    deadline: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_read: Optional[Callable[[int], None]] = None,
) -> PollResult:
    """
    Poll `fetch(reference)` until `classify(record)` is terminal or the deadline elapses.

    The first read happens immediately, then one every `interval` seconds.
    A read that raises is logged and counts as "no record yet"; it never
    ends the loop by itself. Returns within deadline + interval.
    """
    if interval <= 0 or deadline <= 0:
        raise ValueError("interval and deadline must be positive")

    started = clock()
    reads = 0
    record = None

    while True:
        reads += 1
        try:
            record = await fetch(reference)
        except Exception as e:
            logger.warning("Poll read %d for %s failed: %s", reads, reference, e)
            record = None

        if on_read is not None:
            on_read(reads)

        state = classify(record)
        elapsed = clock() - started

        if state == "completed":
            return PollResult(reference, OUTCOME_COMPLETED, record, reads, elapsed)
        if state == "failed":
            return PollResult(reference, OUTCOME_FAILED, record, reads, elapsed)
        if elapsed >= deadline:
            logger.info("Gave up watching %s after %d reads (%.0fs)", reference, reads, elapsed)
            return PollResult(reference, OUTCOME_TIMEOUT, record, reads, elapsed)

        await sleep(interval)
