"""Readiness polling: probe a condition until ready, timed out, or the resource is gone."""

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ProbeStatus(enum.Enum):
    NOT_READY = "not_ready"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe call.

    ERROR is kept apart from NOT_READY only for reporting; the poller
    treats both as "try again".
    """

    status: ProbeStatus
    detail: str = ""

    @property
    def ready(self) -> bool:
        return self.status is ProbeStatus.READY

    @classmethod
    def ok(cls, detail=""):
        return cls(ProbeStatus.READY, detail)

    @classmethod
    def not_ready(cls, detail=""):
        return cls(ProbeStatus.NOT_READY, detail)

    @classmethod
    def error(cls, detail=""):
        return cls(ProbeStatus.ERROR, detail)


class PollOutcome(enum.Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"
    RESOURCE_GONE = "resource_gone"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollConfig:
    """Timeout ceiling and fixed delay between probes, in seconds."""

    max_wait: float = 600
    interval: float = 2

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"Poll interval must be > 0, got {self.interval}")
        if self.max_wait < 0:
            raise ValueError(f"Poll max_wait must be >= 0, got {self.max_wait}")


@dataclass
class PollState:
    max_wait: float
    interval: float
    elapsed: float = 0
    attempts: int = 0
    resource_alive: bool = True
    last_probe: ProbeResult | None = None


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    attempts: int
    elapsed: float
    last_probe: ProbeResult | None = None

    @property
    def ready(self) -> bool:
        return self.outcome is PollOutcome.READY


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def _as_probe_result(value) -> ProbeResult:
    if isinstance(value, ProbeResult):
        return value
    return ProbeResult.ok() if value else ProbeResult.not_ready()


async def _call_probe(probe) -> ProbeResult:
    try:
        return _as_probe_result(await _maybe_await(probe()))
    except Exception as e:
        logger.debug(f"Probe raised {type(e).__name__}: {e}")
        return ProbeResult.error(f"{type(e).__name__}: {e}")


async def _call_liveness(liveness) -> bool:
    # An unanswerable liveness check is not evidence that the resource is gone
    try:
        return bool(await _maybe_await(liveness()))
    except Exception as e:
        logger.debug(f"Liveness check raised {type(e).__name__}: {e}")
        return True


async def poll_until_ready(
    probe,
    config: PollConfig,
    liveness=None,
    on_progress=None,
    cancel: asyncio.Event | None = None,
    sleep=asyncio.sleep,
) -> PollResult:
    """Poll *probe* until it reports ready.

    Args:
        probe: callable() -> bool | ProbeResult, sync or async
        config: PollConfig with max_wait and interval
        liveness: optional callable() -> bool; False ends the wait with RESOURCE_GONE
        on_progress: optional callable(PollState), sync or async, called after
            every cycle that keeps polling
        cancel: optional event checked once per cycle before probing
        sleep: async callable(seconds), replaceable in tests

    Returns:
        PollResult with the terminal outcome and the final attempts/elapsed.
    """
    state = PollState(max_wait=config.max_wait, interval=config.interval)

    def _finish(outcome):
        return PollResult(outcome, state.attempts, state.elapsed, state.last_probe)

    while True:
        if cancel is not None and cancel.is_set():
            return _finish(PollOutcome.CANCELLED)

        state.attempts += 1
        state.last_probe = await _call_probe(probe)
        if state.last_probe.ready:
            return _finish(PollOutcome.READY)

        if liveness is not None:
            state.resource_alive = await _call_liveness(liveness)
            if not state.resource_alive:
                return _finish(PollOutcome.RESOURCE_GONE)

        # max_wait == 0: single probe, no sleep
        if state.elapsed >= state.max_wait:
            return _finish(PollOutcome.TIMED_OUT)

        await sleep(state.interval)
        state.elapsed += state.interval
        if state.elapsed >= state.max_wait:
            return _finish(PollOutcome.TIMED_OUT)

        if on_progress is not None:
            await _maybe_await(on_progress(state))
