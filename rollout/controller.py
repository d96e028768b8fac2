"""
Rollout Controller - time-stepped traffic shifting to a candidate version.

The controller ticks on a fixed interval. Each tick either moves the
candidate share up by one step through a partial split, or, once the share
has reached `1 - step`, issues the full cutover that ends the rollout.

There is no health gating, retry or rollback: the first failed routing call
ends the rollout and leaves the alias at the last split that was applied.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from monitoring.prometheus_metrics import MetricsRegistry

from .config import RolloutConfig
from .errors import RolloutCancelled, RolloutError, RoutingError
from .routing import FULL_CUTOVER, PARTIAL_SPLIT, RoutingService

logger = logging.getLogger(__name__)

# 1/step within this relative distance of an integer counts as that integer.
RAMP_RELATIVE_TOLERANCE = 1e-12


def ramp_steps(step: float) -> int:
    """
    Number of partial splits before the promotion, ceil(1/step) - 1.

    1/0.1 may come out a hair above 10; that must still mean 9 ramps.
    """
    steps = 1 / step
    nearest = round(steps)
    if math.isclose(steps, nearest, rel_tol=RAMP_RELATIVE_TOLERANCE, abs_tol=0.0):
        return max(nearest - 1, 0)
    return math.ceil(steps) - 1


class RolloutPhase(str, Enum):
    """Phase of a rollout."""
    PENDING = "pending"
    RAMPING = "ramping"
    PROMOTING = "promoting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class RolloutState:
    """Mutable state of a rollout, owned by its controller."""
    candidate_share: float = 0.0
    phase: RolloutPhase = RolloutPhase.PENDING
    steps_completed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_share": self.candidate_share,
            "phase": self.phase.value,
            "steps_completed": self.steps_completed,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
        }


class RolloutController:
    """
    Drives one alias from its current version to a candidate version.

    States:
    - RAMPING: each tick adds `step` to the candidate share
    - PROMOTING: the share reached `1 - step`, full cutover in flight
    - DONE / FAILED / CANCELLED: terminal
    """

    def __init__(
        self,
        router: RoutingService,
        config: RolloutConfig,
        metrics: Optional[MetricsRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config.validate()
        self.router = router
        self.metrics = metrics or MetricsRegistry()
        self._clock = clock
        self.state = RolloutState()
        self.total_ramps = ramp_steps(self.config.step)
        self._labels = {"function": config.target, "alias": config.alias}

    @property
    def candidate_share(self) -> float:
        return self.state.candidate_share

    @property
    def phase(self) -> RolloutPhase:
        return self.state.phase

    def at_terminal_share(self) -> bool:
        """True once the next action must be the promotion."""
        return self.state.steps_completed >= self.total_ramps

    async def run(self, cancel: Optional[asyncio.Event] = None) -> RolloutState:
        """
        Run the control loop until the candidate is promoted.

        Raises RoutingError if a routing call fails and RolloutCancelled if
        `cancel` is set. Cancellation is only observed between calls.
        """
        if self.state.phase != RolloutPhase.PENDING:
            raise RolloutError(f"rollout already {self.state.phase.value}")

        cancel = cancel or asyncio.Event()
        interval = self.config.tick_interval
        self.state.started_at = datetime.now()
        self._set_phase(RolloutPhase.RAMPING)
        logger.info(
            f"Starting rollout of {self.config.target}:{self.config.alias} "
            f"to version {self.config.candidate} in steps of {self.config.step}"
        )

        next_tick = self._clock() + interval
        try:
            while True:
                await self._wait_for_tick(next_tick, cancel)

                if self.at_terminal_share():
                    await self.promote()
                    break

                await self.adjust_traffic_split()
                logger.info(f"Current candidate share: {self.state.candidate_share:f}")

                # Missed ticks are dropped; a slow call makes the next tick fire right away.
                next_tick = max(next_tick + interval, self._clock())
        except RolloutCancelled as e:
            self._finish(RolloutPhase.CANCELLED, str(e))
            raise
        except asyncio.CancelledError:
            self._finish(RolloutPhase.CANCELLED, "task cancelled")
            raise
        except Exception as e:
            self._finish(RolloutPhase.FAILED, str(e))
            raise

        self._finish(RolloutPhase.DONE)
        logger.info(f"Promoted {self.config.target}:{self.config.alias} to version {self.config.candidate}")
        return self.state

    async def adjust_traffic_split(self) -> None:
        """Move the candidate share up by one step."""
        # n * step rather than a running sum, so no error accumulates.
        new_share = min(1.0, (self.state.steps_completed + 1) * self.config.step)

        await self._call(
            PARTIAL_SPLIT,
            self.router.set_partial_split,
            self.config.target,
            self.config.alias,
            self.config.candidate,
            new_share,
        )

        # Commit only after the routing service confirmed the split.
        self.state.candidate_share = new_share
        self.state.steps_completed += 1
        self.metrics.set_gauge("rollout_candidate_share", new_share, **self._labels)
        self.metrics.count("rollout_steps_total", **self._labels)

    async def promote(self) -> None:
        """Route all alias traffic to the candidate and clear the split."""
        self._set_phase(RolloutPhase.PROMOTING)
        await self._call(
            FULL_CUTOVER,
            self.router.set_full_cutover,
            self.config.target,
            self.config.alias,
            self.config.candidate,
        )
        self.state.candidate_share = 1.0
        self.metrics.set_gauge("rollout_candidate_share", 1.0, **self._labels)

    def status(self) -> Dict[str, Any]:
        """Get rollout status."""
        return {
            "target": self.config.target,
            "alias": self.config.alias,
            "candidate": self.config.candidate,
            "step": self.config.step,
            **self.state.to_dict(),
        }

    async def _wait_for_tick(self, deadline: float, cancel: asyncio.Event) -> None:
        """Sleep until `deadline` unless cancelled first."""
        if cancel.is_set():
            raise RolloutCancelled("rollout cancelled")

        delay = deadline - self._clock()
        if delay <= 0:
            return

        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise RolloutCancelled("rollout cancelled")

    async def _call(self, operation: str, func: Callable[..., None], *args) -> None:
        """Run one blocking routing call off the event loop."""
        timeout = self.config.call_timeout
        logger.debug(f"Routing call {operation}{args}")

        with self.metrics.timer("rollout_routing_call_seconds", operation=operation):
            try:
                if timeout is None:
                    await asyncio.to_thread(func, *args)
                else:
                    await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
            except asyncio.TimeoutError as e:
                self.metrics.count("rollout_routing_calls_total", operation=operation, status="timeout")
                raise RoutingError(
                    f"{operation} did not complete within {timeout}s",
                    operation=operation,
                ) from e
            except Exception:
                self.metrics.count("rollout_routing_calls_total", operation=operation, status="error")
                raise

        self.metrics.count("rollout_routing_calls_total", operation=operation, status="ok")

    def _set_phase(self, phase: RolloutPhase) -> None:
        self.state.phase = phase
        self.metrics.set_state("rollout_phase", phase.value, **self._labels)

    def _finish(self, phase: RolloutPhase, error: Optional[str] = None) -> None:
        self.state.error = error
        self.state.finished_at = datetime.now()
        self._set_phase(phase)
        if error:
            logger.error(
                f"Rollout of {self.config.target}:{self.config.alias} {phase.value} "
                f"at candidate share {self.state.candidate_share:f}: {error}"
            )
