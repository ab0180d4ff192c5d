"""
Valya - Run Scheduler.

============================================================
PURPOSE
============================================================
Decides, on every trigger, whether a new ValidationRun starts,
and invalidates runs still in flight.

GATING POLICY:

    MOUNTED        -> start iff should_validate and initial_validation
    VALUE_CHANGED  -> start iff should_validate and value != previous

Toggling should_validate around an unchanged value never starts
a run; the gate is read at trigger time, not watched.

GENERATIONS:

    trigger ──► generation += 1 ──► on_started(run) ──► task(evaluate)
                                                          │
                          settle ◄────────────────────────┘
                            │
            run.generation == current ?
               yes ──► on_settled(run)
               no  ──► discard (stale)

In-flight checks are never cancelled. A newer generation makes
their eventual result irrelevant, and the comparison at the join
point is the only synchronization needed on a single event loop.

============================================================
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Set

from .exceptions import SchedulerError
from .models import (
    GenerationToken,
    TriggerType,
    ValidationConfig,
    ValidationRun,
)
from .run import ValidationRunner


logger = logging.getLogger(__name__)


RunCallback = Callable[[ValidationRun], None]


def _value_changed(new_value: Any, old_value: Any) -> bool:
    try:
        return bool(new_value != old_value)
    except Exception:
        # Values without a boolean equality (e.g. arrays) compare by identity
        return new_value is not old_value


class RunScheduler:
    """
    Gates and sequences validation runs.

    observe() is synchronous and never suspends; run execution is
    handed to an asyncio task on the event loop.
    """

    def __init__(
        self,
        runner: ValidationRunner,
        on_started: RunCallback,
        on_settled: RunCallback,
        on_discarded: Optional[RunCallback] = None,
        initial_value: Any = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        log_stale_discards: bool = True,
    ):
        self._runner = runner
        self._on_started = on_started
        self._on_settled = on_settled
        self._on_discarded = on_discarded
        self._loop = loop
        self._log_stale_discards = log_stale_discards

        self._generation = 0
        self._previous_value = initial_value
        self._tasks: Set[asyncio.Task] = set()

    # --------------------------------------------------------
    # Inspection
    # --------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_token(self) -> GenerationToken:
        return GenerationToken(self._generation)

    @property
    def previous_value(self) -> Any:
        return self._previous_value

    @property
    def pending(self) -> int:
        """Number of run tasks that have not finished yet, stale ones included."""
        return len(self._tasks)

    def is_current(self, token: GenerationToken) -> bool:
        return token.generation == self._generation

    # --------------------------------------------------------
    # Triggers
    # --------------------------------------------------------

    @staticmethod
    def should_start(
        trigger: TriggerType,
        config: ValidationConfig,
        previous_value: Any,
    ) -> bool:
        """Apply the gating policy to one trigger."""
        if not config.should_validate:
            return False
        if trigger == TriggerType.MOUNTED:
            return bool(config.initial_validation)
        return _value_changed(config.value, previous_value)

    def observe(
        self,
        trigger: TriggerType,
        config: ValidationConfig,
    ) -> Optional[ValidationRun]:
        """
        Evaluate a trigger and start a run if the gate allows it.

        Args:
            trigger: What happened
            config: Configuration as of this trigger

        Returns:
            The started run, or None when the trigger was gated out
        """
        if not self.should_start(trigger, config, self._previous_value):
            self._previous_value = config.value
            logger.debug(
                f"Trigger {trigger.value} gated out "
                f"(should_validate={config.should_validate}, generation={self._generation})"
            )
            return None

        # The baseline only moves once the run is accepted
        loop = self._resolve_loop()
        self._previous_value = config.value
        return self._start(trigger, config, loop)

    def _start(
        self,
        trigger: TriggerType,
        config: ValidationConfig,
        loop: asyncio.AbstractEventLoop,
    ) -> ValidationRun:
        self._generation += 1
        run = ValidationRun(
            token=GenerationToken(self._generation),
            value_snapshot=config.value,
            checks=tuple(config.validators),
            trigger=trigger,
        )

        logger.debug(
            f"Run {run.generation} started by {trigger.value} "
            f"with {len(run.checks)} check(s)"
        )
        self._on_started(run)

        task = loop.create_task(self._drive(run))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return run

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulerError(
                "Validation runs need a running event loop; "
                "trigger from async code or pass loop= explicitly"
            ) from e

    # --------------------------------------------------------
    # Join point
    # --------------------------------------------------------

    async def _drive(self, run: ValidationRun) -> None:
        await self._runner.evaluate(run)

        if not self.is_current(run.token):
            run.stale = True
            if self._log_stale_discards:
                logger.debug(
                    f"Discarding stale run {run.generation} "
                    f"(current generation {self._generation}, outcome {run.outcome.value})"
                )
            if self._on_discarded is not None:
                self._on_discarded(run)
            return

        logger.debug(f"Run {run.generation} settled: {run.outcome.value}")
        self._on_settled(run)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every run task has finished.

        Args:
            timeout: Seconds to wait for each batch of tasks (None waits forever)

        Returns:
            True when idle, False when the timeout expired first
        """
        while True:
            pending = {task for task in self._tasks if not task.done()}
            if not pending:
                return True
            _, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                return False
