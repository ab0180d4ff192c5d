"""
Valya - Validation Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Public facade tying the pieces together for one observed value:

- Owns the ValidationState record
- Feeds triggers to the RunScheduler
- Applies settled results of the current generation
- Fires on_start / on_end through the NotificationPort
- Keeps a bounded history of settled runs

============================================================
LIFECYCLE
============================================================
1. Construct with a ValidationConfig
2. mount()              - first observation
3. update(...) / receive(config)
                        - every later change of value, gate,
                          validators or callbacks
4. state / props()      - read at any time

The caller drives everything from a running asyncio event loop.

============================================================
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .config import OrchestratorSettings, get_config
from .exceptions import SchedulerError
from .models import (
    TriggerType,
    ValidationConfig,
    ValidationRun,
    ValidationState,
)
from .notifications import NotificationPort
from .run import ValidationRunner
from .scheduler import RunScheduler


logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """
    Runs validators whenever the tracked value changes and reports
    one coherent outcome.

    Example:
        orchestrator = ValidationOrchestrator(
            ValidationConfig(validators=[required("Field is required")], value=""),
        )
        orchestrator.mount()
        orchestrator.update(value="hello")
        await orchestrator.wait_idle()
        orchestrator.state.is_valid  # True
    """

    def __init__(
        self,
        config: ValidationConfig,
        settings: Optional[OrchestratorSettings] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._settings = settings or get_config()
        self._config = config
        self._state = ValidationState.initial()
        self._mounted = False
        self._history: Deque[ValidationRun] = deque(maxlen=self._settings.history_size)

        self._port = NotificationPort(config.on_start, config.on_end)
        self._scheduler = RunScheduler(
            runner=ValidationRunner(fallback_message=self._settings.fallback_message),
            on_started=self._run_started,
            on_settled=self._run_settled,
            on_discarded=self._record,
            initial_value=config.value,
            loop=loop,
            log_stale_discards=self._settings.log_stale_discards,
        )

    # --------------------------------------------------------
    # Triggers
    # --------------------------------------------------------

    def mount(self) -> Optional[ValidationRun]:
        """Signal first observation. Starts a run if initial validation is on."""
        if self._mounted:
            logger.warning("mount() called twice; ignoring")
            return None
        self._mounted = True
        try:
            return self._scheduler.observe(TriggerType.MOUNTED, self._config)
        except SchedulerError:
            self._mounted = False
            raise

    def update(self, **changes: Any) -> Optional[ValidationRun]:
        """
        Apply configuration changes and signal them.

        Unknown keywords are pass-through fields and land in extra.
        """
        return self.receive(self._config.evolve(**changes))

    def receive(self, config: ValidationConfig) -> Optional[ValidationRun]:
        """Replace the whole configuration and signal the change."""
        self._config = config
        self._port.bind(config.on_start, config.on_end)
        return self._scheduler.observe(TriggerType.VALUE_CHANGED, config)

    # --------------------------------------------------------
    # Scheduler callbacks
    # --------------------------------------------------------

    def _run_started(self, run: ValidationRun) -> None:
        self._state = self._state.validating()
        self._port.start()

    def _run_settled(self, run: ValidationRun) -> None:
        self._state = ValidationState.settled(run)
        self._record(run)
        self._port.end(self._state)

    def _record(self, run: ValidationRun) -> None:
        self._history.append(run)

    # --------------------------------------------------------
    # State accessors
    # --------------------------------------------------------

    @property
    def config(self) -> ValidationConfig:
        return self._config

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    @property
    def state(self) -> ValidationState:
        return self._state

    @property
    def is_validating(self) -> bool:
        return self._state.is_validating

    @property
    def is_valid(self) -> bool:
        return self._state.is_valid

    @property
    def validation_message(self) -> Any:
        return self._state.validation_message

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def current_generation(self) -> int:
        return self._scheduler.generation

    @property
    def pending_runs(self) -> int:
        return self._scheduler.pending

    @property
    def history(self) -> List[ValidationRun]:
        """Settled runs, oldest first, including discarded stale ones."""
        return list(self._history)

    def props(self) -> Dict[str, Any]:
        """
        Caller pass-through fields merged with the current state.

        State keys win over pass-through fields of the same name.
        """
        merged = dict(self._config.extra)
        merged.update(self._state.to_dict())
        return merged

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for every in-flight run, stale ones included, to finish."""
        return await self._scheduler.wait_idle(timeout=timeout)
