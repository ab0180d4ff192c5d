"""
Valya - Validation Run Execution.

============================================================
PURPOSE
============================================================
Evaluates the checks of one ValidationRun against its value
snapshot.

ALGORITHM:
1. Invoke checks strictly in declared order, one at a time
2. A check passes when it returns (or its awaitable resolves)
3. The first failing check stops the loop; later checks are
   never invoked
4. All checks passing settles the run as VALID

FAILURE CHANNEL:
- ValidationFailed carries the message verbatim
- Any other exception, raised synchronously or while awaited,
  is normalized into the same channel
- A None message is replaced by the fallback message; any other
  value, the empty string included, is kept verbatim

The runner knows nothing about generations. Whether a settled
run is still current is decided by the scheduler.

============================================================
"""

import inspect
import logging
from datetime import datetime
from typing import Any, Optional

from .exceptions import ValidationFailed
from .models import RunOutcome, ValidationRun, ValidatorCheck


logger = logging.getLogger(__name__)


class ValidationRunner:
    """Sequential, short-circuiting check executor."""

    def __init__(self, fallback_message: str = "Validation failed"):
        self._fallback_message = fallback_message

    @property
    def fallback_message(self) -> str:
        return self._fallback_message

    async def evaluate(self, run: ValidationRun) -> ValidationRun:
        """
        Run every check until the first failure and settle the run.

        Args:
            run: Run to evaluate

        Returns:
            The same run, with outcome, message and settled_at set
        """
        for index, check in enumerate(run.checks):
            run.checks_invoked = index + 1
            message = await self._invoke(check, run.value_snapshot)
            if message is not None:
                run.outcome = RunOutcome.INVALID
                run.message = message
                run.settled_at = datetime.utcnow()
                return run

        run.outcome = RunOutcome.VALID
        run.message = None
        run.settled_at = datetime.utcnow()
        return run

    async def _invoke(self, check: ValidatorCheck, value: Any) -> Optional[Any]:
        """
        Call one check.

        Returns:
            None when the check passes, otherwise the failure message
        """
        try:
            result = check.check(value, check.params)
            if inspect.isawaitable(result):
                await result
        except ValidationFailed as e:
            return self._message_or_fallback(e.message)
        except Exception as e:
            logger.warning(
                f"Check {check.name!r} raised {type(e).__name__}; treating as failure: {e}"
            )
            return self._message_or_fallback(self._exception_message(e))
        return None

    def _message_or_fallback(self, message: Any) -> Any:
        if message is None:
            return self._fallback_message
        return message

    @staticmethod
    def _exception_message(exc: Exception) -> Any:
        if len(exc.args) == 1:
            return exc.args[0]
        return str(exc) or None
