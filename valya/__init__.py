"""
Valya - Asynchronous Validation Orchestrator.

============================================================
VALIDATION ON EVERY CHANGE
============================================================

Valya decides, on every change of a tracked value, whether to run
an ordered list of asynchronous checks, runs them with correct
cancellation semantics when the value changes again before the
previous run completes, and reports one coherent outcome.

CORE PRINCIPLES:
- Only the latest run may report; stale results are discarded
- Checks run one at a time and stop at the first failure
- A failing check is data (a message), never a crash
- on_start / on_end fire exactly once per effective run

============================================================
STATE
============================================================

- is_validating  True between run start and settlement
- is_valid       True until a check fails (optimistic default)
- validation_message
                 Message of the first failing check, else None

============================================================
USAGE
============================================================

```python
from valya import (
    ValidationConfig,
    ValidationOrchestrator,
    required,
    remote,
)

orchestrator = ValidationOrchestrator(
    ValidationConfig(
        validators=[
            required("Field is required"),
            remote("https://example.internal/usernames/validate"),
        ],
        value="",
        initial_validation=True,
        on_end=lambda state: print(state.to_dict()),
    )
)

orchestrator.mount()                 # validates "" on mount
orchestrator.update(value="alice")   # supersedes the first run
await orchestrator.wait_idle()
```

============================================================
"""

from .models import (
    TriggerType,
    RunOutcome,
    ValidatorCheck,
    GenerationToken,
    ValidationRun,
    ValidationState,
    ValidationConfig,
    coerce_validator,
    coerce_validators,
)
from .config import (
    OrchestratorSettings,
    get_config,
    set_config,
)
from .exceptions import (
    ValidationFailed,
    ValyaError,
    ConfigurationError,
    MalformedValidatorError,
    SchedulerError,
    PipelineLoadError,
)
from .notifications import NotificationPort
from .run import ValidationRunner
from .scheduler import RunScheduler
from .orchestrator import ValidationOrchestrator
from .checks import (
    required,
    min_length,
    max_length,
    matches,
    one_of,
    remote,
)
from .registry import CheckRegistry, get_registry, load_pipeline


__version__ = "1.0.0"


__all__ = [
    # Models
    "TriggerType",
    "RunOutcome",
    "ValidatorCheck",
    "GenerationToken",
    "ValidationRun",
    "ValidationState",
    "ValidationConfig",
    "coerce_validator",
    "coerce_validators",
    # Config
    "OrchestratorSettings",
    "get_config",
    "set_config",
    # Exceptions
    "ValidationFailed",
    "ValyaError",
    "ConfigurationError",
    "MalformedValidatorError",
    "SchedulerError",
    "PipelineLoadError",
    # Core
    "NotificationPort",
    "ValidationRunner",
    "RunScheduler",
    "ValidationOrchestrator",
    # Checks
    "required",
    "min_length",
    "max_length",
    "matches",
    "one_of",
    "remote",
    "CheckRegistry",
    "get_registry",
    "load_pipeline",
]
