"""
Valya - Check Registry.

============================================================
PURPOSE
============================================================
Builds validator lists from declarative specs, so pipelines can
live in configuration files:

    validators:
      - check: required
        message: Field is required
      - check: min_length
        length: 3
      - check: remote
        url: https://example.internal/usernames/validate

Every key other than "check" is passed to the factory as a
keyword argument. Order in the file is evaluation order.

============================================================
"""

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from . import checks
from .exceptions import PipelineLoadError
from .models import ValidatorCheck


logger = logging.getLogger(__name__)


CheckFactory = Callable[..., ValidatorCheck]


class CheckRegistry:
    """
    Registry of named check factories.

    Ships with the built-in checks; callers may register their own.
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._factories: Dict[str, CheckFactory] = {}
        if include_builtins:
            self.register("required", checks.required)
            self.register("min_length", checks.min_length)
            self.register("max_length", checks.max_length)
            self.register("matches", checks.matches)
            self.register("one_of", checks.one_of)
            self.register("remote", checks.remote)

    def register(self, name: str, factory: CheckFactory, replace: bool = False) -> None:
        """
        Register a check factory under name.

        Raises:
            ValueError: name already registered and replace is False
        """
        if name in self._factories and not replace:
            raise ValueError(f"Check already registered: {name}")
        self._factories[name] = factory
        logger.debug(f"Registered check factory: {name}")

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, name: str, **kwargs: Any) -> ValidatorCheck:
        """Instantiate one check by name."""
        factory = self._factories.get(name)
        if factory is None:
            raise PipelineLoadError(
                f"Unknown check: {name}. Available: {', '.join(self.names())}",
                source=name,
            )
        try:
            return factory(**kwargs)
        except (TypeError, ValueError, re.error) as e:
            raise PipelineLoadError(
                f"Invalid arguments for check {name}: {e}",
                source=name,
                original_exception=e,
            ) from e

    def build(self, entries: Any, source: Optional[str] = None) -> Tuple[ValidatorCheck, ...]:
        """
        Build an ordered validators list from a list of entry mappings.

        Args:
            entries: [{"check": name, **kwargs}, ...]
            source: Where the entries came from, for error messages
        """
        if not isinstance(entries, list):
            raise PipelineLoadError("validators must be a list", source=source)

        built = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping) or "check" not in entry:
                raise PipelineLoadError(
                    f"Entry {index} must be a mapping with a 'check' key",
                    source=source,
                )
            kwargs = {k: v for k, v in entry.items() if k != "check"}
            built.append(self.create(entry["check"], **kwargs))
        return tuple(built)


# =============================================================
# DEFAULT REGISTRY
# =============================================================


_default_registry: Optional[CheckRegistry] = None


def get_registry() -> CheckRegistry:
    """Get the shared check registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = CheckRegistry()
    return _default_registry


def load_pipeline(
    path: Union[str, Path],
    registry: Optional[CheckRegistry] = None,
) -> Tuple[ValidatorCheck, ...]:
    """
    Load a validators list from a YAML file.

    The file holds either a top-level list of specs or a mapping
    with a "validators" key.
    """
    registry = registry or get_registry()
    source = str(path)

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise PipelineLoadError(
            f"Cannot read pipeline file: {e}",
            source=source,
            original_exception=e,
        ) from e

    if isinstance(data, dict):
        data = data.get("validators")
    if data is None:
        raise PipelineLoadError("Pipeline file defines no validators", source=source)

    pipeline = registry.build(data, source=source)
    logger.info(f"Loaded {len(pipeline)} check(s) from {source}")
    return pipeline
