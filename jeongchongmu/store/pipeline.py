"""
Named-stage fetch pipelines.

A dependent fetch chain (group -> expenses -> settlements) runs as an
ordered list of stages sharing a context dict. A stage that fails stops the
stages after it; the outcome records which stage failed and why, so callers
and tests can see exactly how far a refresh got.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from pydantic import ValidationError
from jeongchongmu.core.exceptions import ApiError

logger = logging.getLogger(__name__)

# Errors a read refresh absorbs: backend/transport failures and payloads
# that do not parse. Anything else is a bug and propagates.
RECOVERABLE_ERRORS = (ApiError, ValidationError)


class StaleResponse(Exception):
    """Raised by a stage when a newer fetch of the same cache slice has started."""

    def __init__(self, slices: Sequence[str]):
        self.slices = tuple(slices)
        super().__init__(f"superseded: {', '.join(self.slices)}")


@dataclass
class Stage:
    """One step of a pipeline. `run` receives the shared context; its result is stored under `name`."""
    name: str
    run: Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class FetchOutcome:
    """Result of a read refresh. Never raised, always returned."""
    pipeline: str
    completed: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None
    discarded: bool = False

    @property
    def ok(self) -> bool:
        return self.failed_stage is None and not self.discarded


async def run_pipeline(name: str, stages: Sequence[Stage], context: Optional[Dict[str, Any]] = None) -> FetchOutcome:
    """Run stages in order, stopping at the first failure or stale response."""
    context = {} if context is None else context
    outcome = FetchOutcome(pipeline=name)
    for stage in stages:
        try:
            context[stage.name] = await stage.run(context)
        except StaleResponse as e:
            logger.debug(f"{name}: discarded response at stage '{stage.name}' ({e})")
            outcome.discarded = True
            return outcome
        except RECOVERABLE_ERRORS as e:
            logger.error(f"{name}: stage '{stage.name}' failed: {e}")
            outcome.failed_stage = stage.name
            outcome.error = e
            return outcome
        outcome.completed.append(stage.name)
    return outcome
