"""Bounded fixed-interval polling until a remote resource converges."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from cloud_actions.engine.models import ResourceSnapshot, ResourceState
from cloud_actions.utils.errors import (
    ConvergenceTimeoutError,
    ErrorContext,
    ExplicitFailureError,
)
from cloud_actions.utils.logging import get_logger

logger = get_logger(__name__)

QueryFn = Callable[[], ResourceSnapshot]
SleepFn = Callable[[float], None]


class ConvergenceTarget(ABC):
    """Predicate deciding whether a snapshot has reached the wanted state."""

    @abstractmethod
    def matches(self, snapshot: ResourceSnapshot) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        pass


class StateEquals(ConvergenceTarget):
    """Resource exists and reports the given state."""

    def __init__(self, state: ResourceState):
        self.state = state

    def matches(self, snapshot: ResourceSnapshot) -> bool:
        return snapshot.exists and snapshot.state is self.state

    def describe(self) -> str:
        return f"state {self.state.value}"


class ExistenceEquals(ConvergenceTarget):
    """Resource existence matches the expectation."""

    def __init__(self, exists: bool):
        self.exists = exists

    def matches(self, snapshot: ResourceSnapshot) -> bool:
        return snapshot.exists == self.exists

    def describe(self) -> str:
        return "present" if self.exists else "absent"


@dataclass(frozen=True)
class PollPolicy:
    """Fixed interval, attempt budget and target of one poll call."""
    target: ConvergenceTarget
    interval: float = 10.0
    max_attempts: int = 20

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError(f"interval must be >= 0, got {self.interval}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


def poll_until_converged(
    query: QueryFn,
    policy: PollPolicy,
    resource_id: Optional[str] = None,
    context: Optional[ErrorContext] = None,
    sleep: SleepFn = time.sleep
) -> ResourceSnapshot:
    """Query a resource until it matches the policy target.

    The query runs at most ``policy.max_attempts`` times with a blocking
    ``policy.interval`` sleep between consecutive queries and none after
    the last one. A failing query propagates immediately.

    Args:
        query: Returns the current snapshot of the resource
        policy: Interval, attempt budget and convergence target
        resource_id: Resource being watched, for diagnostics
        context: Error context to enrich and attach to raised errors
        sleep: Blocking sleep function

    Returns:
        The first snapshot matching the target

    Raises:
        ExplicitFailureError: The control plane reported the resource as failed
        ConvergenceTimeoutError: The attempt budget ran out
    """
    context = context or ErrorContext()
    context.resource_id = context.resource_id or resource_id
    snapshot = None

    for attempt in range(1, policy.max_attempts + 1):
        snapshot = query()

        if policy.target.matches(snapshot):
            logger.debug(
                f"{resource_id} reached {policy.target.describe()} "
                f"after {attempt}/{policy.max_attempts} attempts"
            )
            return snapshot

        if snapshot.failed:
            context.last_state = snapshot.describe()
            raise ExplicitFailureError(
                f"{resource_id} reported failure while waiting for "
                f"{policy.target.describe()}, resubmit the request",
                context=context,
                suggestions=['Resubmit the same request once the cause is fixed']
            )

        if attempt < policy.max_attempts:
            logger.debug(
                f"{resource_id} is {snapshot.describe()}, waiting for "
                f"{policy.target.describe()} ({attempt}/{policy.max_attempts}), "
                f"next check in {policy.interval}s"
            )
            sleep(policy.interval)

    context.last_state = snapshot.describe()
    waited = policy.interval * (policy.max_attempts - 1)
    logger.error(
        f"{resource_id} did not reach {policy.target.describe()} after "
        f"{policy.max_attempts} attempts ({waited:.0f}s), last state {context.last_state}"
    )
    raise ConvergenceTimeoutError(
        f"after {waited:.0f}s the resource {resource_id} is {context.last_state}, "
        f"expected {policy.target.describe()}",
        context=context,
        suggestions=['Check the resource in the control plane console',
                     'Resubmit the request to keep waiting']
    )
