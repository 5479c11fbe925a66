"""State check run before every mutation of an existing resource."""

from dataclasses import dataclass
from typing import Callable, Optional

from cloud_actions.engine.models import ResourceSnapshot, ResourceState
from cloud_actions.utils.errors import ConflictError, ErrorContext, ResourceNotFoundError
from cloud_actions.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GuardResult:
    """Outcome of a guard check.

    ``converged`` means the desired state already holds and no mutation
    must be issued. Otherwise the caller inspects ``snapshot`` to decide
    between issuing the mutation and waiting on a transition already in
    flight.
    """
    converged: bool
    snapshot: ResourceSnapshot

    @property
    def proceed(self) -> bool:
        return not self.converged


def ensure_state(
    resource_id: str,
    query: Callable[[str], ResourceSnapshot],
    desired_exists: bool = True,
    desired_state: Optional[ResourceState] = None,
    target: Optional[str] = None,
    must_exist: bool = False,
    context: Optional[ErrorContext] = None
) -> GuardResult:
    """Query a resource and compare it against the desired outcome.

    Args:
        resource_id: Remote identifier supplied by the caller
        query: Returns the current snapshot for an identifier
        desired_exists: Whether the operation wants the resource to exist
        desired_state: Wanted state; None means existing is enough
        target: Identifier the resource must be attached to, if any
        must_exist: Raise instead of proceeding when the resource is absent
        context: Error context attached to raised errors

    Returns:
        GuardResult with the observed snapshot

    Raises:
        ResourceNotFoundError: Resource is absent and must_exist is set
        ConflictError: Resource is being deleted or is attached elsewhere
    """
    context = context or ErrorContext()
    context.resource_id = context.resource_id or resource_id
    snapshot = query(resource_id)

    if not snapshot.exists:
        if not desired_exists:
            logger.info(f"{resource_id} is already absent")
            return GuardResult(converged=True, snapshot=snapshot)
        if must_exist:
            raise ResourceNotFoundError(f"resource {resource_id} not found", context=context)
        return GuardResult(converged=False, snapshot=snapshot)

    if not desired_exists:
        return GuardResult(converged=False, snapshot=snapshot)

    context.last_state = snapshot.describe()
    if snapshot.state is ResourceState.DELETING:
        raise ConflictError(f"resource {resource_id} is being deleted", context=context)

    if target is not None and snapshot.attached_to not in (None, target):
        raise ConflictError(
            f"resource {resource_id} has been bound with {snapshot.attached_to}, "
            f"requested {target}",
            context=context,
            suggestions=[f'Detach {resource_id} from {snapshot.attached_to} first']
        )

    if desired_state is None or snapshot.state is desired_state:
        logger.info(f"{resource_id} is already {snapshot.describe()}, skipping mutation")
        return GuardResult(converged=True, snapshot=snapshot)

    return GuardResult(converged=False, snapshot=snapshot)
