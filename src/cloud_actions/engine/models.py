"""Provider-neutral resource state and batch result models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from cloud_actions.utils.errors import ActionError


class ResourceState(str, Enum):
    """Normalized lifecycle state of a remote resource."""
    PENDING = "PENDING"
    AVAILABLE = "AVAILABLE"
    UNATTACHED = "UNATTACHED"
    ATTACHING = "ATTACHING"
    ATTACHED = "ATTACHED"
    DETACHING = "DETACHING"
    DELETING = "DELETING"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ResourceSnapshot:
    """One observation of a remote resource, as reported by the control plane."""
    resource_id: str
    exists: bool
    state: Optional[ResourceState] = None
    attached_to: Optional[str] = None
    raw_state: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def absent(cls, resource_id: str) -> "ResourceSnapshot":
        return cls(resource_id=resource_id, exists=False)

    @property
    def failed(self) -> bool:
        """Whether the control plane reports the resource as failed."""
        return self.exists and self.state is ResourceState.FAILED

    def describe(self) -> str:
        if not self.exists:
            return "absent"
        text = self.state.value if self.state else "UNKNOWN"
        if self.raw_state and self.raw_state.upper() != text:
            text = f"{text} ({self.raw_state})"
        if self.attached_to:
            text = f"{text} on {self.attached_to}"
        return text


@dataclass(frozen=True)
class MutationAck:
    """Acknowledgement of an accepted mutation."""
    resource_id: str
    request_id: Optional[str] = None
    task_id: Optional[str] = None


class ResultCode(str, Enum):
    """Per-item outcome code carried by collect-all outputs."""
    SUCCESS = "0"
    ERROR = "1"


class ItemOutput(BaseModel):
    """Output fields shared by every resource kind."""

    model_config = ConfigDict(validate_assignment=True)

    guid: Optional[str] = None
    id: Optional[str] = None
    request_id: Optional[str] = None


class ResultItemOutput(ItemOutput):
    """Output that carries its own status code and diagnostic message."""

    code: ResultCode = ResultCode.SUCCESS
    message: Optional[str] = None

    def mark_failed(self, error: Exception) -> None:
        self.code = ResultCode.ERROR
        self.message = str(error)


@dataclass
class BatchResult:
    """Ordered per-item outputs plus the error that ended or marred the batch."""
    outputs: List[ItemOutput] = field(default_factory=list)
    error: Optional[ActionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> Dict[str, Any]:
        """Build the wire envelope, omitting unset fields."""
        return {
            'outputs': [
                output.model_dump(mode='json', exclude_none=True) for output in self.outputs
            ]
        }

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
