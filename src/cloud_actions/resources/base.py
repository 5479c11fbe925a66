"""Base lifecycle handler and action interface."""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from cloud_actions.config.models import KindConfig
from cloud_actions.connection.resolver import ConnectionResolver
from cloud_actions.connection.settings import ConnectionSettings
from cloud_actions.engine.batch import AggregationMode, BatchExecutor
from cloud_actions.engine.models import BatchResult, ItemOutput, ResourceSnapshot
from cloud_actions.engine.poller import ConvergenceTarget, poll_until_converged
from cloud_actions.utils.errors import ErrorContext, ParamDecodeError, ValidationError
from cloud_actions.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

RawParam = Union[str, bytes, Mapping[str, Any]]


class ItemInput(BaseModel):
    """Fields shared by every batch item."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    guid: str = ""
    provider_params: str = ""
    id: str = ""

    def connection_params(self) -> str:
        return self.provider_params


class ResourceHandler(ABC):
    """Lifecycle operations for one resource kind.

    Subclasses compose the state guard, a remote mutation and the poller
    into create/terminate (and, for attachable kinds, attach/detach).
    """

    kind: ClassVar[str]

    def __init__(
        self,
        resolver: ConnectionResolver,
        config: KindConfig,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize handler.

        Args:
            resolver: Resolves connection settings into a remote client
            config: Aggregation and poll settings for this kind
            sleep: Blocking sleep used between state queries
        """
        self.resolver = resolver
        self.config = config
        self.sleep = sleep

    def settings_for(self, item: ItemInput) -> ConnectionSettings:
        return self.resolver.settings(item.connection_params())

    def client_for(self, settings: ConnectionSettings):
        return self.resolver.resolve(self.kind, settings)

    def context(self, item: ItemInput, operation: str, resource_id: Optional[str] = None) -> ErrorContext:
        return ErrorContext(
            guid=item.guid or None,
            kind=self.kind,
            operation=operation,
            resource_id=resource_id or item.id or None,
        )

    def wait_for(
        self,
        query: Callable[[str], ResourceSnapshot],
        resource_id: str,
        target: ConvergenceTarget,
        context: ErrorContext
    ) -> ResourceSnapshot:
        """Poll a resource with this kind's policy until it reaches target."""
        context.resource_id = resource_id
        with LogContext(resource_id=resource_id):
            logger.info(f"Waiting for {self.kind} {resource_id} to be {target.describe()}")
            return poll_until_converged(
                lambda: query(resource_id),
                self.config.poll.policy(target),
                resource_id=resource_id,
                context=context,
                sleep=self.sleep,
            )


class Action(ABC):
    """One operation of one resource kind, as seen by the orchestration layer."""

    operation: ClassVar[str]
    input_model: ClassVar[Type[BaseModel]]

    def __init__(self, handler: ResourceHandler):
        self.handler = handler

    @property
    def kind(self) -> str:
        return self.handler.kind

    @property
    def aggregation(self) -> AggregationMode:
        return self.handler.config.aggregation

    def read_param(self, raw: RawParam) -> BaseModel:
        """Decode a raw payload into the batch input model.

        Raises:
            ParamDecodeError: If the payload is malformed
        """
        try:
            if isinstance(raw, (str, bytes)):
                return self.input_model.model_validate_json(raw)
            return self.input_model.model_validate(raw)
        except (PydanticValidationError, json.JSONDecodeError, TypeError) as e:
            raise ParamDecodeError(
                f"{self.kind} {self.operation}: cannot decode request payload: {e}",
                cause=e,
            )

    def check_param(self, inputs: BaseModel) -> None:
        """Validate a decoded batch before any remote call.

        Abort-on-first-failure kinds validate every item here, connection
        settings included. Collect-all kinds only check the envelope; their
        items are validated one by one during ``do`` so that each failure
        lands on its own output.

        Raises:
            ValidationError: If the batch or an item is invalid
        """
        if not isinstance(inputs, self.input_model):
            raise ValidationError(
                f"{self.kind} {self.operation}: input type={type(inputs).__name__} not right"
            )
        if self.aggregation is AggregationMode.ABORT_ON_FIRST_FAILURE:
            for item in self.items(inputs):
                self.validate_item(item)
                self.handler.settings_for(item)

    def do(self, inputs: BaseModel) -> BatchResult:
        """Run the batch executor over the decoded inputs."""
        executor = BatchExecutor(self.aggregation, kind=self.kind, operation=self.operation)
        validate = self.validate_item
        if self.aggregation is AggregationMode.ABORT_ON_FIRST_FAILURE:
            # already checked in check_param
            validate = None
        return executor.execute(self.items(inputs), self.process, self.new_output, validate=validate)

    def run(self, raw: RawParam) -> BatchResult:
        """Decode, validate and execute a raw request payload."""
        inputs = self.read_param(raw)
        self.check_param(inputs)
        return self.do(inputs)

    def items(self, inputs: BaseModel) -> List[ItemInput]:
        return list(inputs.inputs)

    @abstractmethod
    def validate_item(self, item: ItemInput) -> None:
        """Raise ValidationError if the item is not well-formed."""
        pass

    @abstractmethod
    def new_output(self, item: ItemInput) -> ItemOutput:
        pass

    @abstractmethod
    def process(self, item: ItemInput, output: ItemOutput) -> None:
        """Run the lifecycle operation for one item, filling in its output."""
        pass
