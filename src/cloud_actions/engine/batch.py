"""Sequential batch execution with per-kind aggregation discipline."""

from enum import Enum
from typing import Callable, Optional, Sequence, TypeVar

from cloud_actions.engine.models import BatchResult, ItemOutput, ResultCode, ResultItemOutput
from cloud_actions.utils.errors import ActionError, ErrorContext, error_handler
from cloud_actions.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class AggregationMode(str, Enum):
    """How a batch reacts to a failed item."""
    ABORT_ON_FIRST_FAILURE = "abort_on_first_failure"
    COLLECT_ALL = "collect_all"


class BatchExecutor:
    """Runs batch items one at a time, in input order."""

    def __init__(
        self,
        mode: AggregationMode,
        kind: Optional[str] = None,
        operation: Optional[str] = None
    ):
        """Initialize batch executor.

        Args:
            mode: Aggregation discipline for failed items
            kind: Resource kind, for logs and error context
            operation: Operation name, for logs and error context
        """
        self.mode = mode
        self.kind = kind
        self.operation = operation

    def execute(
        self,
        items: Sequence[T],
        process: Callable[[T, ItemOutput], None],
        new_output: Callable[[T], ItemOutput],
        validate: Optional[Callable[[T], None]] = None
    ) -> BatchResult:
        """Execute every item and aggregate the outputs.

        Under ABORT_ON_FIRST_FAILURE the result holds the outputs of the
        items that succeeded before the first failure, and that failure.
        Under COLLECT_ALL every item yields an output carrying its own
        result code, and the result holds the last error seen.

        Args:
            items: Validated batch items
            process: Runs one item, filling in its output
            new_output: Builds the output skeleton for an item
            validate: Per-item validation run before process

        Returns:
            BatchResult in input order
        """
        result = BatchResult()

        for index, item in enumerate(items):
            output = new_output(item)
            if self.mode is AggregationMode.COLLECT_ALL and not isinstance(output, ResultItemOutput):
                raise TypeError(
                    f"{self.mode.value} needs outputs with a result code, got {type(output).__name__}"
                )

            with LogContext(guid=output.guid, kind=self.kind, operation=self.operation):
                error = self._run_item(item, output, process, validate)

            if error is None:
                if isinstance(output, ResultItemOutput):
                    output.code = ResultCode.SUCCESS
                result.outputs.append(output)
                continue

            logger.error(
                f"{self.kind} {self.operation} item {index + 1}/{len(items)} "
                f"(guid={output.guid}) failed: {error}"
            )

            if self.mode is AggregationMode.ABORT_ON_FIRST_FAILURE:
                skipped = len(items) - index - 1
                if skipped:
                    logger.warning(f"Aborting batch, {skipped} remaining item(s) not attempted")
                result.error = error
                return result

            output.mark_failed(error)
            result.outputs.append(output)
            result.error = error

        if result.error is None:
            logger.info(f"All {len(items)} {self.kind} item(s) finished {self.operation}")
        else:
            failed = sum(1 for o in result.outputs if o.code is ResultCode.ERROR)
            logger.warning(f"{failed}/{len(items)} {self.kind} item(s) failed {self.operation}")

        return result

    def _run_item(self, item, output, process, validate) -> Optional[ActionError]:
        try:
            if validate is not None:
                validate(item)
            process(item, output)
        except Exception as e:
            error = error_handler.handle_exception(
                e,
                ErrorContext(guid=output.guid, kind=self.kind, operation=self.operation)
            )
            if error.context.guid is None:
                error.context.guid = output.guid
            error.context.kind = error.context.kind or self.kind
            error.context.operation = error.context.operation or self.operation
            return error
        return None
