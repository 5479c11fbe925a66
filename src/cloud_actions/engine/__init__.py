"""Polling, state guard and batch aggregation primitives."""

from .models import (
    ResourceState,
    ResourceSnapshot,
    MutationAck,
    ResultCode,
    ItemOutput,
    ResultItemOutput,
    BatchResult,
)
from .poller import (
    ConvergenceTarget,
    StateEquals,
    ExistenceEquals,
    PollPolicy,
    poll_until_converged,
)
from .guard import GuardResult, ensure_state
from .batch import AggregationMode, BatchExecutor

__all__ = [
    'ResourceState',
    'ResourceSnapshot',
    'MutationAck',
    'ResultCode',
    'ItemOutput',
    'ResultItemOutput',
    'BatchResult',
    'ConvergenceTarget',
    'StateEquals',
    'ExistenceEquals',
    'PollPolicy',
    'poll_until_converged',
    'GuardResult',
    'ensure_state',
    'AggregationMode',
    'BatchExecutor',
]
