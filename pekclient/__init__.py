"""
pekclient: client SDK for progressive clustering servers.

Exports:
- PekClient: Connection, dataset catalog and task registry
- PekTask: Ensemble clustering task
- PekDataset: Dataset attribute accessor
- EarlyTermination helpers and the default catalog
- PartialResult models
- Error hierarchy
"""

from pekclient.utils.error_handling import (
    PekError,
    PekClientError,
    RemoteError,
    ConnectionFailedError,
    RequestTimeoutError,
    PekDatasetError,
    PekTaskError,
    TaskConfigurationError,
    TaskStateError,
    PartialResultDecodeError,
    PekEarlyTerminationError,
)
from pekclient.core.early_termination import (
    EarlyTerminationAction,
    EarlyTerminator,
    EarlyTerminatorNotifier,
    EarlyTerminatorKiller,
    DefaultEarlyTerminator,
    is_early_terminator,
)
from pekclient.schemas.data_models import (
    ALL_METRICS,
    TaskStatus,
    TaskArgs,
    PartialResult,
)
from pekclient.core.results import decode_partial_result
from pekclient.core.task import PekTask
from pekclient.core.dataset import PekDataset
from pekclient.services.client import PekClient

__version__ = "1.0.0"

__all__ = [
    "PekClient",
    "PekTask",
    "PekDataset",
    "TaskStatus",
    "TaskArgs",
    "PartialResult",
    "ALL_METRICS",
    "decode_partial_result",
    "EarlyTerminationAction",
    "EarlyTerminator",
    "EarlyTerminatorNotifier",
    "EarlyTerminatorKiller",
    "DefaultEarlyTerminator",
    "is_early_terminator",
    "PekError",
    "PekClientError",
    "RemoteError",
    "ConnectionFailedError",
    "RequestTimeoutError",
    "PekDatasetError",
    "PekTaskError",
    "TaskConfigurationError",
    "TaskStateError",
    "PartialResultDecodeError",
    "PekEarlyTerminationError",
]
