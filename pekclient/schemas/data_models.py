"""
data_models.py

Pydantic data models for the pekclient SDK.
Defines the task argument record, the server response envelope and the
streamed partial result structure.

Schema Design:
- Wire keys keep the server's spelling (aliases); Python attributes are snake_case
- Unknown keys sent by the server are kept in ``model_extra`` at every level
"""

from typing import Any, Dict, List, Literal, Optional, Union
from enum import Enum

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from pekclient.core.early_termination import EarlyTerminator, is_early_terminator


# =============================================================================
# ENUMS
# =============================================================================


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    KILLED = "killed"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.KILLED, TaskStatus.COMPLETED)


class InitStrategy(str, Enum):
    """Centroid initialization strategies understood by the server."""

    RANDOM = "random"
    KMEANS_PLUS_PLUS = "k-means++"


ALL_METRICS = "ALL"

MetricSelection = Optional[Union[Literal["ALL"], List[str]]]


# =============================================================================
# TASK ARGUMENTS
# =============================================================================


class TaskArgs(BaseModel):
    """Arguments of an ensemble clustering task, as sent with ``start-task``."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    task_id: Optional[str] = Field(None, alias="taskId", description="Owning task identifier")
    data: Optional[str] = Field(None, description="Dataset name")
    n_clusters: int = Field(2, ge=1, description="Number of clusters")
    n_runs: int = Field(4, ge=1, description="Number of independent runs in the ensemble")
    init: Union[str, List[str]] = Field("k-means++", description="'random', 'k-means++' or one per run")
    max_iter: Union[int, List[int]] = Field(300, description="Maximum iterations, global or per run")
    tol: Union[float, List[float]] = Field(1e-4, description="Convergence tolerance, global or per run")
    random_state: Optional[int] = Field(None, description="Seed, None for random")
    freq: Optional[float] = Field(None, ge=0.0, description="Minimum seconds between partial results")
    ets: Optional[List[Any]] = Field(None, description="Early terminators")
    labels_validation_metrics: MetricSelection = Field(None, alias="labelsValidationMetrics")
    labels_comparison_metrics: MetricSelection = Field(None, alias="labelsComparisonMetrics")
    labels_progression_metrics: MetricSelection = Field(None, alias="labelsProgressionMetrics")
    partitions_validation_metrics: MetricSelection = Field(None, alias="partitionsValidationMetrics")
    partitions_comparison_metrics: MetricSelection = Field(None, alias="partitionsComparisonMetrics")
    partitions_progression_metrics: MetricSelection = Field(None, alias="partitionsProgressionMetrics")
    adjust_centroids: bool = Field(True, alias="adjustCentroids", description="Reorder centroids canonically")
    adjust_labels: bool = Field(True, alias="adjustLabels", description="Reorder labels canonically")
    return_partitions: bool = Field(False, alias="returnPartitions", description="Include partitions in partial results")

    @field_validator("ets")
    @classmethod
    def validate_ets(cls, value: Optional[List[Any]]) -> Optional[List[Any]]:
        if value is None:
            return value
        if not all(is_early_terminator(v) for v in value):
            raise ValueError("Must be a list of EarlyTerminator instances.")
        return value

    @field_serializer("ets")
    def serialize_ets(self, value: Optional[List[EarlyTerminator]]) -> Optional[List[Dict[str, Any]]]:
        if value is None:
            return None
        return [et.to_dict() for et in value]

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with the server's key names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# SERVER RESPONSES
# =============================================================================


class ResponseEnvelope(BaseModel):
    """Acknowledgement returned by the server for every request."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    error: bool = False
    error_message: Optional[str] = Field(None, alias="errorMessage")
    data: Any = None


class ServerInfo(BaseModel):
    """Payload of the ``info`` request."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    server_version: Optional[str] = Field(None, alias="serverVersion")
    datasets: List[str] = Field(default_factory=list)


# =============================================================================
# PARTIAL RESULTS
# =============================================================================


class _ServerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PartialResultInfo(_ServerModel):
    """Progress of the ensemble at this update."""

    id: Optional[Any] = Field(None, description="Update identifier")
    iteration: Optional[int] = None
    seed: Optional[int] = None
    last: Optional[bool] = Field(None, description="Last update of the current iteration")
    completed: Optional[bool] = Field(None, description="All runs have finished")
    cost: Optional[float] = None
    best_run: Optional[int] = Field(None, alias="bestRun")
    inertia: Optional[float] = None


class PartialResultMetrics(_ServerModel):
    """Metric results, one group per metric selector."""

    labels_validation_metrics: Any = Field(None, alias="labelsValidationMetrics")
    labels_comparison_metrics: Any = Field(None, alias="labelsComparisonMetrics")
    labels_progression_metrics: Any = Field(None, alias="labelsProgressionMetrics")
    partitions_validation_metrics: Any = Field(None, alias="partitionsValidationMetrics")
    partitions_comparison_metrics: Any = Field(None, alias="partitionsComparisonMetrics")
    partitions_progression_metrics: Any = Field(None, alias="partitionsProgressionMetrics")


class PartialResultRunsStatus(_ServerModel):
    """Per-run progress."""

    run_iteration: Optional[List[Optional[int]]] = Field(None, alias="runIteration")
    run_completed: Optional[List[Optional[bool]]] = Field(None, alias="runCompleted")
    runs_killed: Optional[List[Any]] = Field(None, alias="runsKilled")


class PartialResult(_ServerModel):
    """One streamed snapshot of a running ensemble."""

    info: PartialResultInfo = Field(default_factory=PartialResultInfo)
    early_termination: Any = Field(None, alias="earlyTermination")
    metrics: PartialResultMetrics = Field(default_factory=PartialResultMetrics)
    centroids: Optional[Any] = None
    labels: Optional[Any] = None
    partitions: Optional[Any] = None
    runs_status: PartialResultRunsStatus = Field(default_factory=PartialResultRunsStatus, alias="runsStatus")
    task_id: Optional[str] = Field(None, alias="taskId")

    def extra_fields(self) -> Dict[str, Dict[str, Any]]:
        """
        Unknown keys sent by the server, grouped by block.

        The top-level block is reported under ``"result"``; empty blocks
        are omitted.
        """
        blocks = {
            "result": self.model_extra,
            "info": self.info.model_extra,
            "metrics": self.metrics.model_extra,
            "runsStatus": self.runs_status.model_extra,
        }
        return {name: dict(extra) for name, extra in blocks.items() if extra}

    def centroids_array(self) -> Optional[np.ndarray]:
        """Centroids as a float array (missing values become NaN)."""
        if self.centroids is None:
            return None
        return np.array(self.centroids, dtype=float)

    def labels_array(self) -> Optional[np.ndarray]:
        if self.labels is None:
            return None
        return np.asarray(self.labels)
