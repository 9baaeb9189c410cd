"""
Unit tests for partial result decoding.
"""

import json
import numpy as np
import pytest

from pekclient.core.results import decode_partial_result, loads_tolerant
from pekclient.schemas.data_models import PartialResult
from pekclient.utils.error_handling import PartialResultDecodeError


@pytest.mark.unit
class TestNonFiniteTokens:
    """Test Infinity, -Infinity and NaN handling."""

    def test_tokens_become_none(self):
        """Test every non-finite token decodes to None."""
        raw = '{"info": {"cost": Infinity, "inertia": -Infinity, "seed": NaN, "iteration": 2}}'

        result = decode_partial_result(raw)

        assert result.info.cost is None
        assert result.info.inertia is None
        assert result.info.seed is None
        assert result.info.iteration == 2

    def test_tokens_inside_arrays(self):
        """Test tokens nested in lists."""
        raw = '{"centroids": [[1.0, NaN], [-Infinity, 2.0]], "info": {}}'

        result = decode_partial_result(raw)

        assert result.centroids == [[1.0, None], [None, 2.0]]

    def test_strings_are_untouched(self):
        """Test token text inside strings is preserved."""
        assert loads_tolerant('{"name": "NaN Infinity"}') == {"name": "NaN Infinity"}


@pytest.mark.unit
class TestDecodePartialResult:
    """Test the structured decoding."""

    def test_decode_full_message(self, partial_result_message):
        """Test all named blocks are decoded."""
        message = partial_result_message("task-1", iteration=3)

        result = decode_partial_result(json.dumps(message))

        assert isinstance(result, PartialResult)
        assert result.task_id == "task-1"
        assert result.info.iteration == 3
        assert result.info.best_run == 1
        assert result.metrics.labels_validation_metrics == {"silhouette": 0.41}
        assert result.runs_status.run_iteration == [3, 3]
        assert result.runs_status.runs_killed == []
        assert result.labels == [0, 1, 2, 1]
        assert result.partitions is None

    def test_decode_mapping(self, partial_result_message):
        """Test an already parsed message is accepted."""
        result = decode_partial_result(partial_result_message("task-2"))
        assert result.task_id == "task-2"

    def test_mapping_non_finite_floats(self, partial_result_message):
        """Test non-finite floats in a parsed message become None."""
        message = partial_result_message("task-3")
        message["info"]["cost"] = float("inf")
        message["info"]["inertia"] = float("nan")
        message["centroids"] = [[float("-inf"), 0.5]]

        result = decode_partial_result(message)

        assert result.info.cost is None
        assert result.info.inertia is None
        assert result.centroids == [[None, 0.5]]
        assert message["info"]["cost"] == float("inf")

    def test_unknown_fields_kept_separately(self, partial_result_message):
        """Test unknown keys go to the extra side-map at every level."""
        message = partial_result_message("task-1", serverTime=17.5)
        message["info"]["elapsed"] = 0.8
        message["runsStatus"]["runPaused"] = [False, False]

        result = decode_partial_result(json.dumps(message))

        assert result.extra_fields() == {
            "result": {"serverTime": 17.5},
            "info": {"elapsed": 0.8},
            "runsStatus": {"runPaused": [False, False]},
        }
        assert not hasattr(result.info, "_elapsed")

    def test_missing_blocks_default_to_empty(self):
        """Test a minimal message decodes."""
        result = decode_partial_result('{"taskId": "t"}')

        assert result.info.iteration is None
        assert result.metrics.partitions_progression_metrics is None
        assert result.extra_fields() == {}

    def test_malformed_json(self):
        """Test malformed payloads raise a decode error."""
        with pytest.raises(PartialResultDecodeError):
            decode_partial_result('{"info": {"iteration": 1')

    def test_non_object_payload(self):
        with pytest.raises(PartialResultDecodeError):
            decode_partial_result("[1, 2, 3]")

    def test_wrong_block_type(self):
        """Test structurally invalid messages raise a decode error."""
        with pytest.raises(PartialResultDecodeError):
            decode_partial_result('{"info": "not-an-object"}')

    def test_array_helpers(self):
        """Test numpy conversions."""
        result = decode_partial_result('{"centroids": [[1.0, NaN]], "labels": [0, 1, 1]}')

        centroids = result.centroids_array()
        assert centroids.shape == (1, 2)
        assert np.isnan(centroids[0, 1])
        assert result.labels_array().tolist() == [0, 1, 1]
        assert decode_partial_result("{}").centroids_array() is None
