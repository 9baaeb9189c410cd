"""
Partial result decoding.

The server streams partial results as JSON text that may contain the
non-standard tokens ``Infinity``, ``-Infinity`` and ``NaN``. They are
decoded as None before the payload is validated; non-finite floats in an
already parsed mapping are replaced the same way.
"""

import json
import math
from typing import Any, Union

from pydantic import ValidationError

from pekclient.schemas.data_models import PartialResult
from pekclient.utils.error_handling import PartialResultDecodeError


def _non_finite_to_none(token: str) -> None:
    return None


def loads_tolerant(raw: Union[str, bytes]) -> Any:
    """``json.loads`` that maps Infinity, -Infinity and NaN to None."""
    return json.loads(raw, parse_constant=_non_finite_to_none)


def drop_non_finite(value: Any) -> Any:
    """Replace infinite and NaN floats nested in dicts and lists with None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: drop_non_finite(v) for k, v in value.items()}
    if isinstance(value, list):
        return [drop_non_finite(v) for v in value]
    return value


def decode_partial_result(raw: Union[str, bytes, dict]) -> PartialResult:
    """
    Decode one streamed partial result.

    Args:
        raw: JSON text as pushed by the server, or an already parsed mapping

    Returns:
        PartialResult snapshot

    Raises:
        PartialResultDecodeError: If the payload is not valid JSON or not a
            partial result object
    """
    if isinstance(raw, dict):
        payload = drop_non_finite(raw)
    else:
        try:
            payload = loads_tolerant(raw)
        except (TypeError, ValueError) as e:
            raise PartialResultDecodeError(
                f"Malformed partial result payload: {e}",
                details={"payload_preview": str(raw)[:200]},
            ) from e

    if not isinstance(payload, dict):
        raise PartialResultDecodeError(
            f"Partial result must be a JSON object, got {type(payload).__name__}",
        )

    try:
        return PartialResult.model_validate(payload)
    except ValidationError as e:
        raise PartialResultDecodeError(
            f"Invalid partial result: {e.error_count()} validation error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e
