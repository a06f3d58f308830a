"""Payload corruption scenario: malformed bodies sent to write endpoints."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Tuple

from chaoslab.metrics import aggregate
from chaoslab.models import HttpMethod, RequestObservation, ScenarioKind, ScenarioResult, Target
from chaoslab.scenarios.base import ScenarioRunner
from chaoslab.transport import NO_BODY

logger = logging.getLogger(__name__)

NOT_APPLICABLE_MESSAGE = "Payload corruption not applicable for GET requests"


def corrupt_payloads(base_payload: Any) -> List[Tuple[str, Any]]:
    """Return ``(description, payload)`` pairs derived from ``base_payload``.

    Only object payloads contribute fields; any other JSON value (an array,
    a scalar) is ignored and the mutations are built from an empty object.
    The "Null payload" entry is ``NO_BODY``: the request carries no body.
    """
    if isinstance(base_payload, dict):
        base: Dict[str, Any] = dict(base_payload)
    else:
        if base_payload is not None:
            logger.warning(
                "Base payload is a %s, not an object; corrupting an empty object instead",
                type(base_payload).__name__,
            )
        base = {}

    first_field: Dict[str, Any] = {}
    if base:
        key = next(iter(base))
        first_field = {key: copy.deepcopy(base[key])}

    return [
        ("Empty payload", {}),
        ("Null payload", NO_BODY),
        ("Missing required fields", first_field),
        ("Wrong data types", {key: _flip_type(value) for key, value in base.items()}),
        (
            "Extra unexpected fields",
            {
                **copy.deepcopy(base),
                "unexpectedField1": "unexpected_value",
                "unexpectedField2": 999,
                "unexpectedField3": True,
            },
        ),
        (
            "Deeply nested invalid structure",
            {
                **copy.deepcopy(base),
                "nested": {"deeply": {"invalid": {"structure": [1, 2, 3, {"foo": "bar"}]}}},
            },
        ),
    ]


def _flip_type(value: Any) -> Any:
    # bool is checked first since it is a subclass of int
    if isinstance(value, bool):
        return "not_a_boolean"
    if isinstance(value, (int, float)):
        return "not_a_number"
    if isinstance(value, str):
        return 12345
    return copy.deepcopy(value)


class PayloadCorruptionScenarioRunner(ScenarioRunner):
    kind = ScenarioKind.PAYLOAD_CORRUPTION

    def run(self, target: Target) -> ScenarioResult:
        if target.method is HttpMethod.GET:
            logger.info("Skipping payload corruption for GET target %s", target.url)
            return aggregate(self.kind, [], self.profile, errors=[NOT_APPLICABLE_MESSAGE])
        return super().run(target)

    def _execute(self, target: Target) -> List[RequestObservation]:
        return [
            self._observe(
                target,
                body=payload,
                timeout=self._config.request_timeout_seconds,
                label=description,
            )
            for description, payload in corrupt_payloads(target.base_payload)
        ]
