"""Auth failure scenario: requests with broken Authorization headers."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from chaoslab.models import RequestObservation, ScenarioKind, Target
from chaoslab.scenarios.base import ScenarioRunner

AUTH_ERROR_STATUSES = frozenset({401, 403})


def _without_authorization(headers: Dict[str, str]) -> Dict[str, str]:
    return {key: value for key, value in headers.items() if key.lower() != "authorization"}


def auth_header_mutations(headers: Dict[str, str]) -> List[Tuple[str, Dict[str, str]]]:
    """Return ``(description, headers)`` pairs for each broken credential."""
    stripped = _without_authorization(headers)
    return [
        ("No Authorization header", stripped),
        ("Invalid token format", {**stripped, "Authorization": "InvalidTokenFormat"}),
        ("Expired/Invalid Bearer token", {**stripped, "Authorization": "Bearer invalid_token_12345"}),
        ("Empty Authorization header", {**stripped, "Authorization": ""}),
    ]


class AuthFailureScenarioRunner(ScenarioRunner):
    kind = ScenarioKind.AUTH_FAILURE

    def _execute(self, target: Target) -> List[RequestObservation]:
        body = self._default_body(target)
        return [
            self._observe(
                target,
                headers=headers,
                body=body,
                timeout=self._config.request_timeout_seconds,
                label=description,
            )
            for description, headers in auth_header_mutations(target.headers)
        ]

    def _status_message(self, status_code: int, label: Optional[str]) -> str:
        if status_code in AUTH_ERROR_STATUSES:
            return f"{label}: Proper auth error ({status_code})"
        return f"{label}: Unexpected error ({status_code})"
