"""
Reusable response checks

Each check is a labelled predicate. ``CheckRecorder.check`` evaluates a
group of them, records every label's outcome for the report and feeds the
run-wide ``checks`` rate used by the ``checks`` threshold.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from load_tests.metrics import Rate
from load_tests.transport import Response

logger = logging.getLogger(__name__)

Predicate = Callable[[Response], bool]


@dataclass(frozen=True)
class Lookup:
    """Result of a field-path lookup: either a value is present or it is not."""

    found: bool
    value: Any = None

    @classmethod
    def present(cls, value: Any) -> "Lookup":
        return cls(True, value)

    @classmethod
    def absent(cls) -> "Lookup":
        return cls(False)


def lookup_path(data: Any, path: str) -> Lookup:
    """Walk a dot-separated path (``user.address.city``, ``items.0.id``)."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return Lookup.absent()
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return Lookup.absent()
            current = current[index]
        else:
            return Lookup.absent()
    return Lookup.present(current)


def _json_lookup(response: Response, path: str) -> Lookup:
    try:
        return lookup_path(response.json(), path)
    except ValueError:
        return Lookup.absent()


def _is_json(response: Response) -> bool:
    try:
        response.json()
        return True
    except ValueError:
        return False


def _body_not_empty(response: Response) -> bool:
    return bool(response.body)


class CheckRecorder:
    def __init__(self):
        self.rate = Rate("checks")
        self.results: Dict[str, Dict[str, int]] = {}

    def check(self, response: Response, predicates: Dict[str, Predicate]) -> bool:
        passed_all = True
        for label, predicate in predicates.items():
            try:
                passed = bool(predicate(response))
            except Exception as e:
                logger.debug(f"Check '{label}' raised {e!r}")
                passed = False

            outcome = self.results.setdefault(label, {"passes": 0, "fails": 0})
            outcome["passes" if passed else "fails"] += 1
            self.rate.add(passed)
            passed_all = passed_all and passed
        return passed_all

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Per-label passes and fails."""
        return {label: dict(outcome) for label, outcome in self.results.items()}

    def summary_lines(self):
        lines = []
        for label, outcome in self.results.items():
            total = outcome["passes"] + outcome["fails"]
            mark = "✓" if not outcome["fails"] else "✗"
            lines.append(f"{mark} {label}: {outcome['passes']}/{total}")
        return lines

    # Single checks

    def check_status_ok(self, response: Response) -> bool:
        return self.check(response, {"status is 200": lambda r: r.status == 200})

    def check_status_created(self, response: Response) -> bool:
        return self.check(response, {"status is 201": lambda r: r.status == 201})

    def check_status_no_content(self, response: Response) -> bool:
        return self.check(response, {"status is 204": lambda r: r.status == 204})

    def check_status_success(self, response: Response) -> bool:
        return self.check(response, {"status is 2xx": lambda r: 200 <= r.status < 300})

    def check_status_in_range(self, response: Response, low: int, high: int) -> bool:
        return self.check(
            response,
            {f"status in {low}-{high}": lambda r: low <= r.status <= high},
        )

    def check_response_time(self, response: Response, max_ms: float) -> bool:
        return self.check(
            response,
            {f"response time < {max_ms}ms": lambda r: r.duration_ms < max_ms},
        )

    def check_body_not_empty(self, response: Response) -> bool:
        return self.check(response, {"body is not empty": _body_not_empty})

    def check_body_contains(self, response: Response, text: str) -> bool:
        return self.check(response, {f"body contains '{text}'": lambda r: text in r.text})

    def check_valid_json(self, response: Response) -> bool:
        return self.check(response, {"response is valid JSON": _is_json})

    def check_json_has_field(self, response: Response, field_path: str) -> bool:
        return self.check(
            response,
            {f"JSON has field '{field_path}'": lambda r: _json_lookup(r, field_path).found},
        )

    def check_json_field_equals(self, response: Response, field_path: str, expected: Any) -> bool:
        def field_equals(r: Response) -> bool:
            lookup = _json_lookup(r, field_path)
            return lookup.found and lookup.value == expected

        return self.check(response, {f"JSON field '{field_path}' equals '{expected}'": field_equals})

    def check_header_exists(self, response: Response, header_name: str) -> bool:
        return self.check(
            response,
            {f"header '{header_name}' exists": lambda r: header_name in r.headers},
        )

    def check_header_equals(self, response: Response, header_name: str, expected: str) -> bool:
        return self.check(
            response,
            {f"header '{header_name}' equals '{expected}'": lambda r: r.headers.get(header_name) == expected},
        )

    # Composite checks

    def check_api_success(self, response: Response, max_response_time: Optional[float] = None) -> bool:
        predicates: Dict[str, Predicate] = {
            "status is 2xx": lambda r: 200 <= r.status < 300,
            "response body exists": lambda r: r.body is not None,
            "valid JSON response": _is_json,
        }
        if max_response_time:
            predicates[f"response time < {max_response_time}ms"] = lambda r: r.duration_ms < max_response_time
        return self.check(response, predicates)

    def check_no_errors(self, response: Response) -> bool:
        def no_error_field(r: Response) -> bool:
            try:
                body = r.json()
            except ValueError:
                return True  # not JSON, so no error field
            if not isinstance(body, dict):
                return True
            return not body.get("error") and not body.get("errors")

        return self.check(
            response,
            {
                "no error status (4xx/5xx)": lambda r: r.status < 400,
                "no error field in response": no_error_field,
            },
        )

    def check_get_success(self, response: Response, max_response_time: float = 1000) -> bool:
        return self.check(
            response,
            {
                "GET status is 200": lambda r: r.status == 200,
                "GET response time OK": lambda r: r.duration_ms < max_response_time,
                "GET body not empty": _body_not_empty,
                "GET valid JSON": _is_json,
            },
        )

    def check_post_success(self, response: Response, max_response_time: float = 2000) -> bool:
        return self.check(
            response,
            {
                "POST status is 2xx": lambda r: 200 <= r.status < 300,
                "POST response time OK": lambda r: r.duration_ms < max_response_time,
                "POST valid JSON": _is_json,
            },
        )
