"""
Club management REST API client.

Features:
- Bearer token authentication on every request
- Response envelope unwrapping ({status, data} -> data)
- Uniform ApiError for any non-2xx answer ({status, message|detail, errors?})
- Retry with backoff for idempotent reads only
- Structured request logging with timing

Base path and token come from Config; session storage and login redirects
belong to the caller (see `on_unauthorized`).
"""

import time
import threading
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import requests

from ..config.settings import Config
from ..models import (
    Athlete,
    AttendanceRecord,
    BulkAttendanceResult,
    Evaluation,
    Page,
    TestType,
)
from ..utils.logging_config import APIRequestLogger
from ..utils.retry import RetryConfig, MaxRetriesExceeded, call_with_retry

logger = logging.getLogger(__name__)


# ============================================
# ENDPOINTS
# ============================================

ATHLETES = "/athletes"
ATTENDANCES = "/attendances"
ATTENDANCES_BULK = "/attendances/bulk"
ATTENDANCES_SUMMARY = "/attendances/summary"
ATTENDANCES_DATES = "/attendances/dates"
EVALUATIONS = "/evaluations"

TEST_ENDPOINTS = {
    TestType.SPRINT: "/tests/sprint",
    TestType.YOYO: "/tests/yoyo",
    TestType.ENDURANCE: "/tests/endurance",
    TestType.TECHNICAL: "/tests/technical",
}

# Grouped keys some backends return instead of (or next to) `all`
GROUPED_TEST_KEYS = {
    'sprint_tests': TestType.SPRINT,
    'yoyo_tests': TestType.YOYO,
    'endurance_tests': TestType.ENDURANCE,
    'technical_assessments': TestType.TECHNICAL,
}


# ============================================
# ERRORS
# ============================================

class ApiError(Exception):
    """Any non-2xx answer, or a transport failure (status_code 0)."""

    def __init__(self, status_code: int, message: str, errors: Optional[Any] = None):
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors


class UnauthorizedError(ApiError):
    """401 on a non-auth endpoint."""
    pass


def _error_message(response: requests.Response) -> Tuple[str, Optional[Any]]:
    """Pull the human message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "Request failed", None

    if not isinstance(body, dict):
        return str(body), None

    message = body.get('message') or body.get('detail')
    if isinstance(message, list):
        # FastAPI-style validation detail: [{loc, msg, type}, ...]
        message = "; ".join(
            item.get('msg', str(item)) if isinstance(item, dict) else str(item)
            for item in message
        )
    return str(message or response.reason or "Request failed"), body.get('errors')


def _unwrap(body: Any) -> Any:
    """Strip the {status, data} envelope when present."""
    if isinstance(body, dict) and 'data' in body and 'status' in body:
        return body['data']
    return body


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop unset filters so the backend applies its defaults."""
    cleaned = {}
    for key, value in (params or {}).items():
        if value is None or value == '':
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        cleaned[key] = value
    return cleaned


# ============================================
# CLIENT
# ============================================

class ClubApiClient:
    """
    Client for the club management backend.

    Reads are retried on transport failures; writes are sent exactly once.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or Config.get_api_url()).rstrip('/')
        self.timeout = timeout or Config.API_TIMEOUT
        self.retry_config = retry_config or RetryConfig(max_retries=Config.FETCH_RETRIES)
        self.on_unauthorized = on_unauthorized

        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = token if token is not None else Config.API_TOKEN
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

        # requests.Session is not thread-safe: without an injected session,
        # each thread (e.g. the reconciler's fetch pool) gets its own
        self._shared_session = session
        if session is not None:
            session.headers.update(self.headers)
        self._local = threading.local()
        self.api_logger = APIRequestLogger("club")

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
        return session

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Single HTTP exchange. Non-2xx -> ApiError."""
        url = f"{self.base_url}{path}"
        start_time = time.time()
        response = self.session.request(
            method, url, params=params or None, json=json, timeout=self.timeout
        )
        response_time_ms = round((time.time() - start_time) * 1000, 1)

        if not 200 <= response.status_code < 300:
            message, errors = _error_message(response)
            self.api_logger.log_request(
                method, path, response.status_code, response_time_ms, error=message, params=params
            )
            if response.status_code == 401:
                if self.on_unauthorized:
                    self.on_unauthorized()
                raise UnauthorizedError(response.status_code, message, errors)
            raise ApiError(response.status_code, message, errors)

        if response.status_code == 204 or not response.content:
            data = None
        else:
            try:
                body = response.json()
            except ValueError as e:
                message = f"Response is not valid JSON: {e}"
                self.api_logger.log_request(
                    method, path, response.status_code, response_time_ms, error=message, params=params
                )
                raise ApiError(response.status_code, message) from e
            data = _unwrap(body)

        records = len(data) if isinstance(data, list) else None
        if isinstance(data, dict) and isinstance(data.get('items'), list):
            records = len(data['items'])
        self.api_logger.log_request(
            method, path, response.status_code, response_time_ms, records, params=params
        )
        return data

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return call_with_retry(
                self._send, "GET", path, params=_clean_params(params), config=self.retry_config
            )
        except MaxRetriesExceeded as e:
            raise ApiError(0, f"Could not reach server: {e.last_exception}") from e

    def _write(self, method: str, path: str, json: Optional[Any] = None) -> Any:
        try:
            return self._send(method, path, json=json)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise ApiError(0, f"Could not reach server: {e}") from e

    # ------------------------------------------------------------------
    # athletes
    # ------------------------------------------------------------------

    def list_athletes(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        type_athlete: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> Page:
        """GET /athletes -> {items, total}"""
        data = self._get(ATHLETES, {
            'page': page,
            'limit': limit or Config.PAGE_LIMIT,
            'search': search,
            'type_athlete': type_athlete,
            'is_active': is_active,
        }) or {}
        items = data.get('items', []) if isinstance(data, dict) else data
        total = data.get('total', len(items)) if isinstance(data, dict) else len(items)
        return Page(items=[Athlete.from_dict(item) for item in items], total=int(total or 0))

    # ------------------------------------------------------------------
    # attendance
    # ------------------------------------------------------------------

    def get_attendance_by_date(
        self,
        date: str,
        type_athlete: Optional[str] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[AttendanceRecord]:
        """GET /attendances?date -> {items} or a raw list"""
        data = self._get(ATTENDANCES, {
            'date': date,
            'type_athlete': type_athlete,
            'search': search,
            'page': page,
            'limit': limit,
        })
        if isinstance(data, dict):
            data = data.get('items', [])
        return [AttendanceRecord.from_dict(item, date=date) for item in data or []]

    def create_attendance_bulk(self, payload: Dict[str, Any]) -> BulkAttendanceResult:
        """POST /attendances/bulk {date, time?, records[]} -> {created_count, updated_count}"""
        data = self._write("POST", ATTENDANCES_BULK, json=payload)
        return BulkAttendanceResult.from_dict(data or {})

    def get_attendance_summary(self, date: str) -> Dict[str, Any]:
        return self._get(ATTENDANCES_SUMMARY, {'date': date}) or {}

    def get_attendance_dates(self) -> List[str]:
        data = self._get(ATTENDANCES_DATES)
        if isinstance(data, dict):
            data = data.get('items', data.get('dates', []))
        return list(data or [])

    # ------------------------------------------------------------------
    # evaluations
    # ------------------------------------------------------------------

    def list_evaluations(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        user_id: Optional[int] = None,
        date: Optional[str] = None,
    ) -> Page:
        data = self._get(EVALUATIONS, {
            'page': page, 'limit': limit, 'search': search, 'user_id': user_id, 'date': date,
        }) or {}
        items = data.get('items', []) if isinstance(data, dict) else data
        total = data.get('total', len(items)) if isinstance(data, dict) else len(items)
        return Page(items=[Evaluation.from_dict(item) for item in items], total=int(total or 0))

    def get_evaluation(self, evaluation_id: int) -> Evaluation:
        return Evaluation.from_dict(self._get(f"{EVALUATIONS}/{evaluation_id}"))

    def create_evaluation(self, payload: Dict[str, Any]) -> Evaluation:
        return Evaluation.from_dict(self._write("POST", EVALUATIONS, json=payload))

    def update_evaluation(self, evaluation_id: int, payload: Dict[str, Any]) -> Evaluation:
        return Evaluation.from_dict(
            self._write("PUT", f"{EVALUATIONS}/{evaluation_id}", json=payload)
        )

    def delete_evaluation(self, evaluation_id: int) -> None:
        self._write("DELETE", f"{EVALUATIONS}/{evaluation_id}")

    # ------------------------------------------------------------------
    # tests
    # ------------------------------------------------------------------

    def get_tests_by_evaluation(self, evaluation_id: int) -> List[Dict[str, Any]]:
        """
        GET /evaluations/:id/tests -> {all: Test[]}

        Records from grouped keys get their `type` filled in when missing.
        """
        data = self._get(f"{EVALUATIONS}/{evaluation_id}/tests") or {}
        if isinstance(data, list):
            return data
        if 'all' in data:
            return list(data['all'] or [])

        tests = []
        for key, test_type in GROUPED_TEST_KEYS.items():
            for item in data.get(key) or []:
                tests.append({'type': test_type.record_type, **item})
        return tests

    def create_test(self, test_type: Union[str, TestType], payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = TEST_ENDPOINTS[TestType.from_value(test_type)]
        return self._write("POST", endpoint, json=payload) or {}

    def update_test(
        self,
        test_type: Union[str, TestType],
        test_id: int,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        endpoint = TEST_ENDPOINTS[TestType.from_value(test_type)]
        return self._write("PUT", f"{endpoint}/{test_id}", json=payload) or {}

    def delete_test(self, test_type: Union[str, TestType], test_id: int) -> None:
        endpoint = TEST_ENDPOINTS[TestType.from_value(test_type)]
        self._write("DELETE", f"{endpoint}/{test_id}")
