"""
Attendance Bulk Reconciler - fetch, merge, edit, submit.

Cycle:
1. Fetch the roster and the saved attendance for a date, concurrently
2. Seed the draft (saved record, else absent) from scratch
3. Let the caller edit the draft through `store`
4. Submit every roster athlete in ONE bulk upsert
5. Report the aggregate created/updated counts

A batch is all-or-nothing: a failed submit raises BulkSubmissionError and
leaves the draft exactly as it was, so the same batch can be resubmitted.
A successful submit keeps the draft for continued editing.

Every refresh takes a request token. A response that arrives after a newer
refresh started is discarded instead of overwriting the fresher draft.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

from ..clients.api_client import ApiError, ClubApiClient
from ..config.settings import Config
from ..models import Athlete, AttendanceRecord
from ..utils.logging_config import log_execution_time
from .attendance_store import AttendanceRecordStore, ReconciliationError, UnknownAthleteError
from .cache_policy import CacheInvalidationPolicy, MutationKind, QueryCache

logger = logging.getLogger(__name__)

__all__ = [
    'BulkReconciler',
    'BulkSubmitSummary',
    'ReconciliationError',
    'BulkSubmissionError',
    'EmptyRosterError',
    'UnknownAthleteError',
]


# ============================================
# OUTCOMES & ERRORS
# ============================================

@dataclass
class BulkSubmitSummary:
    """User-visible result of a bulk submit."""
    level: str
    message: str
    created_count: int = 0
    updated_count: int = 0
    present: int = 0
    absent: int = 0


class BulkSubmissionError(ReconciliationError):
    """The backend rejected the whole batch (or could not be reached)."""

    def __init__(self, cause: ApiError):
        self.cause = cause
        self.summary = BulkSubmitSummary(
            level='error',
            message=f"Attendance was not saved: {cause.message}",
        )
        super().__init__(self.summary.message)


class EmptyRosterError(ReconciliationError):
    """Submit with nothing loaded."""

    def __init__(self):
        super().__init__("No athletes loaded; refresh the roster before submitting")


# ============================================
# RECONCILER
# ============================================

class BulkReconciler:
    """
    Owns the attendance draft for one date/filter view.

    Usage:
        reconciler = BulkReconciler(client)
        reconciler.refresh('2024-05-01', type_athlete='ESTUDIANTES')
        reconciler.store.set_present(12, True)
        summary = reconciler.submit()
    """

    def __init__(
        self,
        client: ClubApiClient,
        store: Optional[AttendanceRecordStore] = None,
        policy: Optional[CacheInvalidationPolicy] = None,
        cache: Optional[QueryCache] = None,
        page_limit: Optional[int] = None,
    ):
        self.client = client
        self.store = store or AttendanceRecordStore()
        self.policy = policy or CacheInvalidationPolicy()
        self.cache = cache
        self.page_limit = page_limit or Config.PAGE_LIMIT

        self.search: Optional[str] = None
        self.type_athlete: Optional[str] = None

        self._token = 0
        self._token_lock = threading.Lock()

    # ------------------------------------------------------------------
    # refresh
    # ------------------------------------------------------------------

    def next_token(self) -> int:
        with self._token_lock:
            self._token += 1
            return self._token

    def is_current(self, token: int) -> bool:
        with self._token_lock:
            return token == self._token

    @log_execution_time()
    def refresh(
        self,
        date: str,
        search: Optional[str] = None,
        type_athlete: Optional[str] = None,
    ) -> bool:
        """
        Reload roster and saved attendance for a date and rebuild the draft.

        Args:
            date: Attendance date (YYYY-MM-DD)
            search: Optional roster search text
            type_athlete: Optional athlete type filter (e.g. ESTUDIANTES)

        Returns:
            True if the draft was rebuilt, False if a newer refresh superseded this one

        Raises:
            ApiError: If either fetch fails (the draft is left as it was)
        """
        token = self.next_token()

        with ThreadPoolExecutor(max_workers=2) as ex:
            roster_future = ex.submit(
                self.client.list_athletes,
                page=1,
                limit=self.page_limit,
                search=search,
                type_athlete=type_athlete,
                is_active=True,
            )
            records_future = ex.submit(
                self.client.get_attendance_by_date,
                date,
                type_athlete=type_athlete,
                search=search,
            )
            roster = roster_future.result().items
            records = records_future.result()

        return self.apply_snapshot(token, date, roster, records, search, type_athlete)

    def apply_snapshot(
        self,
        token: int,
        date: str,
        roster: List[Athlete],
        records: List[AttendanceRecord],
        search: Optional[str] = None,
        type_athlete: Optional[str] = None,
    ) -> bool:
        """Seed the draft from fetched data unless `token` is stale."""
        # Staleness check and reseed form one critical section
        with self._token_lock:
            if token != self._token:
                logger.info(
                    f"Discarding stale attendance response for {date} (token {token})",
                    extra={"token": token, "date": date}
                )
                return False

            self.store.seed(roster, records, date)
            self.search = search
            self.type_athlete = type_athlete
            return True

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    def build_payload(self, time: Optional[str] = None) -> dict:
        """{date, time?, records[]}; time omitted so the server applies now."""
        if not len(self.store):
            raise EmptyRosterError()

        payload = {'date': self.store.date, 'records': self.store.build_records()}
        if time:
            payload['time'] = time
        return payload

    @log_execution_time()
    def submit(self, time: Optional[str] = None) -> BulkSubmitSummary:
        """
        Send the whole draft as one bulk upsert.

        Returns:
            Success summary with created/updated and present/absent counts

        Raises:
            EmptyRosterError: If no roster is loaded (no request is sent)
            BulkSubmissionError: If the batch was rejected; the draft is untouched
        """
        payload = self.build_payload(time)
        counts = self.store.summary()

        try:
            result = self.client.create_attendance_bulk(payload)
        except ApiError as e:
            logger.error(
                f"Bulk attendance submit for {payload['date']} failed: {e.message}",
                extra={"date": payload['date'], "records": len(payload['records']),
                       "status_code": e.status_code}
            )
            raise BulkSubmissionError(e) from e

        if self.cache is not None:
            self.cache.invalidate(self.policy.on_mutation(MutationKind.ATTENDANCE_BULK))

        message = (
            f"Attendance saved for {payload['date']}: "
            f"{result.created_count} created, {result.updated_count} updated "
            f"({counts['present']} present, {counts['absent']} absent)"
        )
        logger.info(message)

        return BulkSubmitSummary(
            level='success',
            message=message,
            created_count=result.created_count,
            updated_count=result.updated_count,
            present=counts['present'],
            absent=counts['absent'],
        )
