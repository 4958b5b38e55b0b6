"""
Evaluation capture session.

The controller owns one CaptureSession: the evaluation being filled in, the
active test type tab, the selected athlete, the raw form and its errors.
Views read the session and call controller methods; they never mutate it.

States:
    NO_ATHLETE  no athlete selected (and not editing), form disabled
    READY       form enabled
    SUBMITTING  create/update in flight, form disabled

A submit always lands back in READY. On success the athlete and test type
are kept so the next capture starts immediately; on failure the form is
kept as typed so the user can correct it and resubmit.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ..clients.api_client import ApiError, ClubApiClient
from ..models import Athlete, Evaluation, TestRecord, TestType, record_from_dict
from ..utils.registry import get_field_defaults, get_test_type_label
from .athlete_selection import AthleteSelectionContext
from .cache_policy import CacheInvalidationPolicy, InvalidationTarget, MutationKind, QueryCache
from .evaluation_service import EvaluationService
from .test_schema import TestRecordSchema, metric_preview

logger = logging.getLogger(__name__)


class SessionState(Enum):
    NO_ATHLETE = "no_athlete"
    READY = "ready"
    SUBMITTING = "submitting"


class SessionBusyError(Exception):
    """A submit was requested while another is in flight."""
    pass


@dataclass
class SubmitOutcome:
    """User-visible result of one submit."""
    level: str
    message: str
    errors: Dict[str, str] = field(default_factory=dict)
    record: Optional[Dict[str, Any]] = None
    invalidated: Set[InvalidationTarget] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return self.level == 'success'


@dataclass
class CaptureSession:
    evaluation_id: int
    test_type: TestType = TestType.SPRINT
    selection: AthleteSelectionContext = field(default_factory=AthleteSelectionContext)
    form: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    editing: Optional[TestRecord] = None
    submitting: bool = False


def _blank_form(test_type: TestType) -> Dict[str, Any]:
    form = get_field_defaults(test_type.value)
    form['observations'] = ''
    return form


class EvaluationSessionController:
    """
    Orchestrates schema validation, athlete selection and submission.

    Usage:
        controller = EvaluationSessionController(client, evaluation_id=4)
        controller.select_athlete(athlete)
        controller.select_test_type('yoyo')
        outcome = controller.submit({'shuttle_count': '52', 'final_level': '16.3'})
    """

    def __init__(
        self,
        client: ClubApiClient,
        evaluation_id: Optional[int] = None,
        session: Optional[CaptureSession] = None,
        schema: Optional[TestRecordSchema] = None,
        cache: Optional[QueryCache] = None,
        policy: Optional[CacheInvalidationPolicy] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if session is None:
            if evaluation_id is None:
                raise ValueError("evaluation_id or session is required")
            session = CaptureSession(evaluation_id=int(evaluation_id))

        self.client = client
        self.session = session
        self.schema = schema or TestRecordSchema()
        self.cache = cache if cache is not None else QueryCache()
        self.policy = policy or CacheInvalidationPolicy()
        self.evaluations = EvaluationService(client, cache=self.cache, policy=self.policy)
        self.clock = clock

        if not self.session.form:
            self.session.form = _blank_form(self.session.test_type)

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self.session.submitting:
            return SessionState.SUBMITTING
        if self.session.editing is None and not self.session.selection.has_selection:
            return SessionState.NO_ATHLETE
        return SessionState.READY

    @property
    def is_editing(self) -> bool:
        return self.session.editing is not None

    # ------------------------------------------------------------------
    # intents
    # ------------------------------------------------------------------

    def select_athlete(self, athlete: Athlete):
        self.session.selection.select(athlete)

    def clear_athlete(self):
        self.session.selection.clear()

    def select_test_type(self, test_type: Union[str, TestType]):
        """Switch tab. The athlete stays selected; the form resets to defaults."""
        test_type = TestType.from_value(test_type)
        if test_type == self.session.test_type:
            return
        self.session.test_type = test_type
        self.session.editing = None
        self.reset_form()

    def update_field(self, name: str, value: Any):
        self.session.form[name] = value
        self.session.errors.pop(name, None)

    def reset_form(self):
        self.session.form = _blank_form(self.session.test_type)
        self.session.errors = {}

    def begin_edit(self, record: Union[TestRecord, Dict[str, Any]]):
        """Load an existing test into the form. Its athlete and evaluation are fixed."""
        if isinstance(record, dict):
            record = record_from_dict(record)
        if record.id is None:
            raise ValueError("Cannot edit a test record without an id")

        self.session.test_type = record.test_type
        self.session.editing = record
        self.session.errors = {}
        form = {
            name: '' if getattr(record, name) is None else getattr(record, name)
            for name in record.measurement_fields()
        }
        form['observations'] = record.observations or ''
        self.session.form = form

    def cancel_edit(self):
        self.session.editing = None
        self.reset_form()

    def preview(self, raw_input: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Metric preview of the current form; None without an athlete or while invalid."""
        athlete_id = self._target_athlete_id()
        if athlete_id is None:
            return None
        result = self.schema.validate(
            self.session.test_type,
            raw_input if raw_input is not None else self.session.form,
            evaluation_id=self.session.evaluation_id,
            athlete_id=athlete_id,
        )
        return metric_preview(result.record) if result.is_valid else None

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    def _target_athlete_id(self) -> Optional[int]:
        if self.session.editing is not None:
            return self.session.editing.athlete_id
        return self.session.selection.athlete_id

    def submit(self, raw_input: Optional[Dict[str, Any]] = None) -> SubmitOutcome:
        """
        Validate and send the current form as a create (or update in edit mode).

        Args:
            raw_input: Form values; defaults to the session form

        Returns:
            SubmitOutcome; level 'error' for validation or server failures

        Raises:
            SessionBusyError: If a submit is already in flight
        """
        if self.session.submitting:
            raise SessionBusyError("A submit is already in progress")

        session = self.session
        if raw_input is not None:
            session.form = dict(raw_input)

        editing = session.editing
        athlete_id = self._target_athlete_id()
        if athlete_id is None:
            return SubmitOutcome(level='error', message="Select an athlete before saving a test")

        evaluation_id = editing.evaluation_id if editing else session.evaluation_id
        test_type = session.test_type
        label = get_test_type_label(test_type.value)

        result = self.schema.validate(
            test_type, session.form, evaluation_id=evaluation_id, athlete_id=athlete_id
        )
        if not result.is_valid:
            session.errors = dict(result.errors)
            return SubmitOutcome(
                level='error',
                message="Please correct the highlighted fields",
                errors=dict(result.errors),
            )

        record = result.record
        session.submitting = True
        try:
            if editing:
                saved = self.client.update_test(test_type, editing.id, record.to_update_payload())
                kind = MutationKind.TEST_UPDATE
            else:
                record.date = self.clock().isoformat(timespec='seconds')
                saved = self.client.create_test(test_type, record.to_create_payload())
                kind = MutationKind.TEST_CREATE
        except ApiError as e:
            logger.error(
                f"Saving {test_type.value} test for athlete {athlete_id} failed: {e.message}",
                extra={"test_type": test_type.value, "athlete_id": athlete_id,
                       "evaluation_id": evaluation_id, "status_code": e.status_code}
            )
            server_errors = e.errors if isinstance(e.errors, dict) else {}
            session.errors = {k: str(v) for k, v in server_errors.items()}
            return SubmitOutcome(
                level='error',
                message=f"{label} was not saved: {e.message}",
                errors=dict(session.errors),
            )
        finally:
            session.submitting = False

        targets = self.policy.on_mutation(kind, evaluation_id=evaluation_id, athlete_id=athlete_id)
        self.cache.invalidate(targets)

        if editing:
            session.editing = None
        self.reset_form()

        verb = "updated" if kind == MutationKind.TEST_UPDATE else "saved"
        logger.info(f"{label} {verb} for athlete {athlete_id} in evaluation {evaluation_id}")
        return SubmitOutcome(
            level='success',
            message=f"{label} {verb}",
            record=saved,
            invalidated=targets,
        )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def evaluation(self) -> Evaluation:
        return self.evaluations.get_evaluation(self.session.evaluation_id)

    def tests(self) -> List[TestRecord]:
        return self.evaluations.get_tests(self.session.evaluation_id)

    def delete_test(self, record: TestRecord) -> Set[InvalidationTarget]:
        self.client.delete_test(record.test_type, record.id)
        targets = self.policy.on_mutation(
            MutationKind.TEST_DELETE,
            evaluation_id=record.evaluation_id,
            athlete_id=record.athlete_id,
        )
        self.cache.invalidate(targets)
        return targets
