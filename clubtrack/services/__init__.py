# Service modules
from .test_schema import (
    TestRecordSchema,
    SchemaResult,
    metric_preview,
    format_pace,
)
from .athlete_selection import AthleteSelectionContext
from .attendance_store import (
    AttendanceRecordStore,
    ReconciliationError,
    UnknownAthleteError,
)
from .bulk_reconciler import (
    BulkReconciler,
    BulkSubmitSummary,
    BulkSubmissionError,
    EmptyRosterError,
)
from .cache_policy import (
    CacheInvalidationPolicy,
    InvalidationTarget,
    MutationKind,
    QueryCache,
)
from .evaluation_service import (
    EvaluationService,
    EvaluationValidationError,
    validate_evaluation_form,
    build_evaluation_payload,
    canonical_tests,
)
from .evaluation_session import (
    EvaluationSessionController,
    CaptureSession,
    SessionState,
    SessionBusyError,
    SubmitOutcome,
)
