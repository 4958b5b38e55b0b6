"""
Data model for evaluation test capture and attendance reconciliation.

Wire names are the backend's snake_case names, so records round-trip
through the REST API without renaming.
"""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


# ============================================================================
# TEST TYPES
# ============================================================================

class TestType(str, Enum):
    """Closed set of test variants. Keys match config/registry.yaml."""
    __test__ = False

    SPRINT = "sprint"
    YOYO = "yoyo"
    ENDURANCE = "endurance"
    TECHNICAL = "technical"

    # Discriminator the backend puts in a record's `type` field
    @property
    def record_type(self) -> str:
        return _RECORD_TYPES[self]

    @classmethod
    def from_value(cls, value: Union[str, 'TestType']) -> 'TestType':
        """
        Resolve a tab key ('sprint') or record discriminator ('sprint_test').

        Raises:
            ValueError: If value names no known test type
        """
        if isinstance(value, TestType):
            return value
        normalized = str(value).strip().lower()
        for test_type in cls:
            if normalized in (test_type.value, test_type.record_type):
                return test_type
        raise ValueError(
            f"Unknown test type: {value}. "
            f"Valid test types are: {', '.join(t.value for t in cls)}"
        )


_RECORD_TYPES = {
    TestType.SPRINT: "sprint_test",
    TestType.YOYO: "yoyo_test",
    TestType.ENDURANCE: "endurance_test",
    TestType.TECHNICAL: "technical_assessment",
}


# ============================================================================
# TEST RECORDS
# ============================================================================

class TestRecordMixin:
    """Payload mapping shared by every test variant."""

    __test__ = False

    test_type: ClassVar[TestType]

    # Sent on create only; an update never moves a test to another evaluation
    CREATE_ONLY: ClassVar[tuple] = ('evaluation_id', 'date')

    @classmethod
    def measurement_fields(cls) -> list:
        common = {'id', 'evaluation_id', 'athlete_id', 'date', 'observations'}
        return [f.name for f in fields(cls) if f.name not in common]

    def to_create_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop('id', None)
        return {k: v for k, v in payload.items() if v is not None or k == 'observations'}

    def to_update_payload(self) -> Dict[str, Any]:
        payload = self.to_create_payload()
        for key in self.CREATE_ONLY:
            payload.pop(key, None)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build from a server record, ignoring keys the variant does not define."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class SprintTest(TestRecordMixin):
    evaluation_id: int
    athlete_id: int
    distance_meters: float
    time_0_10_s: float
    time_0_30_s: float
    time_10_30_s: Optional[float] = None
    avg_speed_ms: Optional[float] = None
    estimated_max_speed: Optional[float] = None
    observations: Optional[str] = None
    date: Optional[str] = None
    id: Optional[int] = None

    test_type: ClassVar[TestType] = TestType.SPRINT


@dataclass
class EnduranceTest(TestRecordMixin):
    evaluation_id: int
    athlete_id: int
    min_duration: float
    total_distance_m: float
    pace_min_per_km: Optional[float] = None
    estimated_vo2max: Optional[float] = None
    observations: Optional[str] = None
    date: Optional[str] = None
    id: Optional[int] = None

    test_type: ClassVar[TestType] = TestType.ENDURANCE


@dataclass
class YoyoTest(TestRecordMixin):
    evaluation_id: int
    athlete_id: int
    shuttle_count: int
    final_level: str
    failures: int = 0
    total_distance: Optional[float] = None
    vo2_max: Optional[float] = None
    observations: Optional[str] = None
    date: Optional[str] = None
    id: Optional[int] = None

    test_type: ClassVar[TestType] = TestType.YOYO


@dataclass
class TechnicalAssessment(TestRecordMixin):
    evaluation_id: int
    athlete_id: int
    ball_control: str
    short_pass: str
    long_pass: str
    shooting: str
    dribbling: str
    observations: Optional[str] = None
    date: Optional[str] = None
    id: Optional[int] = None

    test_type: ClassVar[TestType] = TestType.TECHNICAL


TestRecord = Union[SprintTest, EnduranceTest, YoyoTest, TechnicalAssessment]

RECORD_CLASSES = {
    TestType.SPRINT: SprintTest,
    TestType.YOYO: YoyoTest,
    TestType.ENDURANCE: EnduranceTest,
    TestType.TECHNICAL: TechnicalAssessment,
}


def record_from_dict(data: Dict[str, Any], test_type: Optional[Union[str, TestType]] = None) -> TestRecord:
    """
    Build a typed test record from a server dict.

    The variant comes from `test_type` if given, else from the record's `type`.
    """
    resolved = TestType.from_value(test_type or data.get('type', ''))
    return RECORD_CLASSES[resolved].from_dict(data)


# ============================================================================
# ATHLETES & EVALUATIONS
# ============================================================================

@dataclass(frozen=True)
class Athlete:
    id: int
    full_name: str
    dni: Optional[str] = None
    type_athlete: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Athlete':
        name = data.get('full_name')
        if not name:
            name = ' '.join(
                part for part in (data.get('first_name'), data.get('last_name')) if part
            )
        return cls(
            id=int(data['id']),
            full_name=name or f"Athlete {data['id']}",
            dni=data.get('dni'),
            type_athlete=data.get('type_athlete'),
            is_active=bool(data.get('is_active', True)),
        )


@dataclass
class Evaluation:
    id: int
    name: str
    date: str
    time: Optional[str] = None
    location: Optional[str] = None
    observations: Optional[str] = None
    user_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Evaluation':
        return cls(
            id=int(data['id']),
            name=data.get('name', ''),
            date=data.get('date', ''),
            time=data.get('time'),
            location=data.get('location'),
            observations=data.get('observations'),
            user_id=data.get('user_id'),
        )


# ============================================================================
# ATTENDANCE
# ============================================================================

@dataclass
class AttendanceRecord:
    """A persisted attendance row, keyed by (athlete_id, date)."""
    athlete_id: int
    date: str
    is_present: bool
    justification: Optional[str] = None
    time: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], date: Optional[str] = None) -> 'AttendanceRecord':
        return cls(
            athlete_id=int(data['athlete_id']),
            date=str(data.get('date') or date or '')[:10],
            is_present=bool(data.get('is_present', False)),
            justification=data.get('justification'),
            time=data.get('time'),
            id=data.get('id'),
        )


@dataclass
class DraftEntry:
    """In-memory attendance state for one athlete on the loaded date."""
    is_present: bool = False
    justification: Optional[str] = ""


@dataclass
class BulkAttendanceResult:
    created_count: int = 0
    updated_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BulkAttendanceResult':
        return cls(
            created_count=int(data.get('created_count') or 0),
            updated_count=int(data.get('updated_count') or 0),
        )


@dataclass
class Page:
    """One page of a paginated listing."""
    items: list = field(default_factory=list)
    total: int = 0
