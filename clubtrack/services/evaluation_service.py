"""
Evaluation sessions: form validation, CRUD and their test lists.

Reads go through the shared QueryCache under the keys used by
CacheInvalidationPolicy, so a test mutation makes the next read refetch.
"""

import logging
from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

from ..clients.api_client import ClubApiClient
from ..models import Evaluation, Page, TestRecord, record_from_dict
from ..utils.validation import (
    EntitySchema,
    FieldValidationError,
    FieldValidator,
    RegexValidator,
    TextValidator,
    ValidationResult,
)
from .cache_policy import CacheInvalidationPolicy, MutationKind, QueryCache

logger = logging.getLogger(__name__)


class EvaluationValidationError(Exception):
    """Evaluation form rejected; `errors` maps field -> message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(
            "Invalid evaluation: " + "; ".join(f"{k}: {v}" for k, v in errors.items())
        )


# ============================================
# FORM VALIDATION
# ============================================

class DateValidator(FieldValidator):
    """Accepts YYYY-MM-DD (optionally with a time part) or MM/DD/YYYY; returns YYYY-MM-DD."""

    FORMATS = ('%Y-%m-%d', '%m/%d/%Y')

    def validate(self, value: Any, field_name: str) -> Any:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date_type):
            return value.isoformat()

        text = str(value).strip()[:10]
        for fmt in self.FORMATS:
            try:
                return datetime.strptime(text, fmt).date().isoformat()
            except ValueError:
                continue
        raise FieldValidationError(
            f"{field_name} must be a date (YYYY-MM-DD or MM/DD/YYYY)", field_name, value
        )


TIME_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


def _evaluation_schema() -> EntitySchema:
    schema = EntitySchema()
    schema.add_field('name', [TextValidator(max_length=100)], required=True)
    schema.add_field('date', [DateValidator()], required=True)
    schema.add_field('time', [RegexValidator(TIME_PATTERN, "time must be HH:MM")], required=True)
    schema.add_field('location', [TextValidator(max_length=100)])
    schema.add_field('observations', [TextValidator()])
    return schema


def validate_evaluation_form(
    data: Dict[str, Any],
    creating: bool = True,
    today: Optional[date_type] = None,
) -> ValidationResult:
    """
    Validate an evaluation form.

    Args:
        data: Raw form values
        creating: New evaluations cannot be dated in the past
        today: Reference date (defaults to the local date)

    Returns:
        ValidationResult with cleaned name/date/time/location/observations
    """
    # HH:MM:SS from the backend is accepted on edit
    if isinstance(data.get('time'), str) and len(data['time'].strip()) == 8:
        data = {**data, 'time': data['time'].strip()[:5]}

    result = _evaluation_schema().validate(data)

    if creating and 'date' in result.cleaned_data and result.cleaned_data['date']:
        today = today or date_type.today()
        if result.cleaned_data['date'] < today.isoformat():
            result.add_error(FieldValidationError(
                "date cannot be in the past", 'date', result.cleaned_data['date']
            ))

    return result


def build_evaluation_payload(
    cleaned: Dict[str, Any],
    user_id: Optional[int] = None,
    creating: bool = True,
) -> Dict[str, Any]:
    """Backend body: date carries the time as YYYY-MM-DDTHH:MM:00."""
    payload = {
        'name': cleaned['name'],
        'date': f"{cleaned['date']}T{cleaned['time']}:00",
        'time': cleaned['time'],
        'location': cleaned.get('location'),
        'observations': cleaned.get('observations'),
    }
    if creating and user_id is not None:
        payload['user_id'] = int(user_id)
    return payload


# ============================================
# CANONICAL TESTS
# ============================================

def canonical_tests(records: List[TestRecord]) -> List[TestRecord]:
    """
    Keep the latest record per (evaluation, athlete, test type).

    Latest is by `date`, then by `id`. Order of first appearance is kept.
    """
    latest: Dict[tuple, TestRecord] = {}
    for record in records:
        key = (record.evaluation_id, record.athlete_id, record.test_type)
        current = latest.get(key)
        if current is None or _recency(record) >= _recency(current):
            latest[key] = record
    return list(latest.values())


def _recency(record: TestRecord) -> tuple:
    return (str(record.date or ''), record.id or 0)


# ============================================
# SERVICE
# ============================================

class EvaluationService:
    """Evaluation CRUD plus cached detail and test list reads."""

    def __init__(
        self,
        client: ClubApiClient,
        cache: Optional[QueryCache] = None,
        policy: Optional[CacheInvalidationPolicy] = None,
    ):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()
        self.policy = policy or CacheInvalidationPolicy()

    def list_evaluations(self, page: int = 1, limit: int = 20, search: Optional[str] = None) -> Page:
        return self.cache.get_or_fetch(
            ('evaluations', page, limit, search),
            lambda: self.client.list_evaluations(page=page, limit=limit, search=search),
        )

    def get_evaluation(self, evaluation_id: int) -> Evaluation:
        return self.cache.get_or_fetch(
            ('evaluation', evaluation_id),
            lambda: self.client.get_evaluation(evaluation_id),
        )

    def get_tests(self, evaluation_id: int) -> List[TestRecord]:
        """Typed test records of an evaluation; records of unknown type are skipped."""
        return self.cache.get_or_fetch(
            ('tests-by-evaluation', evaluation_id),
            lambda: self._fetch_tests(evaluation_id),
        )

    def _fetch_tests(self, evaluation_id: int) -> List[TestRecord]:
        records = []
        for item in self.client.get_tests_by_evaluation(evaluation_id):
            try:
                records.append(record_from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(
                    f"Skipping test {item.get('id')} of evaluation {evaluation_id}: {e}"
                )
        return records

    def create_evaluation(
        self,
        data: Dict[str, Any],
        user_id: Optional[int] = None,
        today: Optional[date_type] = None,
    ) -> Evaluation:
        """
        Raises:
            EvaluationValidationError: If the form is invalid (nothing is sent)
            ApiError: If the backend rejects it
        """
        result = validate_evaluation_form(data, creating=True, today=today)
        if not result.is_valid:
            raise EvaluationValidationError(result.errors)

        evaluation = self.client.create_evaluation(
            build_evaluation_payload(result.cleaned_data, user_id=user_id, creating=True)
        )
        self.cache.invalidate(self.policy.on_mutation(MutationKind.EVALUATION_CREATE))
        logger.info(f"Created evaluation {evaluation.id} '{evaluation.name}'")
        return evaluation

    def update_evaluation(self, evaluation_id: int, data: Dict[str, Any]) -> Evaluation:
        result = validate_evaluation_form(data, creating=False)
        if not result.is_valid:
            raise EvaluationValidationError(result.errors)

        evaluation = self.client.update_evaluation(
            evaluation_id, build_evaluation_payload(result.cleaned_data, creating=False)
        )
        self.cache.invalidate(
            self.policy.on_mutation(MutationKind.EVALUATION_UPDATE, evaluation_id=evaluation_id)
        )
        return evaluation

    def delete_evaluation(self, evaluation_id: int):
        self.client.delete_evaluation(evaluation_id)
        self.cache.invalidate(
            self.policy.on_mutation(MutationKind.EVALUATION_DELETE, evaluation_id=evaluation_id)
        )
        logger.info(f"Deleted evaluation {evaluation_id}")
