"""
Tests for Evaluation Service

Tests evaluation handling including:
- Form validation (date formats, past dates, HH:MM)
- Payload building (combined timestamp, owner only on create)
- Cached reads and invalidation on mutation
- Canonical (latest) test per athlete and type
"""

import pytest
from datetime import date

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clubtrack.models import Evaluation, SprintTest, YoyoTest
from clubtrack.services.evaluation_service import (
    EvaluationService,
    EvaluationValidationError,
    build_evaluation_payload,
    canonical_tests,
    validate_evaluation_form,
)

TODAY = date(2024, 5, 1)


@pytest.fixture
def form():
    return {'name': 'Pre-season', 'date': '2024-05-10', 'time': '09:30', 'location': ' Field 2 '}


class TestFormValidation:
    """Tests for evaluation form rules."""

    def test_valid_form(self, form):
        result = validate_evaluation_form(form, today=TODAY)

        assert result.is_valid
        assert result.cleaned_data['location'] == 'Field 2'
        assert result.cleaned_data['observations'] is None

    def test_us_date_format_normalized(self, form):
        result = validate_evaluation_form({**form, 'date': '05/10/2024'}, today=TODAY)

        assert result.cleaned_data['date'] == '2024-05-10'

    def test_past_date_rejected_on_create(self, form):
        result = validate_evaluation_form({**form, 'date': '2024-04-30'}, today=TODAY)

        assert result.errors['date'] == "date cannot be in the past"

    def test_today_allowed(self, form):
        assert validate_evaluation_form({**form, 'date': '2024-05-01'}, today=TODAY).is_valid

    def test_past_date_allowed_on_edit(self, form):
        result = validate_evaluation_form({**form, 'date': '2020-01-01'}, creating=False)

        assert result.is_valid

    @pytest.mark.parametrize("value", ['9:30', '24:00', '09:60', 'noon'])
    def test_bad_time(self, form, value):
        result = validate_evaluation_form({**form, 'time': value}, today=TODAY)

        assert result.errors['time'] == "time must be HH:MM"

    def test_server_time_with_seconds(self, form):
        result = validate_evaluation_form({**form, 'time': '09:30:00'}, creating=False)

        assert result.cleaned_data['time'] == '09:30'

    def test_required_fields(self):
        result = validate_evaluation_form({}, today=TODAY)

        assert set(result.errors) == {'name', 'date', 'time'}


class TestPayload:
    """Tests for the evaluation request body."""

    def test_create_payload(self, form):
        cleaned = validate_evaluation_form(form, today=TODAY).cleaned_data

        payload = build_evaluation_payload(cleaned, user_id='3')

        assert payload['date'] == '2024-05-10T09:30:00'
        assert payload['user_id'] == 3

    def test_update_payload_has_no_owner(self, form):
        cleaned = validate_evaluation_form(form, today=TODAY).cleaned_data

        assert 'user_id' not in build_evaluation_payload(cleaned, user_id=3, creating=False)


class TestEvaluationService:
    """Tests for CRUD and cached reads."""

    def test_invalid_form_not_sent(self, mock_client):
        service = EvaluationService(mock_client)

        with pytest.raises(EvaluationValidationError) as exc_info:
            service.create_evaluation({'name': ''}, today=TODAY)

        assert 'name' in exc_info.value.errors
        mock_client.create_evaluation.assert_not_called()

    def test_create_invalidates_listings(self, mock_client, form):
        mock_client.create_evaluation.return_value = Evaluation(id=9, name='Pre-season', date='2024-05-10')
        service = EvaluationService(mock_client)
        service.cache.set(('evaluations', 1, 20, None), 'stale page')

        created = service.create_evaluation(form, user_id=3, today=TODAY)

        assert created.id == 9
        assert ('evaluations', 1, 20, None) not in service.cache

    def test_get_evaluation_cached(self, mock_client):
        mock_client.get_evaluation.return_value = Evaluation(id=4, name='E', date='2024-05-01')
        service = EvaluationService(mock_client)

        service.get_evaluation(4)
        service.get_evaluation(4)

        mock_client.get_evaluation.assert_called_once_with(4)

    def test_update_invalidates_detail(self, mock_client, form):
        service = EvaluationService(mock_client)
        service.cache.set(('evaluation', 4), 'old')

        service.update_evaluation(4, form)

        assert ('evaluation', 4) not in service.cache

    def test_unknown_test_types_skipped(self, mock_client):
        mock_client.get_tests_by_evaluation.return_value = [
            {'id': 1, 'type': 'sprint_test', 'evaluation_id': 4, 'athlete_id': 7,
             'distance_meters': 30, 'time_0_10_s': 1.8, 'time_0_30_s': 3.9},
            {'id': 2, 'type': 'swim_test', 'evaluation_id': 4, 'athlete_id': 7},
        ]

        tests = EvaluationService(mock_client).get_tests(4)

        assert [t.id for t in tests] == [1]


class TestCanonicalTests:
    """Tests for latest-record selection."""

    def test_latest_by_date_then_id(self):
        older = SprintTest(4, 7, 30, 1.9, 4.0, date='2024-05-01T09:00:00', id=1)
        newer = SprintTest(4, 7, 30, 1.8, 3.9, date='2024-05-01T10:00:00', id=2)
        same_date_higher_id = SprintTest(4, 7, 30, 1.7, 3.8, date='2024-05-01T10:00:00', id=3)
        other_type = YoyoTest(4, 7, 40, '16.0', date='2024-05-01T08:00:00', id=4)

        result = canonical_tests([newer, same_date_higher_id, older, other_type])

        assert [r.id for r in result] == [3, 4]

    def test_different_athletes_kept(self):
        a = SprintTest(4, 7, 30, 1.9, 4.0, id=1)
        b = SprintTest(4, 8, 30, 1.9, 4.0, id=2)

        assert len(canonical_tests([a, b])) == 2
