"""
Comprehensive Invariant Tests

Tests the core reconciliation and capture invariants:
1. Validation Purity: malformed input yields errors, no mutation, no network
2. Default Absent: athletes with no saved record start absent
3. Present Clears Justification
4. Mark-All-Present Bounding: only the loaded roster is touched
5. Submit Payload Shape: one record per roster athlete
6. Round-Trip: saved records are reproduced in the draft
7. Scenarios: roster seeding, sprint validation, bulk submit summary
"""

import copy
import pytest
from unittest.mock import Mock, patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clubtrack.models import Athlete, AttendanceRecord, BulkAttendanceResult, DraftEntry, Page
from clubtrack.services.attendance_store import AttendanceRecordStore
from clubtrack.services.bulk_reconciler import BulkReconciler
from clubtrack.services.test_schema import TestRecordSchema


class TestInvariant1ValidationPurity:
    """
    INVARIANT 1: Validation never mutates input and never calls the network.
    """

    MALFORMED = [
        ('sprint', {'distance_meters': 'abc', 'time_0_10_s': '1.8', 'time_0_30_s': '3.9'}),
        ('sprint', {'distance_meters': '0', 'time_0_10_s': '1.8', 'time_0_30_s': '3.9'}),
        ('endurance', {'min_duration': '0', 'total_distance_m': '100'}),
        ('endurance', {'min_duration': '12', 'total_distance_m': '3,000'}),
        ('endurance', {'min_duration': '12', 'total_distance_m': '10000'}),
        ('yoyo', {'shuttle_count': '-5', 'final_level': '16.1'}),
        ('yoyo', {'shuttle_count': '5', 'final_level': 'level 16'}),
        ('technical', {'ball_control': 'Superb'}),
    ]

    @pytest.mark.parametrize("test_type,raw", MALFORMED)
    def test_malformed_input(self, test_type, raw):
        schema = TestRecordSchema()
        before = copy.deepcopy(raw)

        with patch('requests.Session.request') as request:
            first = schema.validate(test_type, raw, evaluation_id=1, athlete_id=1)
            second = schema.validate(test_type, raw, evaluation_id=1, athlete_id=1)

        assert not first.is_valid
        assert first.errors
        assert first.errors == second.errors
        assert raw == before
        request.assert_not_called()


class TestInvariant2DefaultAbsent:
    """
    INVARIANT 2: No saved record -> seeded absent.

    Unmarked attendance must never count as attendance.
    """

    def test_no_records_all_absent(self, sample_roster):
        store = AttendanceRecordStore()
        store.seed(sample_roster, [], '2024-05-01')

        for athlete in sample_roster:
            assert store.get(athlete.id).is_present is False

    def test_record_for_other_date_id_does_not_leak(self, sample_roster):
        store = AttendanceRecordStore()
        store.seed(sample_roster, [AttendanceRecord(1, '2024-05-01', True)], '2024-05-01')

        assert store.get(2).is_present is False
        assert store.get(3).is_present is False


class TestInvariant3PresentClearsJustification:
    """
    INVARIANT 3: set_present(id, True) always yields justification "".
    """

    @pytest.mark.parametrize("prior", ['sick', '', None, 'travelling abroad'])
    def test_present_clears(self, sample_roster, prior):
        store = AttendanceRecordStore()
        store.seed(sample_roster, [AttendanceRecord(1, '2024-05-01', False, justification=prior)], '2024-05-01')

        store.set_present(1, True)

        assert store.get(1).justification == ""


class TestInvariant4MarkAllPresentBounding:
    """
    INVARIANT 4: mark_all_present touches the loaded roster only.
    """

    def test_only_loaded_roster(self, sample_roster):
        store = AttendanceRecordStore()
        store.seed(sample_roster[:2], [], '2024-05-01')

        store.mark_all_present()

        assert all(entry.is_present for entry in store.entries().values())
        assert set(store.entries()) == {1, 2}
        assert 3 not in store


class TestInvariant5SubmitPayloadShape:
    """
    INVARIANT 5: exactly len(roster) records; justification None when present.
    """

    def test_payload_shape(self, mock_client, sample_roster):
        reconciler = BulkReconciler(mock_client)
        reconciler.refresh('2024-05-01')
        reconciler.store.set_present(2, True)

        payload = reconciler.build_payload()

        assert len(payload['records']) == len(sample_roster)
        for record in payload['records']:
            if record['is_present']:
                assert record['justification'] is None


class TestInvariant6RoundTrip:
    """
    INVARIANT 6: seeding from a saved record reproduces its values.
    """

    def test_absent_with_justification(self):
        store = AttendanceRecordStore()
        store.seed([Athlete(5, 'E')], [AttendanceRecord(5, '2024-05-01', False, justification='sick')], '2024-05-01')

        assert store.get(5) == DraftEntry(is_present=False, justification='sick')
        assert store.build_records() == [{'athlete_id': 5, 'is_present': False, 'justification': 'sick'}]


class TestScenarios:
    """End-to-end scenarios."""

    def test_roster_seeding_scenario(self):
        client = Mock()
        client.list_athletes.return_value = Page(items=[Athlete(1, 'A'), Athlete(2, 'B')], total=2)
        client.get_attendance_by_date.return_value = [
            AttendanceRecord.from_dict({'athlete_id': 1, 'is_present': True}, date='2024-05-01')
        ]

        reconciler = BulkReconciler(client)
        reconciler.refresh('2024-05-01')

        assert reconciler.store.entries() == {
            1: DraftEntry(is_present=True, justification=None),
            2: DraftEntry(is_present=False, justification=""),
        }

    def test_sprint_scenario(self):
        schema = TestRecordSchema()

        ok = schema.validate('sprint', {'distance_meters': 30, 'time_0_10_s': 1.8, 'time_0_30_s': 3.9},
                             evaluation_id=1, athlete_id=1)
        bad = schema.validate('sprint', {'distance_meters': -1, 'time_0_10_s': 1.8, 'time_0_30_s': 3.9},
                              evaluation_id=1, athlete_id=1)

        assert ok.is_valid
        assert set(bad.errors) == {'distance_meters'}

    def test_bulk_submit_scenario(self):
        client = Mock()
        client.list_athletes.return_value = Page(items=[Athlete(1, 'A'), Athlete(2, 'B')], total=2)
        client.get_attendance_by_date.return_value = [AttendanceRecord(1, '2024-05-01', True)]
        client.create_attendance_bulk.return_value = BulkAttendanceResult(created_count=1, updated_count=1)

        reconciler = BulkReconciler(client)
        reconciler.refresh('2024-05-01')
        before = reconciler.store.entries()

        summary = reconciler.submit()

        assert "1 created" in summary.message
        assert "1 updated" in summary.message
        assert reconciler.store.entries() == before
        assert len(reconciler.store) == 2
