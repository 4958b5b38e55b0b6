"""
Pytest Configuration and Fixtures

Provides shared fixtures for all tests including:
- Sample roster and saved attendance
- Raw test form inputs per test type
- A Mock API client (no HTTP is ever performed)
"""

import pytest
from typing import Dict, List, Any
from unittest.mock import Mock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clubtrack.models import Athlete, AttendanceRecord, BulkAttendanceResult, Page


# ============================================================
# Roster & Attendance Fixtures
# ============================================================

@pytest.fixture
def sample_roster() -> List[Athlete]:
    """
    Provides a small filtered roster.

    Returns:
        Three active students
    """
    return [
        Athlete(id=1, full_name='Ana Torres', dni='0102030405', type_athlete='ESTUDIANTES'),
        Athlete(id=2, full_name='Luis Mena', dni='0102030406', type_athlete='ESTUDIANTES'),
        Athlete(id=3, full_name='Rosa Vega', dni='0102030407', type_athlete='ESTUDIANTES'),
    ]


@pytest.fixture
def saved_attendance() -> List[AttendanceRecord]:
    """Saved records for 2024-05-01: athlete 1 present, athlete 3 absent (sick)."""
    return [
        AttendanceRecord(athlete_id=1, date='2024-05-01', is_present=True, justification=None, id=10),
        AttendanceRecord(athlete_id=3, date='2024-05-01', is_present=False, justification='sick', id=11),
    ]


# ============================================================
# Raw Test Inputs
# ============================================================

@pytest.fixture
def raw_inputs() -> Dict[str, Dict[str, Any]]:
    """Valid raw form input per test type, as strings the way a form sends them."""
    return {
        'sprint': {'distance_meters': '30', 'time_0_10_s': '1.8', 'time_0_30_s': '3.9'},
        'endurance': {'min_duration': '12', 'total_distance_m': '3000'},
        'yoyo': {'shuttle_count': '52', 'final_level': '16.3', 'failures': '1'},
        'technical': {
            'ball_control': 'Good',
            'short_pass': 'Excellent',
            'long_pass': 'Average',
            'shooting': 'Poor',
            'dribbling': 'Good',
        },
    }


# ============================================================
# API Client Mock
# ============================================================

@pytest.fixture
def mock_client(sample_roster, saved_attendance) -> Mock:
    """
    Provides a Mock ClubApiClient.

    Reads return the sample roster and attendance; writes echo an id.
    """
    client = Mock()
    client.list_athletes.return_value = Page(items=list(sample_roster), total=len(sample_roster))
    client.get_attendance_by_date.return_value = list(saved_attendance)
    client.create_attendance_bulk.return_value = BulkAttendanceResult(created_count=1, updated_count=2)
    client.get_attendance_dates.return_value = ['2024-05-01', '2024-04-30']
    client.create_test.side_effect = lambda test_type, payload: {'id': 99, **payload}
    client.update_test.side_effect = lambda test_type, test_id, payload: {'id': test_id, **payload}
    client.get_tests_by_evaluation.return_value = []
    return client
