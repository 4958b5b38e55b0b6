"""
Tests for the CLI

Commands are invoked through click's CliRunner with a Mock API client
injected as the context object.
"""

import pytest
from click.testing import CliRunner
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clubtrack.cli import cli
from clubtrack.clients.api_client import ApiError
from clubtrack.models import Evaluation


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch('clubtrack.cli.init_logging'):
        yield


@pytest.fixture
def run(mock_client):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, list(args), obj={'client': mock_client})

    return invoke


class TestAttendanceCommands:
    """Tests for attendance show/submit/dates."""

    def test_show(self, run):
        result = run('attendance', 'show', '--date', '2024-05-01')

        assert result.exit_code == 0
        assert 'Ana Torres' in result.output
        assert 'Present: 1' in result.output

    def test_submit_with_edits(self, run, mock_client):
        result = run(
            'attendance', 'submit', '--date', '2024-05-01',
            '--present', '2', '--justify', '3=flu', '--time', '18:00',
        )

        assert result.exit_code == 0
        assert '1 created, 2 updated' in result.output
        payload = mock_client.create_attendance_bulk.call_args[0][0]
        assert payload['time'] == '18:00'
        assert payload['records'][1] == {'athlete_id': 2, 'is_present': True, 'justification': None}
        assert payload['records'][2]['justification'] == 'flu'

    def test_submit_all_present(self, run, mock_client):
        result = run('attendance', 'submit', '--date', '2024-05-01', '--all-present')

        assert result.exit_code == 0
        records = mock_client.create_attendance_bulk.call_args[0][0]['records']
        assert all(r['is_present'] for r in records)

    def test_submit_failure(self, run, mock_client):
        mock_client.create_attendance_bulk.side_effect = ApiError(500, 'database down')

        result = run('attendance', 'submit', '--date', '2024-05-01')

        assert result.exit_code == 1
        assert 'database down' in result.output

    def test_submit_unknown_athlete(self, run, mock_client):
        result = run('attendance', 'submit', '--date', '2024-05-01', '--present', '42')

        assert result.exit_code == 1
        mock_client.create_attendance_bulk.assert_not_called()

    def test_bad_justify_option(self, run):
        result = run('attendance', 'submit', '--justify', 'abc=flu')

        assert result.exit_code == 2

    def test_dates(self, run):
        result = run('attendance', 'dates')

        assert result.exit_code == 0
        assert '2024-04-30' in result.output


class TestTestsCommands:
    """Tests for test capture and listing."""

    def test_add_sprint(self, run, mock_client):
        result = run(
            'tests', 'add', '4', '--type', 'sprint', '--athlete', '12',
            '--field', 'time_0_10_s=1.8', '--field', 'time_0_30_s=3.9',
        )

        assert result.exit_code == 0
        assert 'Sprint test saved' in result.output
        payload = mock_client.create_test.call_args[0][1]
        assert payload['distance_meters'] == 30.0
        assert payload['athlete_id'] == 12

    def test_add_invalid(self, run, mock_client):
        result = run('tests', 'add', '4', '--type', 'yoyo', '--athlete', '12',
                     '--field', 'shuttle_count=abc', '--field', 'final_level=16')

        assert result.exit_code == 1
        assert 'shuttle_count' in result.output
        mock_client.create_test.assert_not_called()

    def test_list_latest(self, run, mock_client):
        mock_client.get_tests_by_evaluation.return_value = [
            {'id': 1, 'type': 'sprint_test', 'evaluation_id': 4, 'athlete_id': 7, 'date': '2024-05-01T09:00:00',
             'distance_meters': 30, 'time_0_10_s': 1.9, 'time_0_30_s': 4.0},
            {'id': 2, 'type': 'sprint_test', 'evaluation_id': 4, 'athlete_id': 7, 'date': '2024-05-01T10:00:00',
             'distance_meters': 30, 'time_0_10_s': 1.8, 'time_0_30_s': 3.9},
        ]

        result = run('tests', 'list', '4', '--latest')

        assert result.exit_code == 0
        assert 'time_0_10_s=1.8' in result.output
        assert 'time_0_10_s=1.9' not in result.output


class TestEvaluationCommands:
    """Tests for evaluation create."""

    def test_create(self, run, mock_client):
        mock_client.create_evaluation.return_value = Evaluation(id=9, name='Pre-season', date='2099-01-01')

        result = run('evaluation', 'create', '--name', 'Pre-season', '--date', '01/01/2099',
                     '--time', '09:30', '--user-id', '3')

        assert result.exit_code == 0
        assert 'Created evaluation 9' in result.output
        payload = mock_client.create_evaluation.call_args[0][0]
        assert payload['date'] == '2099-01-01T09:30:00'
        assert payload['user_id'] == 3

    def test_create_in_past(self, run, mock_client):
        result = run('evaluation', 'create', '--name', 'Old', '--date', '2000-01-01', '--time', '09:30')

        assert result.exit_code == 1
        assert 'past' in result.output
        mock_client.create_evaluation.assert_not_called()
