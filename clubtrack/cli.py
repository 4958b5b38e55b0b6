"""
Club Tracking CLI

Command-line interface for evaluation test capture and attendance:
- attendance show / submit / dates
- tests add / list
- evaluation create
"""

import click
import logging
from datetime import date as date_type
from rich.console import Console
from rich.table import Table

from .clients.api_client import ApiError, ClubApiClient
from .models import Athlete, TestType
from .services.bulk_reconciler import BulkReconciler, ReconciliationError, BulkSubmissionError
from .services.evaluation_service import (
    EvaluationService,
    EvaluationValidationError,
    canonical_tests,
)
from .services.evaluation_session import EvaluationSessionController
from .utils.logging_config import init_logging
from .utils.registry import get_athlete_type_label, get_athlete_types, get_test_type_label

logger = logging.getLogger(__name__)
console = Console()

TEST_TYPE_CHOICES = [t.value for t in TestType]
ATHLETE_TYPE_CHOICES = [option['value'] for option in get_athlete_types()]


def _parse_assignments(values, option_name: str) -> dict:
    """('time_0_10_s=1.8', ...) -> {'time_0_10_s': '1.8'}"""
    parsed = {}
    for item in values:
        if '=' not in item:
            raise click.BadParameter(f"expected NAME=VALUE, got '{item}'", param_hint=option_name)
        name, value = item.split('=', 1)
        parsed[name.strip()] = value.strip()
    return parsed


def _show_errors(errors: dict):
    table = Table(show_header=True, header_style="bold red")
    table.add_column("Field", style="cyan")
    table.add_column("Error")
    for name, message in errors.items():
        table.add_row(name, message)
    console.print(table)


@click.group()
@click.option('--api-url', envvar='CLUBTRACK_API_URL', default=None, help='Backend base URL')
@click.option('--token', envvar='CLUBTRACK_API_TOKEN', default=None, help='Bearer token')
@click.pass_context
def cli(ctx, api_url, token):
    """Club Tracking CLI - evaluations, tests and attendance."""
    init_logging()
    ctx.ensure_object(dict)
    ctx.obj.setdefault('client', None)
    if ctx.obj['client'] is None:
        ctx.obj['client'] = ClubApiClient(
            base_url=api_url,
            token=token,
            on_unauthorized=lambda: console.print(
                "[red]Session expired or token rejected. Log in again and update CLUBTRACK_API_TOKEN.[/red]"
            ),
        )


@cli.group()
def attendance():
    """Attendance reconciliation for a date."""
    pass


@cli.group()
def tests():
    """Evaluation test capture."""
    pass


@cli.group()
def evaluation():
    """Evaluation sessions."""
    pass


# ============================================
# ATTENDANCE COMMANDS
# ============================================

def _refresh(client, day, search, type_athlete) -> BulkReconciler:
    reconciler = BulkReconciler(client)
    reconciler.refresh(day, search=search, type_athlete=type_athlete)
    return reconciler


def _attendance_table(reconciler: BulkReconciler) -> Table:
    store = reconciler.store
    table = Table(title=f"Attendance {store.date}", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Athlete", style="cyan")
    table.add_column("Type")
    table.add_column("Status", justify="center")
    table.add_column("Justification")

    entries = store.entries()
    for athlete in store.roster:
        entry = entries[athlete.id]
        status = "[green]✓ present[/green]" if entry.is_present else "[red]✗ absent[/red]"
        table.add_row(
            str(athlete.id),
            athlete.full_name,
            get_athlete_type_label(athlete.type_athlete) if athlete.type_athlete else "-",
            status,
            entry.justification or "",
        )
    return table


@attendance.command('show')
@click.option('--date', 'day', default=lambda: date_type.today().isoformat(), help='Date (YYYY-MM-DD)')
@click.option('--search', default=None, help='Filter athletes by name or document')
@click.option('--type', 'type_athlete', type=click.Choice(ATHLETE_TYPE_CHOICES), default=None)
@click.pass_context
def attendance_show(ctx, day, search, type_athlete):
    """
    Show the attendance draft for a date.

    Example:
        clubtrack attendance show --date 2024-05-01 --type ESTUDIANTES
    """
    try:
        reconciler = _refresh(ctx.obj['client'], day, search, type_athlete)
    except ApiError as e:
        console.print(f"[red]Could not load attendance: {e.message}[/red]")
        raise SystemExit(1)

    console.print(_attendance_table(reconciler))
    counts = reconciler.store.summary()
    console.print(
        f"\n[bold]Present:[/bold] {counts['present']}  "
        f"[bold]Absent:[/bold] {counts['absent']}  "
        f"[bold]Total:[/bold] {counts['total']}"
    )


@attendance.command('submit')
@click.option('--date', 'day', default=lambda: date_type.today().isoformat(), help='Date (YYYY-MM-DD)')
@click.option('--time', 'at_time', default=None, help='Time (HH:MM); server time if omitted')
@click.option('--search', default=None)
@click.option('--type', 'type_athlete', type=click.Choice(ATHLETE_TYPE_CHOICES), default=None)
@click.option('--all-present', is_flag=True, help='Mark every loaded athlete present first')
@click.option('--present', 'present_ids', multiple=True, type=int, help='Athlete id to mark present')
@click.option('--absent', 'absent_ids', multiple=True, type=int, help='Athlete id to mark absent')
@click.option('--justify', multiple=True, help='ID=TEXT absence justification')
@click.pass_context
def attendance_submit(ctx, day, at_time, search, type_athlete, all_present, present_ids, absent_ids, justify):
    """
    Apply edits to the attendance draft and submit it in one bulk request.

    Example:
        clubtrack attendance submit --date 2024-05-01 --all-present --absent 7 --justify 7=sick
    """
    justifications = _parse_assignments(justify, '--justify')
    for key in justifications:
        if not key.isdigit():
            raise click.BadParameter(f"athlete id must be a number, got '{key}'", param_hint='--justify')

    try:
        reconciler = _refresh(ctx.obj['client'], day, search, type_athlete)
        store = reconciler.store

        if all_present:
            store.mark_all_present()
        for athlete_id in present_ids:
            store.set_present(athlete_id, True)
        for athlete_id in absent_ids:
            store.set_present(athlete_id, False)
        for athlete_id, text in justifications.items():
            store.set_justification(int(athlete_id), text)

        summary = reconciler.submit(time=at_time)

    except BulkSubmissionError as e:
        console.print(f"[red]{e.summary.message}[/red]")
        raise SystemExit(1)
    except ReconciliationError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    except ApiError as e:
        console.print(f"[red]Could not load attendance: {e.message}[/red]")
        raise SystemExit(1)

    console.print(f"[green]✓ {summary.message}[/green]")


@attendance.command('dates')
@click.pass_context
def attendance_dates(ctx):
    """List dates that already have attendance."""
    try:
        dates = ctx.obj['client'].get_attendance_dates()
    except ApiError as e:
        console.print(f"[red]Could not load dates: {e.message}[/red]")
        raise SystemExit(1)

    if not dates:
        console.print("[yellow]No attendance recorded yet[/yellow]")
        return
    for day in dates:
        console.print(f"  • {day}")


# ============================================
# TEST COMMANDS
# ============================================

@tests.command('add')
@click.argument('evaluation_id', type=int)
@click.option('--type', 'test_type', type=click.Choice(TEST_TYPE_CHOICES), required=True)
@click.option('--athlete', 'athlete_id', type=int, required=True, help='Athlete id')
@click.option('--field', 'fields', multiple=True, help='NAME=VALUE test field')
@click.option('--observations', default='', help='Free text notes')
@click.pass_context
def tests_add(ctx, evaluation_id, test_type, athlete_id, fields, observations):
    """
    Capture one test for an athlete.

    Example:
        clubtrack tests add 4 --type sprint --athlete 12 --field time_0_10_s=1.8 --field time_0_30_s=3.9
    """
    controller = EvaluationSessionController(ctx.obj['client'], evaluation_id=evaluation_id)
    controller.select_test_type(test_type)
    controller.select_athlete(Athlete(id=athlete_id, full_name=f"Athlete {athlete_id}"))

    for name, value in _parse_assignments(fields, '--field').items():
        controller.update_field(name, value)
    controller.update_field('observations', observations)

    preview = controller.preview()
    outcome = controller.submit()

    if not outcome.ok:
        console.print(f"[red]{outcome.message}[/red]")
        if outcome.errors:
            _show_errors(outcome.errors)
        raise SystemExit(1)

    console.print(f"[green]✓ {outcome.message}[/green]")
    if preview:
        for name, value in preview.items():
            console.print(f"  {name}: [bold]{value if value is not None else '-'}[/bold]")


@tests.command('list')
@click.argument('evaluation_id', type=int)
@click.option('--latest', is_flag=True, help='Only the latest test per athlete and type')
@click.pass_context
def tests_list(ctx, evaluation_id, latest):
    """List the tests recorded in an evaluation."""
    service = EvaluationService(ctx.obj['client'])
    try:
        records = service.get_tests(evaluation_id)
    except ApiError as e:
        console.print(f"[red]Could not load tests: {e.message}[/red]")
        raise SystemExit(1)

    if latest:
        records = canonical_tests(records)

    table = Table(title=f"Evaluation {evaluation_id} tests", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Athlete", justify="right")
    table.add_column("Date")
    table.add_column("Results")

    for record in records:
        results = ", ".join(
            f"{name}={getattr(record, name)}"
            for name in record.measurement_fields()
            if getattr(record, name) is not None
        )
        table.add_row(
            str(record.id or "-"),
            get_test_type_label(record.test_type.value),
            str(record.athlete_id),
            str(record.date or "-")[:16],
            results,
        )
    console.print(table)


# ============================================
# EVALUATION COMMANDS
# ============================================

@evaluation.command('create')
@click.option('--name', required=True)
@click.option('--date', 'day', required=True, help='YYYY-MM-DD or MM/DD/YYYY')
@click.option('--time', 'at_time', required=True, help='HH:MM')
@click.option('--location', default=None)
@click.option('--observations', default=None)
@click.option('--user-id', type=int, default=None, help='Owner user id')
@click.pass_context
def evaluation_create(ctx, name, day, at_time, location, observations, user_id):
    """Create an evaluation session."""
    service = EvaluationService(ctx.obj['client'])
    form = {
        'name': name,
        'date': day,
        'time': at_time,
        'location': location,
        'observations': observations,
    }
    try:
        created = service.create_evaluation(form, user_id=user_id)
    except EvaluationValidationError as e:
        console.print("[red]Evaluation is invalid[/red]")
        _show_errors(e.errors)
        raise SystemExit(1)
    except ApiError as e:
        console.print(f"[red]Evaluation was not created: {e.message}[/red]")
        raise SystemExit(1)

    console.print(f"[green]✓ Created evaluation {created.id}: {created.name}[/green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
