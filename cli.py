#!/usr/bin/env python3
"""
CLI for the Schedule Import service.

Usage:
    python cli.py analyze --file schedule.xer
    python cli.py create-project --name "Tower A" --code TWR-A
    python cli.py import-xer --project-id 1 --file schedule.xer
    python cli.py serve --port 8000

Commands:
    init-db          Create database tables
    create-project   Register a project to import schedules into
    import-xer       Import an XER file as a project's schedule
    analyze          Run the critical-path engine on a file without a database
    summary          Show a project's schedule summary
    delete-schedule  Remove a project's schedule
    serve            Start the API server
"""
import json
import logging
from datetime import datetime
from pathlib import Path

import click

from schedule_app.config import get_config

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    config = get_config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO),
        format=config.log_format,
    )


def _parse_date(value):
    if value is None:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


@click.group()
@click.version_option(version='1.0.0')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """Schedule Import CLI.

    Import Primavera P6 XER exports, compute the critical path and
    report schedule progress.
    """
    _configure_logging(verbose)


@cli.command('init-db')
def init_db_command():
    """Create database tables."""
    from schedule_app.models import init_db

    init_db()
    click.echo(click.style('Database initialized', fg='green'))


@cli.command('create-project')
@click.option('--name', required=True, help='Project name')
@click.option('--code', required=True, help='Unique project code')
@click.option('--description', default=None, help='Optional description')
def create_project(name: str, code: str, description: str):
    """Register a project to import schedules into."""
    from schedule_app.models import get_db
    from schedule_app.infrastructure.repositories import ProjectRepository
    from schedule_app.domain.exceptions import DomainError

    db = next(get_db())
    try:
        project = ProjectRepository(db).create(name=name, code=code, description=description)
        db.commit()
        click.echo(f"Created project {project.id} ({project.code})")
    except DomainError as e:
        db.rollback()
        click.echo(click.style(f"Error: {e.message}", fg='red'), err=True)
        raise click.Abort()
    finally:
        db.close()


@cli.command('import-xer')
@click.option('--project-id', type=int, required=True, help='Target project id')
@click.option(
    '--file', 'file_path',
    required=True,
    help='Path to the XER export',
    type=click.Path(exists=True, dir_okay=False)
)
@click.option('--as-of', default=None, help='Status date for overdue counts (YYYY-MM-DD)')
def import_xer(project_id: int, file_path: str, as_of: str):
    """Import an XER file, replacing the project's current schedule."""
    from schedule_app.models import get_db
    from schedule_app.domain.services import ScheduleImportService
    from schedule_app.domain.exceptions import DomainError

    path = Path(file_path)
    db = next(get_db())
    try:
        with open(path, 'rb') as f:
            result = ScheduleImportService(db).import_schedule(
                project_id=project_id,
                stream=f,
                file_name=path.name,
                file_size=path.stat().st_size,
                as_of=_parse_date(as_of),
            )
    except DomainError as e:
        click.echo(click.style(f"Import failed: {e.message}", fg='red'), err=True)
        for detail in e.details or []:
            click.echo(f"  - {detail}", err=True)
        raise click.Abort()
    finally:
        db.close()

    click.echo(click.style(result['message'], fg='green'))
    click.echo(f"  Import id:      {result['importId']}")
    click.echo(f"  XER project:    {result['xerProjectName']}")
    click.echo(f"  Activities:     {result['activitiesCount']}")
    click.echo(f"  Relationships:  {result['relationshipsCount']}")
    click.echo(f"  WBS nodes:      {result['wbsCount']}")
    if result['warnings']:
        click.echo(click.style(f"\n{len(result['warnings'])} warning(s):", fg='yellow'))
        for warning in result['warnings']:
            click.echo(f"  - {warning}")


@cli.command()
@click.option(
    '--file', 'file_path',
    required=True,
    help='Path to the XER export',
    type=click.Path(exists=True, dir_okay=False)
)
@click.option('--as-of', default=None, help='Status date for overdue counts (YYYY-MM-DD)')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
def analyze(file_path: str, as_of: str, output_json: bool):
    """Run the critical-path engine on an XER file without touching the database.

    Example:
        python cli.py analyze --file exports/tower.xer --as-of 2024-03-01
    """
    from xer_engine import EngineError, EngineOptions, build_schedule

    options = EngineOptions.from_config(get_config(), today=_parse_date(as_of))
    try:
        with open(file_path, 'rb') as f:
            result = build_schedule(f, options)
    except EngineError as e:
        click.echo(click.style(f"Analysis failed: {e.message}", fg='red'), err=True)
        for detail in e.details or []:
            click.echo(f"  - {detail}", err=True)
        raise click.Abort()

    network = result.network
    critical = [network.activities[network.index[aid]] for aid in result.cpm.critical_path.activity_ids]
    warnings = result.warning_messages(limit=get_config().max_warnings)

    if output_json:
        payload = {
            'project': result.project_name,
            'projectStart': result.cpm.project_start.isoformat() if result.cpm.project_start else None,
            'projectFinish': result.cpm.project_finish.isoformat() if result.cpm.project_finish else None,
            'activitiesCount': result.activities_count,
            'relationshipsCount': result.relationships_count,
            'wbsCount': result.wbs_count,
            'stats': result.progress.to_dict(),
            'criticalPath': [a.id for a in critical],
            'warnings': warnings,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(click.style(f"Schedule: {result.project_name or 'unnamed'}", fg='cyan', bold=True))
    click.echo(f"{'=' * 60}")
    click.echo(f"Activities:     {result.activities_count:>8}")
    click.echo(f"Relationships:  {result.relationships_count:>8}")
    click.echo(f"WBS nodes:      {result.wbs_count:>8}")
    click.echo(f"Start:          {result.cpm.project_start}")
    click.echo(f"Finish:         {result.cpm.project_finish}")
    click.echo(f"Progress:       {result.progress.overall_progress:>7.1f}%")
    click.echo(f"{'=' * 60}")

    click.echo(click.style(f"\nCritical path ({len(critical)} activities):", fg='green', bold=True))
    for activity in critical:
        click.echo(
            f"  {activity.code or activity.id:<14} {activity.name[:30]:<30} "
            f"{activity.early_start} -> {activity.early_finish}"
        )

    if warnings:
        click.echo(click.style(f"\n{len(warnings)} warning(s):", fg='yellow'))
        for warning in warnings:
            click.echo(f"  - {warning}")


@cli.command()
@click.option('--project-id', type=int, required=True, help='Project id')
def summary(project_id: int):
    """Show a project's schedule summary as JSON."""
    from schedule_app.models import get_db
    from schedule_app.domain.services import ScheduleImportService
    from schedule_app.domain.exceptions import DomainError

    db = next(get_db())
    try:
        data = ScheduleImportService(db).get_summary(project_id)
    except DomainError as e:
        click.echo(click.style(f"Error: {e.message}", fg='red'), err=True)
        raise click.Abort()
    finally:
        db.close()
    click.echo(json.dumps(data, indent=2))


@cli.command('delete-schedule')
@click.option('--project-id', type=int, required=True, help='Project id')
@click.confirmation_option(prompt='Delete the schedule for this project?')
def delete_schedule(project_id: int):
    """Remove a project's schedule and everything it owns."""
    from schedule_app.models import get_db
    from schedule_app.domain.services import ScheduleImportService
    from schedule_app.domain.exceptions import DomainError

    db = next(get_db())
    try:
        deleted = ScheduleImportService(db).delete_schedule(project_id)
    except DomainError as e:
        click.echo(click.style(f"Error: {e.message}", fg='red'), err=True)
        raise click.Abort()
    finally:
        db.close()
    click.echo(f"Deleted {deleted} import(s)")


@cli.command()
@click.option('--port', type=int, default=8000, help='Server port')
@click.option('--host', default='0.0.0.0', help='Server host')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
def serve(port: int, host: str, reload: bool):
    """Start the API server.

    Example:
        python cli.py serve --port 8000 --reload
    """
    import uvicorn

    click.echo(click.style('Schedule Import - API Server', fg='cyan', bold=True))
    click.echo(f"Starting server at http://{host}:{port}")

    uvicorn.run(
        "schedule_app.main:app",
        host=host,
        port=port,
        reload=reload
    )


if __name__ == '__main__':
    cli()
