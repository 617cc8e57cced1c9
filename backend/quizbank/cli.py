"""Command line entry point for maintenance tasks."""

import json
import sys
import uuid

import click

from quizbank.core.app_exceptions import AppError
from quizbank.core.logging import get_logger, setup_logging
from quizbank.db.session import SessionLocal, init_db
from quizbank.services import scoring
from quizbank.services.question_bank import import_questions

logger = get_logger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: str | None):
    """Practice-test maintenance commands."""
    setup_logging(log_level)


@cli.command("init-db")
def init_db_command():
    """Create all tables on the configured database."""
    init_db()
    click.echo("Database initialized")


@cli.command("load-questions")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def load_questions_command(path: str):
    """
    Import questions from a JSON file holding a list of question objects.

    Example:
        quizbank load-questions questions.json
    """
    with open(path, encoding="utf-8") as fh:
        try:
            payloads = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Not valid JSON: {e}", param_hint="PATH") from e
    if not isinstance(payloads, list):
        raise click.BadParameter("Expected a JSON list of questions", param_hint="PATH")

    db = SessionLocal()
    try:
        ids = import_questions(db, payloads)
    except AppError as e:
        logger.error("Question import failed", extra={"error": e.message, "details": e.details})
        click.echo(f"Import failed: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()
    click.echo(f"Imported {len(ids)} questions")


@cli.command("rebuild-aggregates")
@click.argument("test_id", type=click.UUID)
def rebuild_aggregates_command(test_id: uuid.UUID):
    """Recompute a test's counters and score from its recorded responses."""
    db = SessionLocal()
    try:
        mismatches = scoring.check_test_consistency(db, test_id)
        test = scoring.rebuild_test_aggregates(db, test_id)
    except AppError as e:
        click.echo(f"Rebuild failed: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()

    for field, (stored, derived) in sorted(mismatches.items()):
        click.echo(f"{field}: {stored} -> {derived}")
    click.echo(
        f"Test {test.id}: {test.completed_questions}/{test.total_questions} answered, "
        f"score {test.score if test.score is not None else '-'}"
    )


if __name__ == "__main__":
    cli()
