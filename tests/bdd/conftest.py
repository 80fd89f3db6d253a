"""
Shared fixtures and step definitions for BDD tests.

- runner, context: available to all scenario files in this directory
- repo: the in-memory store (fake_repo from tests/conftest.py), used by every scenario
- no_logging: autouse, prevents log file creation during tests
- shared Given/Then steps: booking a reservation, command outcome checks
"""

from datetime import date

import pytest
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import given, then, parsers

from salonbook.engine import reservations
from salonbook.models import ReservationDraft


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def repo(fake_repo):
    return fake_repo


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("salonbook.cli.main.configure_logging"):
        yield


@given(parsers.parse('a reservation for "{client}" on {day}'))
def reservation_exists(repo, context, client, day):
    draft = ReservationDraft(client_name=client, date=date.fromisoformat(day), guest_count=40)
    context["reservation_id"] = reservations.create_reservation(draft).reservation.id


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@then("the command succeeds")
def command_succeeds(context):
    assert context["result"].exit_code == 0, context["result"].output


@then(parsers.parse("the command fails with exit code {code:d}"))
def command_fails(context, code):
    assert context["result"].exit_code == code, context["result"].output
