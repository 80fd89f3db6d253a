"""
Step definitions for features/payments.feature
"""

from datetime import date

from pytest_bdd import scenarios, given, when, then, parsers

from salonbook.cli.main import cli
from salonbook.engine import reservations

scenarios("features/payments.feature")


@given(parsers.parse("a payment of {amount:d} was recorded"))
def payment_recorded(repo, context, amount):
    reservations.record_payment(context["reservation_id"], amount, paid_on=date(2026, 2, 1))


@when(parsers.parse("the manager records a payment of {amount:d}"))
def record_payment(runner, repo, context, amount):
    context["result"] = runner.invoke(
        cli, ["reservations", "pay", context["reservation_id"], str(amount), "--date", "2026-02-01"]
    )


@when(parsers.parse("the manager removes payment {number:d}"))
def remove_payment(runner, repo, context, number):
    context["result"] = runner.invoke(
        cli, ["reservations", "delete-payment", context["reservation_id"], str(number)]
    )


@then("the reservation has no payments")
def no_payments(repo, context):
    stored = repo.stored(context["reservation_id"])
    assert stored.payment_history == []
    assert stored.paid_amount == 0
