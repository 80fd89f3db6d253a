#!/usr/bin/env python3
"""
SalonBook - Interactive Menu Launcher
Run this file to access all reservation commands through a simple menu.

Usage:
    python main.py
"""

import subprocess
import sys
import os

# Ensure we're running from the project root with the venv python
PYTHON = sys.executable
SALONBOOK = [PYTHON, "salonbook/cli/main.py"]

# Project root on PYTHONPATH so 'salonbook' package is importable
ENV = os.environ.copy()
ENV["PYTHONPATH"] = os.path.dirname(os.path.abspath(__file__))


def run(args: list[str]):
    """Run a SalonBook CLI command and return to menu when done."""
    print()
    subprocess.run(SALONBOOK + args, env=ENV)
    print()
    input("  Press Enter to return to menu...")


def prompt(label: str, required: bool = True) -> str:
    """Prompt user for input. Returns empty string if optional and skipped."""
    while True:
        value = input(f"  {label}: ").strip()
        if value:
            return value
        if not required:
            return ""
        print("  (required - please enter a value)")


def prompt_optional(label: str) -> str:
    return prompt(f"{label} (optional, Enter to skip)", required=False)


def yes(label: str) -> bool:
    return input(f"  {label} (y/N): ").strip().lower() == "y"


def clear():
    os.system("cls" if os.name == "nt" else "clear")


# =============================================================================
# COMMAND HANDLERS
# =============================================================================

def overview():
    """Upcoming bookings and payment alerts, read through the state cache."""
    sys.path.insert(0, ENV["PYTHONPATH"])
    from salonbook.engine.errors import SalonBookError
    from salonbook.engine.reports import format_currency, payment_alerts
    from salonbook.engine.reservations import today
    from salonbook.state import AppState

    try:
        state = AppState().refresh()
    except SalonBookError as e:
        print(f"\n  Could not load reservations: {e}")
        input("  Press Enter to return to menu...")
        return

    now = today()
    upcoming = [r for r in state.reservations if r.date >= now]
    alerts = payment_alerts(state.reservations, now)

    print(f"\n  {len(state.reservations)} active reservations, {len(state.trash)} in trash\n")
    print("  NEXT UP")
    for r in upcoming[:10]:
        print(f"  {r.date}  {r.client_name[:24]:<24} {r.status:<11} {format_currency(r.total):>14}")
    if not upcoming:
        print("  (nothing booked)")

    print(f"\n  PAYMENT ALERTS ({len(alerts)})")
    for alert in alerts[:10]:
        r = alert["reservation"]
        print(f"  {alert['severity']:<7} {r.date}  {r.client_name[:24]:<24} owes {format_currency(alert['remaining']):>14}")
    print()
    input("  Press Enter to return to menu...")


def reservations_list():
    args = ["reservations", "list"]
    m = prompt_optional("Month (YYYY-MM)")
    if m: args += ["--month", m]
    run(args)

def reservations_show():
    rid = prompt("Reservation ID")
    run(["reservations", "show", rid])

def reservations_search():
    name = prompt("Client name")
    run(["reservations", "search", name])

def reservations_add():
    args = ["reservations", "add"]
    t = prompt_optional("Type (salon/patio)")
    if t: args += ["--type", t]
    phone = prompt_optional("Phone")
    if phone: args += ["--phone", phone]
    addons = prompt_optional("Add-on ids, space separated")
    for a in addons.split():
        args += ["--addon", a]
    items = prompt_optional("Items as id=qty, space separated (e.g. chairs=40)")
    for i in items.split():
        args += ["--item", i]
    if yes("Include cleaning?"): args += ["--cleaning"]
    d = prompt_optional("Discount %")
    if d: args += ["--discount", d]
    run(args)

def reservations_pay():
    rid = prompt("Reservation ID")
    amount = prompt("Amount")
    run(["reservations", "pay", rid, amount])

def reservations_status():
    day = prompt("Date (YYYY-MM-DD)")
    status = prompt("Status (interested/deposited/confirmed)")
    run(["reservations", "status", day, status])

def reservations_trash():
    rid = prompt("Reservation ID")
    run(["reservations", "trash", rid])

def trash_list():
    run(["trash", "list"])

def reservations_recover():
    rid = prompt("Reservation ID")
    run(["reservations", "recover", rid])

def trash_purge():
    run(["trash", "purge"])

def config_show():
    run(["config", "show"])

def expenses_list():
    args = ["expenses", "list"]
    m = prompt_optional("Month (YYYY-MM)")
    if m: args += ["--month", m]
    run(args)

def expenses_add():
    name = prompt("Description")
    amount = prompt("Amount")
    run(["expenses", "add", name, amount])

def report_month():
    m = prompt_optional("Month (YYYY-MM, default: current)")
    run(["report", "month"] + ([m] if m else []))

def report_summary():
    p = prompt_optional("Group by (week/month/year, default: month)")
    run(["report", "summary"] + (["--period", p] if p else []))

def report_alerts():
    run(["report", "alerts"])

def report_export():
    m = prompt_optional("Month (YYYY-MM, default: current)")
    run(["report", "export"] + ([m] if m else []))

def migrate_quantities():
    run(["maintenance", "migrate-quantities"])

def recalculate():
    run(["maintenance", "recalculate"] + (["--force"] if yes("Ignore stored prices (force)?") else []))


# =============================================================================
# MENU LAYOUT
# =============================================================================

MENU = [
    ("OVERVIEW", [
        ("Upcoming & payment alerts",    overview),
    ]),
    ("RESERVATIONS", [
        ("List reservations",            reservations_list),
        ("Show reservation details",     reservations_show),
        ("Search by client name",        reservations_search),
        ("Add new reservation",          reservations_add),
        ("Record payment",               reservations_pay),
        ("Set status for a date",        reservations_status),
        ("Move to trash",                reservations_trash),
    ]),
    ("TRASH", [
        ("List trash",                   trash_list),
        ("Recover reservation",          reservations_recover),
        ("Purge old trash",              trash_purge),
    ]),
    ("PRICING & EXPENSES", [
        ("Show pricing",                 config_show),
        ("List expenses",                expenses_list),
        ("Add expense",                  expenses_add),
    ]),
    ("REPORTS", [
        ("Month report",                 report_month),
        ("Income vs expenses",           report_summary),
        ("Payment alerts",               report_alerts),
        ("Export month to Excel",        report_export),
    ]),
    ("MAINTENANCE", [
        ("Freeze item prices (migrate)", migrate_quantities),
        ("Re-price all reservations",    recalculate),
    ]),
]


def print_menu():
    clear()
    print("=" * 50)
    print("   SALONBOOK - RESERVATIONS")
    print("=" * 50)

    n = 1
    numbering = {}  # maps display number -> handler function

    for section, commands in MENU:
        print(f"\n  {section}")
        print(f"  {'-' * len(section)}")
        for label, handler in commands:
            print(f"  {n:>2}.  {label}")
            numbering[n] = handler
            n += 1

    print("\n" + "=" * 50)
    print("   0.  Exit")
    print("=" * 50)
    return numbering


def main():
    while True:
        numbering = print_menu()

        try:
            choice = input("\n  Select a command: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\n  Goodbye!\n")
            break

        if choice == "0" or choice.lower() in ("q", "quit", "exit"):
            print("\n  Goodbye!\n")
            break

        try:
            n = int(choice)
        except ValueError:
            print("\n  Please enter a number.")
            input("  Press Enter to continue...")
            continue

        if n in numbering:
            clear()
            numbering[n]()
        else:
            print(f"\n  Invalid selection: {choice}")
            input("  Press Enter to continue...")


if __name__ == "__main__":
    main()
