"""
Settlement calculations for obligations and their payment ledgers.

Pure functions only: no database access, no clock. Callers pass ``today``.

Rules:
- total paid is always the sum of the ledger, never a stored counter
- remaining = amount - total paid (negative when overpaid)
- status is paid once total paid reaches the amount, otherwise overdue when
  the due date is before today, otherwise pending
"""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from app.models.obligation import ObligationStatus


def total_paid(payments: Iterable) -> int:
    """Sum of payment amounts in cents."""
    return sum(payment.amount_cents for payment in payments)


def remaining_balance(obligation, payments: Iterable) -> int:
    """Amount still owed in cents. May be negative."""
    return obligation.amount_cents - total_paid(payments)


def derive_status(obligation, payments: Iterable, today: date) -> ObligationStatus:
    if total_paid(payments) >= obligation.amount_cents:
        return ObligationStatus.PAID
    if obligation.due_date < today:
        return ObligationStatus.OVERDUE
    return ObligationStatus.PENDING


def group_by_due_month(obligations: Iterable) -> List[Tuple[str, list]]:
    """
    Group obligations by the calendar month of their due date.

    Returns [("YYYY-MM", [obligation, ...]), ...] with the most recent month
    first and each group sorted by due date ascending.
    """
    groups: Dict[str, list] = defaultdict(list)
    for obligation in obligations:
        groups[obligation.due_date.strftime("%Y-%m")].append(obligation)

    return [
        (month_key, sorted(groups[month_key], key=lambda o: o.due_date))
        for month_key in sorted(groups, reverse=True)
    ]


def summarize(
    obligations: Sequence,
    payments_by_obligation: Mapping[str, Sequence],
    today: date
) -> dict:
    """
    Aggregate counts and totals for a set of obligations.

    pending_count is every obligation that is not fully paid, overdue ones
    included.
    """
    paid_count = 0
    overdue_count = 0
    total_amount_cents = 0
    total_by_currency: Dict[str, int] = {}

    for obligation in obligations:
        payments = payments_by_obligation.get(str(obligation.id), [])
        total_amount_cents += obligation.amount_cents
        total_by_currency[obligation.currency_code] = (
            total_by_currency.get(obligation.currency_code, 0) + obligation.amount_cents
        )

        status = derive_status(obligation, payments, today)
        if status == ObligationStatus.PAID:
            paid_count += 1
        elif status == ObligationStatus.OVERDUE:
            overdue_count += 1

    return {
        "total_count": len(obligations),
        "paid_count": paid_count,
        "pending_count": len(obligations) - paid_count,
        "overdue_count": overdue_count,
        "total_amount_cents": total_amount_cents,
        "total_amount_by_currency": total_by_currency,
    }
