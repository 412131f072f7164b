"""
Amortization engine
===================
Pure functions for reducing-balance loans:
  - monthly EMI for a principal, term and annual rate
  - late fee for an installment paid after its due date
  - calendar-month due dates
  - advisory repayment schedule and loan summary

Nothing here touches the database. Rates are annual percentages (96 means 96%).
"""

import math
from datetime import datetime
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from app.core.config import settings

SECONDS_PER_DAY = 24 * 60 * 60


def monthly_rate(annual_rate: float) -> float:
    return annual_rate / 100 / 12


def calculate_emi(principal: float, term: int, annual_rate: Optional[float] = None) -> float:
    """Fixed monthly installment: P*r*(1+r)^n / ((1+r)^n - 1).

    A zero rate degenerates to an even split of the principal.
    """
    if principal is None or principal <= 0:
        raise ValueError("Principal must be greater than zero")
    if term is None or int(term) != term or term < 1:
        raise ValueError("Term must be a whole number of months, at least 1")
    if annual_rate is None:
        annual_rate = settings.FIXED_INTEREST_RATE
    if annual_rate < 0:
        raise ValueError("Interest rate cannot be negative")

    r = monthly_rate(annual_rate)
    if r == 0:
        return principal / term

    growth = math.pow(1 + r, term)
    return principal * r * growth / (growth - 1)


def calculate_late_fee(emi_amount: float, days_late: int) -> float:
    # 1% of the installment per day late, capped at 20%
    if days_late <= 0:
        return 0.0
    fee_percent = min(days_late * settings.LATE_FEE_PERCENT_PER_DAY, settings.LATE_FEE_CAP_PERCENT)
    return emi_amount * fee_percent / 100


def days_late(due_date: datetime, as_of: datetime) -> int:
    """Whole days elapsed from due_date to as_of (floored; negative when early)."""
    return math.floor((as_of - due_date).total_seconds() / SECONDS_PER_DAY)


def late_fee_for(emi_amount: float, due_date: datetime, paid_on: datetime) -> float:
    if paid_on <= due_date:
        return 0.0
    return calculate_late_fee(emi_amount, days_late(due_date, paid_on))


def add_months(moment: datetime, months: int) -> datetime:
    # Clamps to the last day of shorter months (Jan 31 + 1 month -> Feb 28/29)
    return moment + relativedelta(months=months)


def due_dates(start: datetime, term: int) -> List[datetime]:
    return [add_months(start, i) for i in range(1, term + 1)]


def generate_repayment_schedule(principal: float, term: int, annual_rate: Optional[float] = None) -> List[Dict[str, float]]:
    """Month-by-month split of each payment into interest and principal.

    Used for display only; EMI records are created by the EMI service.
    """
    if annual_rate is None:
        annual_rate = settings.FIXED_INTEREST_RATE
    emi = calculate_emi(principal, term, annual_rate)
    r = monthly_rate(annual_rate)

    balance = principal
    schedule = []
    for month in range(1, term + 1):
        interest = balance * r
        principal_paid = emi - interest
        balance -= principal_paid
        schedule.append({
            "month": month,
            "payment": emi,
            "principal": principal_paid,
            "interest": interest,
            "balance": balance if balance > 0 else 0.0,
        })
    return schedule


def loan_summary(principal: float, term: int, annual_rate: Optional[float] = None) -> Dict[str, float]:
    emi = calculate_emi(principal, term, annual_rate)
    total_payment = emi * term
    return {
        "monthly_emi": round(emi, 2),
        "total_payment": round(total_payment, 2),
        "total_interest": round(total_payment - principal, 2),
    }
