"""Human-readable renderings used in alerts and logs."""
from __future__ import annotations

from gigradar.models import Budget, FixedBudget, HourlyBudget


def _num(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_budget(budget: Budget) -> str:
    if isinstance(budget, FixedBudget):
        return f"${_num(budget.amount)} (Fixed)"
    if isinstance(budget, HourlyBudget):
        return f"${_num(budget.min)}-${_num(budget.max)}/hr"
    return "Not specified"


def format_currency(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${_num(amount)}"


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + "..."
