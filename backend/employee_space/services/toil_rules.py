# Overview: Pure TOIL arithmetic; balance derivation and the streak/capacity policy gates.

"""
TOIL policy rules.

Nothing in this module touches the database. Entries are any objects carrying
``date``, ``status``, ``requested_minutes`` and ``used_minutes``; settings are
anything carrying ``max_capacity_minutes``, ``max_streak_minutes`` and
``max_streak_days``. toil_service loads the rows and calls in here.

BALANCE: sum(requested) - sum(used) over APPROVED entries only. Draft,
pending and rejected entries never move the authoritative figure.

STREAK: no run of ``max_streak_days`` consecutive days may contain more than
``max_streak_minutes`` of used TOIL. Every window of that width that contains
the target day is checked, so back-filling a day between two existing days
is caught as well as extending a run forward.

CAPACITY: balance + newly requested minutes must not exceed
``max_capacity_minutes``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from employee_space.time_utils import format_duration


APPROVED = "approved"


@dataclass(frozen=True)
class PolicyResult:
    allowed: bool
    remaining_minutes: int
    message: str | None = None


def compute_balance(entries: Iterable) -> int:
    """Net balance in minutes over approved entries. Everything else is ignored."""
    total = 0
    for entry in entries:
        if entry.status != APPROVED:
            continue
        total += int(entry.requested_minutes or 0) - int(entry.used_minutes or 0)
    return total


def streak_window_bounds(target_date: date, max_streak_days: int) -> tuple[date, date]:
    """First and last day that can share a streak window with ``target_date``."""
    span = timedelta(days=max(max_streak_days, 1) - 1)
    return target_date - span, target_date + span


def check_streak_limit(settings, window_entries: Iterable, requested_used_minutes: int, target_date: date) -> PolicyResult:
    """
    Gate a day's used TOIL against the streak limit.

    ``window_entries`` are the user's other entries near ``target_date``
    (any status). An entry on ``target_date`` itself is ignored because the
    new value replaces it.
    """
    days = max(int(settings.max_streak_days), 1)
    limit = int(settings.max_streak_minutes)

    used_by_day: dict[date, int] = {}
    for entry in window_entries:
        if entry.date == target_date:
            continue
        used_by_day[entry.date] = used_by_day.get(entry.date, 0) + int(entry.used_minutes or 0)

    worst = 0
    for offset in range(days):
        start = target_date - timedelta(days=days - 1 - offset)
        end = start + timedelta(days=days - 1)
        other = sum(m for d, m in used_by_day.items() if start <= d <= end)
        worst = max(worst, other)

    remaining = max(limit - worst, 0)
    if worst + requested_used_minutes > limit:
        return PolicyResult(
            allowed=False,
            remaining_minutes=remaining,
            message=(
                f"You can only use {format_duration(limit)} hours of TOIL over {days} days. "
                f"You have {format_duration(remaining)} remaining."
            ),
        )
    return PolicyResult(allowed=True, remaining_minutes=remaining - requested_used_minutes)


def check_capacity_limit(settings, current_balance_minutes: int, requested_minutes: int) -> PolicyResult:
    """Gate newly earned TOIL against the maximum accumulated balance."""
    cap = int(settings.max_capacity_minutes)
    remaining = max(cap - current_balance_minutes, 0)
    if current_balance_minutes + requested_minutes > cap:
        return PolicyResult(
            allowed=False,
            remaining_minutes=remaining,
            message=(
                f"You can only accumulate {format_duration(cap)} hours of TOIL. "
                f"You can request up to {format_duration(remaining)} more."
            ),
        )
    return PolicyResult(allowed=True, remaining_minutes=remaining - requested_minutes)
