"""Shared numeric/formatting utilities for reporting."""

from __future__ import annotations


def fmt_votes(value: float | None, digits: int = 0) -> str:
    if value is None:
        return "N/A"
    return f"{value:,.{digits}f}"


def fmt_votes_signed(value: float | None) -> str:
    if value is None:
        return "N/A"
    sign = "-" if value < 0 else "+"
    return f"{sign}{fmt_votes(abs(value))}"


def fmt_pct(value: float | None, digits: int = 1) -> str:
    if value is None:
        return "N/A"
    return f"{value * 100:.{digits}f}%"
