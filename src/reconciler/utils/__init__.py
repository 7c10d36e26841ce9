"""Utility functions for reconciler."""

from reconciler.utils.date_parser import parse_date
from reconciler.utils.amount_parser import parse_amount, parse_optional_amount

__all__ = ["parse_date", "parse_amount", "parse_optional_amount"]
