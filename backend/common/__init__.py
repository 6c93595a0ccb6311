"""Common reusable utility exports."""

from .common_functions import (
    add_months,
    as_int,
    days_until,
    new_id,
    percentage,
    utc_now,
    whole_days_between,
)
from .pagination import DEFAULT_LIMIT, DEFAULT_PAGE, normalize_page, paginate

__all__ = [
    "add_months",
    "as_int",
    "days_until",
    "new_id",
    "percentage",
    "utc_now",
    "whole_days_between",
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "normalize_page",
    "paginate",
]
