# stagnation/__init__.py

"""
Détection de stagnation du pipeline commercial.

Utilisation :
    from stagnation import find_stagnant_customers, summarize_stagnation

    now = utcnow()
    alerts = find_stagnant_customers(customers, "warning", now=now)
    summary = summarize_stagnation(customers, now=now)
"""

from stagnation.engine import (
    build_alert_overview,
    calculate_stagnation,
    classify,
    filter_and_rank,
    find_stagnant_customers,
    is_eligible,
    parse_date,
    resolve_stage_entry_date,
    summarize,
    summarize_stagnation,
    utcnow,
)
from stagnation.thresholds import (
    PRE_CONTRACT_STATUS_ORDER,
    STAGE_ENTRY_FIELDS,
    STAGNATION_THRESHOLDS,
)

__all__ = [
    "PRE_CONTRACT_STATUS_ORDER",
    "STAGE_ENTRY_FIELDS",
    "STAGNATION_THRESHOLDS",
    "build_alert_overview",
    "calculate_stagnation",
    "classify",
    "filter_and_rank",
    "find_stagnant_customers",
    "is_eligible",
    "parse_date",
    "resolve_stage_entry_date",
    "summarize",
    "summarize_stagnation",
    "utcnow",
]
