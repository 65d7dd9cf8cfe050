"""Budget status evaluation package."""

from ledger_engine.budgets.evaluator import (
    classify,
    evaluate,
    in_states,
    overview,
    percentage_used,
)

__all__ = ["classify", "evaluate", "in_states", "overview", "percentage_used"]
