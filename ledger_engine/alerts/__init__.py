"""Budget alerting package."""

from ledger_engine.alerts.policy import AlertingPolicy, build_budget_alert

__all__ = ["AlertingPolicy", "build_budget_alert"]
