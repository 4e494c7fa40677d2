"""Console output."""

from monopub.output.report import audit_table, plan_table, recovery_table, state_table

__all__ = ["audit_table", "plan_table", "recovery_table", "state_table"]
