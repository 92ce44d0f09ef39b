from __future__ import annotations

from pydantic import BaseModel


class DashboardSummary(BaseModel):
    """Per-tenant counters shown on the hospital admin dashboard."""

    total_patients: int
    today_registrations: int
    total_cases: int
    total_prescriptions: int
