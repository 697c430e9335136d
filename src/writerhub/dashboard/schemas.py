"""Dashboard Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel


class AdminStatsResponse(BaseModel):
    total_writers: int
    active_assignments: int
    pending_payments: float
    completed_this_month: int


class WriterStatsResponse(BaseModel):
    active_assignments: int
    completed_assignments: int
    total_earned: float
    balance_owed: float
    unread_notifications: int


class TopWriter(BaseModel):
    id: int
    name: str
    completed_count: int
    total_earned: float


class WriterPerformance(BaseModel):
    id: int
    name: str
    assignments: int
    words_written: int
    completed: int
    earned: float


class DashboardReport(BaseModel):
    total_assignments: int
    total_spent: float
    total_words: int
    avg_rate: float
    writer_performance: list[WriterPerformance]
