"""Schemas for admin performance reports."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class Period(BaseModel):
    start: dt.date
    end: dt.date


class WriterReportRow(BaseModel):
    id: int
    name: str
    email: str
    total_assignments: int = 0
    completed: int = 0
    in_progress: int = 0
    revisions: int = 0
    total_earned: float = 0
    avg_completion_hours: float = 0
    late_deliveries: int = 0


class OverallStats(BaseModel):
    total_assignments: int = 0
    completed: int = 0
    pending: int = 0
    in_progress: int = 0
    total_value: float = 0
    avg_turnaround_hours: float = 0


class WriterReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    period: Period
    overall: OverallStats
    writers: list[WriterReportRow]
    top_performers: list[WriterReportRow] = Field(serialization_alias="topPerformers")
    generated_at: dt.datetime = Field(serialization_alias="generatedAt")


class SiteSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_orders: int = 0
    completed_orders: int = 0
    client_portal_orders: int = 0
    total_revenue: float = 0
    avg_order_value: float = 0
    order_growth: float = Field(0, serialization_alias="orderGrowth")
    revenue_growth: float = Field(0, serialization_alias="revenueGrowth")


class DomainRow(BaseModel):
    domain: str | None = None
    count: int
    revenue: float


class DailyRow(BaseModel):
    date: dt.date
    orders: int
    revenue: float


class MembershipStats(BaseModel):
    total_members: int = 0
    verified_members: int = 0
    new_members: int = 0


class InquiryStats(BaseModel):
    total: int = 0
    resolved: int = 0
    avg_resolution_hours: float = 0


class SiteReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    period: Period
    summary: SiteSummary
    by_domain: list[DomainRow] = Field(serialization_alias="byDomain")
    daily_stats: list[DailyRow] = Field(serialization_alias="dailyStats")
    membership: MembershipStats
    inquiries: InquiryStats
    generated_at: dt.datetime = Field(serialization_alias="generatedAt")


class WriterReportResponse(BaseModel):
    success: bool = True
    report: WriterReport


class SiteReportResponse(BaseModel):
    success: bool = True
    report: SiteReport
