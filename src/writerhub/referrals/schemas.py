"""Schemas for client referrals and credits. Wire names are camelCase."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CodeRequest(_CamelModel):
    email: str | None = None
    name: str | None = None


class AdminCodeRequest(CodeRequest):
    custom_code: str | None = None


class CodeStats(_CamelModel):
    total_referrals: int = 0
    total_credits: float = 0


class CodeResponse(_CamelModel):
    code: str
    referral_link: str
    stats: CodeStats


class ValidateResponse(_CamelModel):
    valid: bool
    referrer_name: str | None = None
    discount: str | None = None


class TrackRequest(_CamelModel):
    referral_code: str | None = None
    referred_email: str | None = None
    referred_name: str | None = None
    assignment_id: int | None = None


class TrackResponse(_CamelModel):
    tracked: bool
    reason: str | None = None
    referral_id: int | None = None
    referrer_name: str | None = None


class ConvertRequest(_CamelModel):
    assignment_amount: Decimal | None = None


class ConvertResponse(_CamelModel):
    converted: bool
    reason: str | None = None
    referrer_credit: float | None = None
    referred_credit: float | None = None


class ApplyCreditRequest(_CamelModel):
    client_email: str | None = None
    assignment_id: int | None = None
    credit_amount: Decimal | None = None


class ApplyCreditResponse(_CamelModel):
    applied: bool
    reason: str | None = None
    amount_applied: float | None = None
    remaining_credits: float | None = None


class ReferralItem(_CamelModel):
    id: int
    referred_name: str
    status: str
    credit_amount: float
    created_at: datetime | None = None
    converted_at: datetime | None = None


class CreditItem(_CamelModel):
    id: int
    amount: float
    type: str
    description: str | None = None
    created_at: datetime | None = None


class ReferralStatsSummary(_CamelModel):
    total_referrals: int
    total_credits_earned: float
    available_credits: float
    pending_referrals: int
    converted_referrals: int


class ReferralStatsResponse(_CamelModel):
    has_code: bool
    message: str | None = None
    code: str | None = None
    referral_link: str | None = None
    stats: ReferralStatsSummary | None = None
    referrals: list[ReferralItem] = []
    credits: list[CreditItem] = []


class ReferralCodeRow(_CamelModel):
    id: int
    code: str
    client_email: str
    client_name: str
    is_active: bool
    total_referrals: int
    total_credits_earned: float
    created_at: datetime | None = None
    referral_count: int | None = None


class ProgramTotals(_CamelModel):
    total_codes: int
    total_referrals: int
    converted_referrals: int
    total_credits_issued: float
    total_credits_used: float


class RecentReferral(_CamelModel):
    id: int
    referrer_name: str
    referral_code: str
    referred_email: str
    referred_name: str | None = None
    status: str
    credit_amount: float
    created_at: datetime | None = None


class OverviewResponse(_CamelModel):
    stats: ProgramTotals
    top_referrers: list[ReferralCodeRow]
    recent_referrals: list[RecentReferral]


class AddCreditRequest(_CamelModel):
    email: str | None = None
    amount: Decimal | None = None
    description: str | None = None
