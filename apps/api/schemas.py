from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Auth ---

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    display_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class UserResponse(CamelModel):
    id: UUID
    email: str
    display_name: Optional[str] = None
    created_at: datetime
    operating_mode: str
    recovery_start_date: Optional[datetime] = None
    token_balance: int = 0
    total_tokens_earned: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    life_lines: int = 0


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: Optional[UserResponse] = None


# --- Crisis protocol ---

class CrisisProtocolCreate(CamelModel):
    # Optional here so missing fields produce the API's own 400 message
    crisis_type: Optional[str] = None
    burden_to_cut: Optional[str] = None
    oxygen_source: Optional[str] = None


class CrisisProtocolUpdate(CamelModel):
    protocol_id: Optional[UUID] = None
    is_burden_cut: Optional[bool] = None
    is_oxygen_scheduled: Optional[bool] = None
    complete: Optional[bool] = None


class RecoveryCheckinResponse(CamelModel):
    id: UUID
    protocol_id: UUID
    week_of: date
    protocol_completed: Optional[bool] = None
    oxygen_connected: Optional[bool] = None
    oxygen_level_current: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime


class CrisisProtocolResponse(CamelModel):
    id: UUID
    crisis_type: str
    burden_to_cut: str
    oxygen_source: str
    is_burden_cut: bool
    is_oxygen_scheduled: bool
    oxygen_level_start: Optional[int] = None
    oxygen_level_current: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class CrisisGuidanceResponse(CamelModel):
    status: str
    color: str
    message: str


class ActiveProtocolDetail(CrisisProtocolResponse):
    latest_checkin: Optional[RecoveryCheckinResponse] = None
    guidance: Optional[CrisisGuidanceResponse] = None


class ActiveProtocolResponse(CamelModel):
    protocol: Optional[ActiveProtocolDetail] = None


class CrisisProtocolCreateResponse(CamelModel):
    success: bool
    protocol: CrisisProtocolResponse
    tokens_awarded: int
    new_balance: int


class CrisisProtocolUpdateResponse(CamelModel):
    success: bool
    protocol: CrisisProtocolResponse


# --- Fog checks ---

class FogCheckResponse(CamelModel):
    id: UUID
    protocol_id: Optional[UUID] = None
    observation: str
    strategic_question: str
    fog_check_type: str
    created_at: datetime


class FogCheckCreate(CamelModel):
    protocol_id: Optional[UUID] = None


class FogCheckCreateResponse(CamelModel):
    success: bool
    fog_check: FogCheckResponse


class FogCheckListResponse(CamelModel):
    fog_checks: List[FogCheckResponse]


# --- Recovery check-in ---

class RecoveryCheckinCreate(CamelModel):
    protocol_id: Optional[UUID] = None
    protocol_completed: Optional[bool] = None
    oxygen_connected: Optional[bool] = None
    oxygen_level_current: Optional[int] = None
    notes: Optional[str] = None


class CheckinSummary(CamelModel):
    id: UUID
    week_of: date
    oxygen_level_current: Optional[int] = None


class StreakUpdateResponse(CamelModel):
    current: int
    longest: int
    life_lines: int
    life_lines_used: int = 0
    life_lines_earned: int = 0
    streak_broken: bool = False
    streak_frozen: bool = False
    message: str


class RecoveryCheckinResult(CamelModel):
    success: bool
    checkin: CheckinSummary
    streak: StreakUpdateResponse
    fog_check: Optional[FogCheckResponse] = None
    is_stable: bool
    tokens_awarded: int
    new_balance: int


class RecoveryCheckinListResponse(CamelModel):
    checkins: List[RecoveryCheckinResponse]


# --- Transition ---

class TransitionEligibilityResponse(CamelModel):
    is_eligible: bool
    weeks_stable: int
    current_oxygen_level: Optional[int] = None
    days_in_recovery: int
    has_14_days_passed: bool = Field(alias="has14DaysPassed")
    message: str
    blockers: List[str]


class TransitionRequest(CamelModel):
    protocol_id: Optional[UUID] = None


class TransitionResponse(CamelModel):
    success: bool
    message: str
    tokens_awarded: int
    new_balance: int


# --- Mode switch ---

class ModeStatusResponse(CamelModel):
    current_mode: str
    recovery_start_date: Optional[datetime] = None


class ModeSwitchRequest(CamelModel):
    target_mode: Optional[str] = None


class ModeSwitchResponse(CamelModel):
    success: bool
    current_mode: str
    already_in_mode: bool = False
    recovery_start_date: Optional[datetime] = None
    message: str


# --- Tokens ---

class TokenBalanceResponse(CamelModel):
    current_balance: int
    total_earned: int
    total_spent: int


class TokenTransactionResponse(CamelModel):
    id: UUID
    amount: int
    transaction_type: str
    description: Optional[str] = None
    related_entity_id: Optional[UUID] = None
    balance_after: int
    created_at: datetime


class TokenHistoryResponse(CamelModel):
    transactions: List[TokenTransactionResponse]


class TokenStatsResponse(TokenBalanceResponse):
    recent_transactions: List[TokenTransactionResponse]


# --- Streak ---

class StreakDataResponse(CamelModel):
    current_streak: int
    longest_streak: int
    life_lines: int
    last_log_date: Optional[date] = None
    weeks_logged: int
    consistency_percentage: int
