from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import EmailStr
from pydantic import Field

from studioops.models import MemberStatus
from studioops.models import MembershipStatus
from studioops.models import OrgRole
from studioops.models import PaymentMethod


class MemberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)


class MemberUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    status: Optional[MemberStatus] = None


class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    name: str
    email: Optional[str]
    phone: Optional[str]
    status: MemberStatus
    created_at: datetime
    updated_at: datetime


class CoachCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)


class CoachOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    membership_id: int
    user_id: int
    email: str
    name: Optional[str]
    role: OrgRole
    status: MembershipStatus


class SessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    starts_at: datetime
    duration_minutes: int = Field(default=60, ge=5, le=24 * 60)
    location: Optional[str] = Field(default=None, max_length=255)
    coach_user_id: Optional[int] = None


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    title: str
    starts_at: datetime
    duration_minutes: int
    location: Optional[str]
    coach_user_id: Optional[int]
    created_at: datetime


class PaymentCreate(BaseModel):
    member_id: int = Field(ge=1)
    amount: int = Field(gt=0)
    currency: str = Field(default="HUF", min_length=3, max_length=3)
    method: PaymentMethod = PaymentMethod.CASH
    note: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    member_id: int
    amount: int
    currency: str
    method: PaymentMethod
    note: Optional[str]
    recorded_at: datetime


class UsageOut(BaseModel):
    current: int
    limit: int
    allowed: bool


class BillingStatusOut(BaseModel):
    org_id: int
    org_name: str
    tier: Optional[str]
    tier_name: Optional[str]
    status: str
    monthly_price: Optional[int]
    current_period_end: Optional[datetime]
    trial_ends_at: Optional[datetime]
    usage: dict[str, UsageOut]


class UpgradePreviewOut(BaseModel):
    current_tier: str
    target_tier: str
    can_upgrade: bool
    new_features: list[str]
    price_difference: int
    raised_quotas: dict[str, int]
