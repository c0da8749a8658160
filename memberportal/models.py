from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FeeState(BaseModel):
    """Read-time view of one flavour's payment record."""

    paid: bool = False
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    interval: Optional[str] = None
    interval_count: Optional[int] = None
    method: Optional[str] = None
    method_name: str = "(none)"
    amount: Optional[int] = None
    normalized_amount: Optional[float] = None
    normalized_interval: Optional[str] = None
    currency: Optional[str] = None
    error: bool = False
    error_message: Optional[str] = None


class Payments(BaseModel):
    membership: FeeState
    housecard: FeeState


class MemberOut(BaseModel):
    user_id: Optional[str] = None
    picture: Optional[str] = None
    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    email: Optional[str] = None
    birth_date: Optional[str] = None
    phone_number: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    roles: Optional[str] = None
    admin: bool = False
    developer: bool = False
    payments: Optional[Payments] = None


class ProfileUpdateReq(BaseModel):
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    birth_date: Optional[str] = None
    phone_number: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class FeeUpdateReq(BaseModel):
    # Loosely typed on purpose; validate_fee_mutation does the checking.
    model_config = ConfigDict(extra="allow")
    payed: Any = None
    method: Any = None
    periodStart: Any = None
    interval: Any = None
    intervalCount: Any = None
    amount: Any = None
    currency: Any = None


class CheckoutSessionResp(BaseModel):
    id: str


class PricesResp(BaseModel):
    prices: List[Dict[str, Any]] = Field(default_factory=list)
    products: List[Dict[str, Any]] = Field(default_factory=list)


class SubscriptionsResp(BaseModel):
    membfeeSubs: List[Dict[str, Any]] = Field(default_factory=list)
    housecardSubs: List[Dict[str, Any]] = Field(default_factory=list)
