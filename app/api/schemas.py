"""Pydantic request models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.validators import normalize_wallet_address


class ApiModel(BaseModel):
    """Request body with camelCase aliases; snake_case names also accepted."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _address(value: str) -> str:
    return normalize_wallet_address(value)


class UserCreateRequest(ApiModel):
    """POST /users body."""

    address: str = Field(..., description="Wallet address")
    total_referrals: int = Field(default=0, ge=0)
    total_rewards: Decimal = Field(default=Decimal("0"), ge=0)
    is_registered: bool = False
    ascension_bonus_referrals: int = Field(default=0, ge=0)
    ascension_bonus_sales_total: Decimal = Field(default=Decimal("0"), ge=0)
    ascension_bonus_rewards_claimed: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return _address(v)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly supplied by the caller, without the address."""
        return self.model_dump(exclude_unset=True, exclude={"address"})


class EventCreateRequest(ApiModel):
    """POST /events body."""

    event_type: str = Field(..., min_length=1, description="Contract event name")
    user_address: str = Field(default="", description="Subject address")
    package_id: int | None = Field(default=None, ge=0)
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    referrer_address: str | None = None
    transaction_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")
    block_number: int = Field(..., ge=0)
    log_index: int = Field(default=0, ge=0)
    timestamp: datetime | None = None
    event_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_address")
    @classmethod
    def check_user_address(cls, v: str) -> str:
        return _address(v) if v else ""

    @field_validator("referrer_address")
    @classmethod
    def check_referrer_address(cls, v: str | None) -> str | None:
        return _address(v) if v else None

    @field_validator("transaction_hash")
    @classmethod
    def lower_hash(cls, v: str) -> str:
        return v.lower()


class PackageCreateRequest(ApiModel):
    """POST /packages body."""

    package_id: int = Field(..., ge=1, description="Contract package id")
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    duration: int = Field(..., ge=0)
    roi_percentage: int = Field(..., ge=0)
    is_active: bool = True

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude={"package_id"})


class PackageUpdateRequest(ApiModel):
    """PUT /packages/:id body; only supplied fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0)
    duration: int | None = Field(default=None, ge=0)
    roi_percentage: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class UserPackageStatsRequest(ApiModel):
    """POST /user-stats body."""

    user_address: str = Field(..., description="Wallet address")
    package_id: int = Field(..., ge=0)
    referral_count: int | None = Field(default=None, ge=0)
    total_rewards: Decimal | None = Field(default=None, ge=0)
    ascension_bonus_referrals: int | None = Field(default=None, ge=0)
    ascension_bonus_sales_total: Decimal | None = Field(default=None, ge=0)
    ascension_bonus_rewards_claimed: Decimal | None = Field(default=None, ge=0)

    @field_validator("user_address")
    @classmethod
    def check_user_address(cls, v: str) -> str:
        return _address(v)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"user_address", "package_id"}
        )
