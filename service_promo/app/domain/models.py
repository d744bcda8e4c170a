"""
Entity and payload models for the Promo Service.

Entities are frozen snapshots; a cached copy is never edited in place.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoreType(str, Enum):
    """Store category."""
    KA = "KA"
    NKA = "NKA"


class AdminPromoType(str, Enum):
    """How the admin fee of a promo is expressed."""
    FIX = "FIX"
    PERCENT = "PERCENT"


class Entity(BaseModel):
    """Base for rows read from the remote service."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class Payload(BaseModel):
    """Base for request bodies; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class Store(Entity):
    """A store, addressable by id or by its unique route slug."""
    id: str
    name: str
    company: str
    address: str
    route: str
    store_type: Optional[StoreType] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Promo(Entity):
    """A promotion."""
    id: str
    title_promo: str
    admin_promo_type: AdminPromoType
    admin_promo: float
    interest_rate: float
    discount_type: Optional[str] = None
    is_active: bool = True
    start_date_promo: Optional[str] = None
    end_date_promo: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PromoTenor(Entity):
    """One tenor term offered under a promo."""
    id: str
    promo_id: str
    tenor: int
    min_transaction: float
    subsidi: float
    admin: float
    discount: float
    max_discount: float
    voucher_code: Optional[str] = None
    free_installment: int = 0
    is_available: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PromoStore(Entity):
    """Link between a promo and a store."""
    id: str
    promo_id: str
    store_id: str
    tenor_ids: Optional[List[str]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CreateStorePayload(Payload):
    """Request model for creating a store."""
    name: str = Field(..., min_length=1, description="Store name")
    company: str = Field(..., min_length=1, description="Owning company")
    address: str = Field(..., description="Street address")
    route: str = Field(..., min_length=1, description="Unique route slug")
    store_type: StoreType = Field(..., description="Store category")


class UpdateStorePayload(Payload):
    """Request model for updating a store; omitted fields are left untouched."""
    name: Optional[str] = Field(None, description="Store name")
    company: Optional[str] = Field(None, description="Owning company")
    address: Optional[str] = Field(None, description="Street address")
    route: Optional[str] = Field(None, description="Unique route slug")
    store_type: Optional[StoreType] = Field(None, description="Store category")


class CreatePromoPayload(Payload):
    """Request model for creating a promo."""
    title_promo: str = Field(..., min_length=1, description="Promo title")
    admin_promo_type: AdminPromoType = Field(..., description="Admin fee type")
    admin_promo: float = Field(..., ge=0, description="Admin fee value")
    interest_rate: float = Field(..., ge=0, description="Interest rate")
    discount_type: Optional[str] = Field(None, description="Discount type")
    is_active: bool = Field(True, description="Whether the promo is active")
    start_date_promo: Optional[str] = Field(None, description="Start of validity window")
    end_date_promo: Optional[str] = Field(None, description="End of validity window")


class UpdatePromoPayload(Payload):
    """Request model for updating a promo."""
    title_promo: Optional[str] = Field(None, description="Promo title")
    admin_promo_type: Optional[AdminPromoType] = Field(None, description="Admin fee type")
    admin_promo: Optional[float] = Field(None, ge=0, description="Admin fee value")
    interest_rate: Optional[float] = Field(None, ge=0, description="Interest rate")
    discount_type: Optional[str] = Field(None, description="Discount type")
    is_active: Optional[bool] = Field(None, description="Whether the promo is active")
    start_date_promo: Optional[str] = Field(None, description="Start of validity window")
    end_date_promo: Optional[str] = Field(None, description="End of validity window")


class CreatePromoTenorPayload(Payload):
    """Request model for creating a promo tenor."""
    promo_id: str = Field(..., description="Owning promo")
    tenor: int = Field(..., gt=0, description="Number of installments")
    min_transaction: float = Field(..., ge=0, description="Minimum transaction amount")
    subsidi: float = Field(0, ge=0, description="Subsidy amount")
    admin: float = Field(0, ge=0, description="Admin fee")
    discount: float = Field(0, ge=0, description="Discount amount")
    max_discount: float = Field(0, ge=0, description="Discount cap")
    voucher_code: Optional[str] = Field(None, description="Voucher code")
    free_installment: int = Field(0, ge=0, description="Free installment count")
    is_available: bool = Field(True, description="Whether the tenor can be offered")


class UpdatePromoTenorPayload(Payload):
    """Request model for updating a promo tenor."""
    promo_id: Optional[str] = Field(None, description="Owning promo")
    tenor: Optional[int] = Field(None, gt=0, description="Number of installments")
    min_transaction: Optional[float] = Field(None, ge=0, description="Minimum transaction amount")
    subsidi: Optional[float] = Field(None, ge=0, description="Subsidy amount")
    admin: Optional[float] = Field(None, ge=0, description="Admin fee")
    discount: Optional[float] = Field(None, ge=0, description="Discount amount")
    max_discount: Optional[float] = Field(None, ge=0, description="Discount cap")
    voucher_code: Optional[str] = Field(None, description="Voucher code")
    free_installment: Optional[int] = Field(None, ge=0, description="Free installment count")
    is_available: Optional[bool] = Field(None, description="Whether the tenor can be offered")


class CreatePromoStorePayload(Payload):
    """Request model for linking a promo to a store."""
    promo_id: str = Field(..., description="Promo id")
    store_id: str = Field(..., description="Store id")
    tenor_ids: Optional[List[str]] = Field(None, description="Tenors offered at this store")


class UpdatePromoStorePayload(Payload):
    """Request model for updating a promo-store link."""
    promo_id: Optional[str] = Field(None, description="Promo id")
    store_id: Optional[str] = Field(None, description="Store id")
    tenor_ids: Optional[List[str]] = Field(None, description="Tenors offered at this store")
