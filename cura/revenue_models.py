"""Pydantic models for orders and revenue reports."""
from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Dict, List

from pydantic import Field, field_validator

from .models import CamelModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class OrderItem(CamelModel):
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: float | None = Field(None, ge=0)
    pharmacy_id: str
    pharmacy_name: str = ""
    commission: float = 0.0
    category: str = ""

    @field_validator("product_id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def line_total(self) -> float:
        if self.total_price is not None:
            return self.total_price
        return self.quantity * self.unit_price


class Order(CamelModel):
    id: str
    customer_id: str
    customer_name: str = ""
    items: List[OrderItem]
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    status: OrderStatus = OrderStatus.PENDING
    payment_method: str = "cash_on_delivery"
    order_date: dt.datetime
    delivery_date: dt.datetime | None = None
    city_id: str = ""
    city_name: str = ""
    governorate_id: str = ""
    is_prescription_order: bool = False
    prescription_id: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None
    refund_amount: float | None = Field(None, ge=0)

    @property
    def sales(self) -> float:
        return sum(item.line_total for item in self.items)

    @property
    def refund(self) -> float:
        if self.status != OrderStatus.RETURNED:
            return 0.0
        return self.refund_amount if self.refund_amount is not None else self.total


class DoctorProfile(CamelModel):
    id: str
    name: str
    specialization: str = ""
    commission_rate: float | None = None


class RevenueBaseline(CamelModel):
    """Prior-period sales used for growth percentages, keyed by group id."""

    total_revenue: float = 0.0
    pharmacies: Dict[str, float] = Field(default_factory=dict)
    cities: Dict[str, float] = Field(default_factory=dict)
    categories: Dict[str, float] = Field(default_factory=dict)
    doctors: Dict[str, float] = Field(default_factory=dict)


class RevenueMetrics(CamelModel):
    total_revenue: float
    net_revenue: float
    gross_profit: float
    commission_paid: float
    platform_revenue: float
    average_order_value: float
    total_orders: int
    revenue_growth: float
    total_returns: int
    return_rate: float
    refund_amount: float
    net_revenue_after_returns: float


class PharmacyRevenue(CamelModel):
    pharmacy_id: str
    pharmacy_name: str
    city_id: str
    city_name: str
    total_sales: float
    total_orders: int
    commission_rate: float
    commission_earned: float
    platform_revenue: float
    average_order_value: float
    growth: float


class ProductRevenue(CamelModel):
    product_id: str
    product_name: str
    revenue: float
    orders: int
    units: int = 0


class CategoryRevenue(CamelModel):
    category: str
    category_name: str
    total_revenue: float
    total_orders: int
    average_order_value: float
    growth: float
    top_products: List[ProductRevenue] = Field(default_factory=list)


class PharmacyShare(CamelModel):
    pharmacy_id: str
    pharmacy_name: str
    revenue: float
    orders: int


class CityRevenue(CamelModel):
    city_id: str
    city_name: str
    governorate_id: str
    total_revenue: float
    total_orders: int
    pharmacies_count: int
    average_order_value: float
    growth: float
    top_pharmacies: List[PharmacyShare] = Field(default_factory=list)


class DoctorRevenue(CamelModel):
    doctor_id: str
    doctor_name: str
    specialization: str
    referrals: int
    successful_orders: int
    conversion_rate: float
    commission_rate: float
    commission_earned: float
    total_revenue: float
    growth: float


class TimeSeriesPoint(CamelModel):
    date: dt.date
    revenue: float = 0.0
    orders: int = 0
    commission: float = 0.0
    platform_revenue: float = 0.0


class CommissionBreakdown(CamelModel):
    pharmacy_commission: float
    doctor_commission: float
    platform_revenue: float
    total_commission: float


class RevenueAnalytics(CamelModel):
    period_start: dt.date
    period_end: dt.date
    overview: RevenueMetrics
    by_pharmacy: List[PharmacyRevenue]
    by_category: List[CategoryRevenue]
    by_city: List[CityRevenue]
    by_doctor: List[DoctorRevenue]
    time_series_data: List[TimeSeriesPoint]
    commission_breakdown: CommissionBreakdown


class RevenueTimeframe(CamelModel):
    label: str
    value: str
    days: int


class RevenueSummary(CamelModel):
    total_revenue: float
    platform_revenue: float
    commission_paid: float
    total_orders: int
    average_order_value: float
    growth: float
    top_pharmacy: PharmacyRevenue | None = None
    top_category: CategoryRevenue | None = None
    top_city: CityRevenue | None = None


class PharmacyAnalytics(PharmacyRevenue):
    top_selling_products: List[ProductRevenue] = Field(default_factory=list)
    daily_trend: List[TimeSeriesPoint] = Field(default_factory=list)


class RevenueKPIs(CamelModel):
    total_revenue: float
    platform_revenue: float
    average_order_value: float
    revenue_growth: float
    total_orders: int
    completed_orders: int
    order_completion_rate: float
    total_prescriptions: int
    prescription_order_rate: float
    total_customers: int
    returning_customers: int
    customer_retention_rate: float
    total_pharmacies: int
    active_pharmacies: int
