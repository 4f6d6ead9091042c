"""Commission splits and revenue roll-ups over a reporting window.

All figures are derived from the orders passed in; nothing is persisted.
Cancelled orders never count as sales. Returned orders count as sales and their
refund is reported separately. Growth is measured against a caller-supplied
:class:`RevenueBaseline` and is 0 whenever there is no prior value.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .revenue_models import (
    CategoryRevenue,
    CityRevenue,
    CommissionBreakdown,
    DoctorProfile,
    DoctorRevenue,
    Order,
    OrderStatus,
    PharmacyAnalytics,
    PharmacyRevenue,
    PharmacyShare,
    ProductRevenue,
    RevenueAnalytics,
    RevenueBaseline,
    RevenueKPIs,
    RevenueMetrics,
    RevenueSummary,
    RevenueTimeframe,
    TimeSeriesPoint,
)

logger = logging.getLogger(__name__)

DEFAULT_PHARMACY_RATES: Dict[str, float] = {
    "healthplus-ismailia": 12,
    "medicare-cairo": 8,
    "wellness-cairo": 10,
    "newlife-giza": 10,
    "family-care-ismailia": 11,
}

CATEGORY_NAMES: Dict[str, str] = {
    "prescription": "Prescription Medicines",
    "otc": "Over-the-Counter",
    "supplements": "Supplements & Vitamins",
    "skincare": "Skincare",
    "baby": "Baby Care",
    "medical": "Medical Supplies",
    "vitamins": "Vitamins",
}

TIMEFRAMES = [
    RevenueTimeframe(label="Last 7 Days", value="7d", days=7),
    RevenueTimeframe(label="Last 30 Days", value="30d", days=30),
    RevenueTimeframe(label="Last 90 Days", value="90d", days=90),
]
DEFAULT_TIMEFRAME_DAYS = 30
TOP_N = 5


def _average(total: float, count: int) -> float:
    return total / count if count else 0.0


def _growth(current: float, prior: Optional[float]) -> float:
    if not prior:
        return 0.0
    return (current - prior) / prior * 100


def _order_day(order: Order) -> date:
    moment = order.order_date
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def _days(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def category_name(category: str) -> str:
    if not category:
        return "Uncategorized"
    return CATEGORY_NAMES.get(category, category.replace("-", " ").title())


def parse_timeframe(value: str | None) -> int:
    """Translate a timeframe label such as ``"30d"`` into a number of days."""
    for timeframe in TIMEFRAMES:
        if timeframe.value == value:
            return timeframe.days
    return DEFAULT_TIMEFRAME_DAYS


@dataclass
class _Group:
    key: str
    name: str
    sales: float = 0.0
    units: int = 0
    order_ids: Set[str] = field(default_factory=set)
    city_id: str = ""
    city_name: str = ""
    governorate_id: str = ""
    children: Dict[str, "_Group"] = field(default_factory=dict)

    @property
    def orders(self) -> int:
        return len(self.order_ids)

    def add(self, order_id: str, amount: float, units: int = 0) -> None:
        self.sales += amount
        self.units += units
        self.order_ids.add(order_id)

    def child(self, key: str, name: str) -> "_Group":
        if key not in self.children:
            self.children[key] = _Group(key=key, name=name or key)
        return self.children[key]


@dataclass
class _Rollup:
    total_revenue: float = 0.0
    order_ids: Set[str] = field(default_factory=set)
    pharmacies: Dict[str, _Group] = field(default_factory=dict)
    categories: Dict[str, _Group] = field(default_factory=dict)
    cities: Dict[str, _Group] = field(default_factory=dict)
    doctors: Dict[str, _Group] = field(default_factory=dict)


def _ranked(groups: Iterable[_Group]) -> List[_Group]:
    return sorted(groups, key=lambda group: (-group.sales, group.key))


def _product_revenue(groups: Iterable[_Group], limit: int = TOP_N) -> List[ProductRevenue]:
    return [
        ProductRevenue(product_id=group.key, product_name=group.name, revenue=group.sales, orders=group.orders, units=group.units)
        for group in _ranked(groups)[:limit]
    ]


class RevenueAggregator:
    """Computes commission splits and revenue reports from order records."""

    def __init__(
        self,
        pharmacy_rates: Mapping[str, float] | None = None,
        default_rate: float = 10.0,
        doctors: Iterable[DoctorProfile] = (),
        default_doctor_rate: float = 5.0,
        gross_margin: float = 0.8,
    ) -> None:
        self.pharmacy_rates: Dict[str, float] = dict(DEFAULT_PHARMACY_RATES if pharmacy_rates is None else pharmacy_rates)
        self.default_rate = default_rate
        self.doctors: Dict[str, DoctorProfile] = {doctor.id: doctor for doctor in doctors}
        self.default_doctor_rate = default_doctor_rate
        self.gross_margin = gross_margin

    def commission_rate(self, pharmacy_id: str) -> float:
        return self.pharmacy_rates.get(pharmacy_id, self.default_rate)

    def compute_commission(self, pharmacy_id: str, order_value: float) -> float:
        return order_value * self.commission_rate(pharmacy_id) / 100

    def compute_platform_revenue(self, pharmacy_id: str, order_value: float) -> float:
        return order_value - self.compute_commission(pharmacy_id, order_value)

    def doctor_rate(self, doctor_id: str) -> float:
        profile = self.doctors.get(doctor_id)
        if profile is not None and profile.commission_rate is not None:
            return profile.commission_rate
        return self.default_doctor_rate

    @staticmethod
    def get_timeframes() -> List[RevenueTimeframe]:
        return list(TIMEFRAMES)

    @staticmethod
    def window(timeframe_days: int, as_of: date | None = None) -> Tuple[date, date]:
        if timeframe_days < 1:
            raise ValueError(f"timeframe_days must be positive, got {timeframe_days}")
        end = as_of or datetime.now(timezone.utc).date()
        return end - timedelta(days=timeframe_days - 1), end

    @staticmethod
    def orders_between(orders: Iterable[Order], start: date, end: date) -> List[Order]:
        return [order for order in orders if start <= _order_day(order) <= end]

    def _rollup(self, orders: Iterable[Order]) -> _Rollup:
        rollup = _Rollup()
        for order in orders:
            if order.status == OrderStatus.CANCELLED:
                continue
            rollup.order_ids.add(order.id)
            city = rollup.cities.setdefault(
                order.city_id,
                _Group(key=order.city_id, name=order.city_name or order.city_id, governorate_id=order.governorate_id),
            )
            for item in order.items:
                amount = item.line_total
                rollup.total_revenue += amount

                pharmacy = rollup.pharmacies.setdefault(
                    item.pharmacy_id,
                    _Group(
                        key=item.pharmacy_id,
                        name=item.pharmacy_name or item.pharmacy_id,
                        city_id=order.city_id,
                        city_name=order.city_name,
                    ),
                )
                pharmacy.add(order.id, amount, item.quantity)
                pharmacy.child(item.product_id, item.product_name).add(order.id, amount, item.quantity)

                category = rollup.categories.setdefault(
                    item.category, _Group(key=item.category, name=category_name(item.category))
                )
                category.add(order.id, amount, item.quantity)
                category.child(item.product_id, item.product_name).add(order.id, amount, item.quantity)

                city.add(order.id, amount, item.quantity)
                city.child(item.pharmacy_id, item.pharmacy_name).add(order.id, amount, item.quantity)
            if order.doctor_id:
                doctor = rollup.doctors.setdefault(
                    order.doctor_id, _Group(key=order.doctor_id, name=order.doctor_name or order.doctor_id)
                )
                doctor.add(order.id, order.sales)
        return rollup

    def _pharmacy_revenue(self, group: _Group, baseline: RevenueBaseline) -> PharmacyRevenue:
        commission = self.compute_commission(group.key, group.sales)
        return PharmacyRevenue(
            pharmacy_id=group.key,
            pharmacy_name=group.name,
            city_id=group.city_id,
            city_name=group.city_name,
            total_sales=group.sales,
            total_orders=group.orders,
            commission_rate=self.commission_rate(group.key),
            commission_earned=commission,
            platform_revenue=group.sales - commission,
            average_order_value=_average(group.sales, group.orders),
            growth=_growth(group.sales, baseline.pharmacies.get(group.key)),
        )

    def _category_revenue(self, group: _Group, baseline: RevenueBaseline) -> CategoryRevenue:
        return CategoryRevenue(
            category=group.key,
            category_name=group.name,
            total_revenue=group.sales,
            total_orders=group.orders,
            average_order_value=_average(group.sales, group.orders),
            growth=_growth(group.sales, baseline.categories.get(group.key)),
            top_products=_product_revenue(group.children.values()),
        )

    def _city_revenue(self, group: _Group, baseline: RevenueBaseline) -> CityRevenue:
        return CityRevenue(
            city_id=group.key,
            city_name=group.name,
            governorate_id=group.governorate_id,
            total_revenue=group.sales,
            total_orders=group.orders,
            pharmacies_count=len(group.children),
            average_order_value=_average(group.sales, group.orders),
            growth=_growth(group.sales, baseline.cities.get(group.key)),
            top_pharmacies=[
                PharmacyShare(pharmacy_id=child.key, pharmacy_name=child.name, revenue=child.sales, orders=child.orders)
                for child in _ranked(group.children.values())[:TOP_N]
            ],
        )

    def _doctor_revenue(self, orders: Sequence[Order], rollup: _Rollup, baseline: RevenueBaseline) -> List[DoctorRevenue]:
        referrals: Counter[str] = Counter()
        successful: Counter[str] = Counter()
        names: Dict[str, str] = {}
        for order in orders:
            if not order.doctor_id:
                continue
            referrals[order.doctor_id] += 1
            names.setdefault(order.doctor_id, order.doctor_name or order.doctor_id)
            if order.status == OrderStatus.DELIVERED:
                successful[order.doctor_id] += 1

        records: List[DoctorRevenue] = []
        for doctor_id in referrals:
            group = rollup.doctors.get(doctor_id)
            revenue = group.sales if group is not None else 0.0
            rate = self.doctor_rate(doctor_id)
            profile = self.doctors.get(doctor_id)
            records.append(
                DoctorRevenue(
                    doctor_id=doctor_id,
                    doctor_name=profile.name if profile is not None else names[doctor_id],
                    specialization=profile.specialization if profile is not None else "",
                    referrals=referrals[doctor_id],
                    successful_orders=successful[doctor_id],
                    conversion_rate=_average(successful[doctor_id], referrals[doctor_id]) * 100,
                    commission_rate=rate,
                    commission_earned=revenue * rate / 100,
                    total_revenue=revenue,
                    growth=_growth(revenue, baseline.doctors.get(doctor_id)),
                )
            )
        records.sort(key=lambda record: (-record.total_revenue, record.doctor_id))
        return records

    def _time_series(self, orders: Iterable[Order], start: date, end: date) -> List[TimeSeriesPoint]:
        revenue: Dict[date, float] = defaultdict(float)
        commission: Dict[date, float] = defaultdict(float)
        counts: Counter[date] = Counter()
        for order in orders:
            if order.status == OrderStatus.CANCELLED:
                continue
            day = _order_day(order)
            counts[day] += 1
            for item in order.items:
                revenue[day] += item.line_total
                commission[day] += self.compute_commission(item.pharmacy_id, item.line_total)
        return [
            TimeSeriesPoint(
                date=day,
                revenue=revenue[day],
                orders=counts[day],
                commission=commission[day],
                platform_revenue=revenue[day] - commission[day],
            )
            for day in _days(start, end)
        ]

    def aggregate(
        self,
        orders: Iterable[Order],
        timeframe_days: int,
        baseline: RevenueBaseline | None = None,
        as_of: date | None = None,
    ) -> RevenueAnalytics:
        start, end = self.window(timeframe_days, as_of)
        window = self.orders_between(orders, start, end)
        baseline = baseline or RevenueBaseline()
        rollup = self._rollup(window)

        by_pharmacy = [self._pharmacy_revenue(group, baseline) for group in _ranked(rollup.pharmacies.values())]
        by_category = [self._category_revenue(group, baseline) for group in _ranked(rollup.categories.values())]
        by_city = [self._city_revenue(group, baseline) for group in _ranked(rollup.cities.values())]
        by_doctor = self._doctor_revenue(window, rollup, baseline)

        total_revenue = rollup.total_revenue
        total_orders = len(rollup.order_ids)
        returned = [order for order in window if order.status == OrderStatus.RETURNED]
        refund_amount = sum(order.refund for order in returned)
        commission_paid = sum(record.commission_earned for record in by_pharmacy)
        platform_revenue = sum(record.platform_revenue for record in by_pharmacy)
        doctor_commission = sum(record.commission_earned for record in by_doctor)
        net_revenue = sum(
            order.sales for order in window if order.status not in (OrderStatus.CANCELLED, OrderStatus.RETURNED)
        )

        overview = RevenueMetrics(
            total_revenue=total_revenue,
            net_revenue=net_revenue,
            gross_profit=total_revenue * self.gross_margin,
            commission_paid=commission_paid,
            platform_revenue=platform_revenue,
            average_order_value=_average(total_revenue, total_orders),
            total_orders=total_orders,
            revenue_growth=_growth(total_revenue, baseline.total_revenue),
            total_returns=len(returned),
            return_rate=_average(len(returned), total_orders),
            refund_amount=refund_amount,
            net_revenue_after_returns=total_revenue - refund_amount,
        )
        logger.info(
            "revenue aggregate start=%s end=%s orders=%s revenue=%.2f commission=%.2f",
            start,
            end,
            total_orders,
            total_revenue,
            commission_paid,
        )
        return RevenueAnalytics(
            period_start=start,
            period_end=end,
            overview=overview,
            by_pharmacy=by_pharmacy,
            by_category=by_category,
            by_city=by_city,
            by_doctor=by_doctor,
            time_series_data=self._time_series(window, start, end),
            commission_breakdown=CommissionBreakdown(
                pharmacy_commission=commission_paid,
                doctor_commission=doctor_commission,
                platform_revenue=platform_revenue,
                total_commission=commission_paid + doctor_commission,
            ),
        )

    def build_baseline(self, orders: Iterable[Order], timeframe_days: int, as_of: date | None = None) -> RevenueBaseline:
        """Totals for the window of equal length that ends right before the reporting window."""
        start, _ = self.window(timeframe_days, as_of)
        prior_start, prior_end = self.window(timeframe_days, start - timedelta(days=1))
        rollup = self._rollup(self.orders_between(orders, prior_start, prior_end))
        return RevenueBaseline(
            total_revenue=rollup.total_revenue,
            pharmacies={key: group.sales for key, group in rollup.pharmacies.items()},
            cities={key: group.sales for key, group in rollup.cities.items()},
            categories={key: group.sales for key, group in rollup.categories.items()},
            doctors={key: group.sales for key, group in rollup.doctors.items()},
        )

    def summarize(
        self,
        orders: Iterable[Order],
        timeframe_days: int,
        baseline: RevenueBaseline | None = None,
        as_of: date | None = None,
    ) -> RevenueSummary:
        analytics = self.aggregate(orders, timeframe_days, baseline, as_of)
        overview = analytics.overview
        return RevenueSummary(
            total_revenue=overview.total_revenue,
            platform_revenue=overview.platform_revenue,
            commission_paid=overview.commission_paid,
            total_orders=overview.total_orders,
            average_order_value=overview.average_order_value,
            growth=overview.revenue_growth,
            top_pharmacy=analytics.by_pharmacy[0] if analytics.by_pharmacy else None,
            top_category=analytics.by_category[0] if analytics.by_category else None,
            top_city=analytics.by_city[0] if analytics.by_city else None,
        )

    def pharmacy_analytics(
        self,
        orders: Iterable[Order],
        pharmacy_id: str,
        timeframe_days: int = DEFAULT_TIMEFRAME_DAYS,
        baseline: RevenueBaseline | None = None,
        as_of: date | None = None,
    ) -> PharmacyAnalytics | None:
        start, end = self.window(timeframe_days, as_of)
        window = self.orders_between(orders, start, end)
        group = self._rollup(window).pharmacies.get(pharmacy_id)
        if group is None:
            return None
        record = self._pharmacy_revenue(group, baseline or RevenueBaseline())
        own_orders = [
            order.model_copy(update={"items": [item for item in order.items if item.pharmacy_id == pharmacy_id]})
            for order in window
            if any(item.pharmacy_id == pharmacy_id for item in order.items)
        ]
        return PharmacyAnalytics(
            **record.model_dump(),
            top_selling_products=_product_revenue(group.children.values()),
            daily_trend=self._time_series(own_orders, start, end),
        )

    def compute_kpis(
        self,
        orders: Iterable[Order],
        timeframe_days: int,
        baseline: RevenueBaseline | None = None,
        as_of: date | None = None,
    ) -> RevenueKPIs:
        orders = list(orders)
        analytics = self.aggregate(orders, timeframe_days, baseline, as_of)
        start, end = analytics.period_start, analytics.period_end
        active = [order for order in self.orders_between(orders, start, end) if order.status != OrderStatus.CANCELLED]

        completed = sum(1 for order in active if order.status == OrderStatus.DELIVERED)
        prescriptions = sum(1 for order in active if order.is_prescription_order)
        per_customer = Counter(order.customer_id for order in active)
        returning = sum(1 for count in per_customer.values() if count > 1)
        total_orders = len(active)
        known_pharmacies = set(self.pharmacy_rates) | {record.pharmacy_id for record in analytics.by_pharmacy}

        overview = analytics.overview
        return RevenueKPIs(
            total_revenue=overview.total_revenue,
            platform_revenue=overview.platform_revenue,
            average_order_value=overview.average_order_value,
            revenue_growth=overview.revenue_growth,
            total_orders=total_orders,
            completed_orders=completed,
            order_completion_rate=_average(completed, total_orders) * 100,
            total_prescriptions=prescriptions,
            prescription_order_rate=_average(prescriptions, total_orders) * 100,
            total_customers=len(per_customer),
            returning_customers=returning,
            customer_retention_rate=_average(returning, len(per_customer)) * 100,
            total_pharmacies=len(known_pharmacies),
            active_pharmacies=len(analytics.by_pharmacy),
        )
