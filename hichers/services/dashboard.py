"""Dashboard aggregation.

Loads loyalty schemes and the web-info metrics side by side and turns them
into display-ready cards. Either fetch may fail without taking the other
one down.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

from hichers.exceptions import AuthRequiredError
from hichers.schemas.dashboard import DashboardView, GrowthPoint, MetricCard, SchemeCard, Trend
from hichers.schemas.loyalty import LoyaltyScheme
from hichers.services.envelopes import as_float, as_int, pick
from hichers.services.loyalty import describe_scheme

if TYPE_CHECKING:
    from hichers.services.gateway import LoyaltyGateway

logger = structlog.get_logger()

UNAVAILABLE = "—"


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return as_int(value)


def sum_free_stamps(value: Any) -> int | float:
    """Total rewards from `total_free_stamps`.

    The API sends a number, a list of `{loyaltyschemeid, count}` or a dict
    of the same entries. Non-numeric counts are skipped.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, list):
        entries = value
    elif isinstance(value, dict):
        entries = list(value.values())
    else:
        return 0

    total = 0
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        count = _count(entry.get("count"))
        if count:
            total += count
    return total


def rewards_for_scheme(free_stamps: Any, scheme_id: Optional[int]) -> int:
    """Rewards issued by one scheme, matched on `loyaltyschemeid`."""
    if scheme_id is None:
        return 0
    if isinstance(free_stamps, list):
        entries = free_stamps
    elif isinstance(free_stamps, dict):
        entries = []
        for key, entry in free_stamps.items():
            if isinstance(entry, dict):
                entries.append({"loyaltyschemeid": key, **entry})
    else:
        return 0

    for entry in entries:
        if isinstance(entry, dict) and as_int(entry.get("loyaltyschemeid")) == scheme_id:
            return _count(entry.get("count")) or 0
    return 0


def trend(delta: Optional[float]) -> Optional[Trend]:
    if delta is None:
        return None
    if delta > 0:
        return "up"
    if delta < 0:
        return "down"
    return "flat"


def _vs_last_month(delta: Optional[float], fallback: str) -> str:
    direction = trend(delta)
    if direction is None:
        return fallback
    if direction == "flat":
        return "No change vs last month"
    arrow = "↑" if direction == "up" else "↓"
    return f"{arrow} {round(abs(delta))}% vs last month"


def _month_start(day: date, months_back: int) -> date:
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def estimate_growth(
    current: int,
    months: int = 6,
    start_ratio: float = 0.5,
    today: date | None = None,
) -> list[GrowthPoint]:
    """Linear customer-growth series over the trailing months, ending at `current`.

    The API has no history endpoint, so this is an estimate: it starts at
    `start_ratio * current` and climbs evenly to `current`.
    """
    if months < 1:
        return []
    today = today or date.today()
    current = max(0, int(current))
    base = int(current * start_ratio)
    step = (current - base) // (months - 1) if months > 1 else 0

    points: list[GrowthPoint] = []
    previous = 0
    for i in range(months):
        total = current if i == months - 1 else base + step * i
        label = _month_start(today, months - 1 - i).strftime("%b")
        points.append(GrowthPoint(month=label, total=total, new=max(0, total - previous)))
        previous = total
    return points


def _scheme_card(scheme: LoyaltyScheme, free_stamps: Any) -> SchemeCard:
    return SchemeCard(
        id=scheme.id,
        name=scheme.name or "Loyalty Program",
        description=describe_scheme(scheme),
        scheme_type=scheme.scheme_type,
        is_active=scheme.is_active,
        members=scheme.member_count,
        rewards=rewards_for_scheme(free_stamps, scheme.id),
    )


def build_metric_cards(metrics: Optional[dict], schemes: list[LoyaltyScheme]) -> list[MetricCard]:
    """The four headline cards; without metrics every card reads as unavailable."""
    if metrics is None:
        return [
            MetricCard(key=key, label=label, available=False, note="Metrics unavailable")
            for key, label in (
                ("customers", "Total Customers"),
                ("programs", "Active Programs"),
                ("rewards", "Total Rewards"),
                ("loyalty_value", "Total Loyalty Value"),
            )
        ]

    customers = as_int(pick(metrics, "number_customers")) or sum(s.member_count for s in schemes)
    percent_loyalty = as_float(metrics.get("percent_loyalty"))
    last_month = as_int(metrics.get("last_month"))
    if percent_loyalty is not None:
        customers_note = _vs_last_month(percent_loyalty, "")
    elif last_month is not None:
        customers_note = f"{last_month} new last month"
    else:
        customers_note = "Web analytics access restricted"

    programs = as_int(pick(metrics, "active_programs")) or len(schemes)

    rewards = sum_free_stamps(metrics.get("total_free_stamps"))
    return_rate = as_float(metrics.get("return_stamps_rate"))
    rewards_note = (
        f"{round(return_rate)}% redemption rate" if return_rate is not None else "redemption rate"
    )

    loyalty_value = as_float(metrics.get("total_loyalty")) or 0.0
    percent_diff = as_float(metrics.get("percent_diff"))

    return [
        MetricCard(
            key="customers",
            label="Total Customers",
            value=customers,
            display=str(customers),
            delta_percent=percent_loyalty,
            trend=trend(percent_loyalty),
            note=customers_note,
        ),
        MetricCard(
            key="programs",
            label="Active Programs",
            value=programs,
            display=str(programs),
            note="Points, Stamps & Offers",
        ),
        MetricCard(
            key="rewards",
            label="Total Rewards",
            value=rewards,
            display=str(rewards),
            note=rewards_note,
        ),
        MetricCard(
            key="loyalty_value",
            label="Total Loyalty Value",
            value=loyalty_value,
            display=f"£{round(loyalty_value)}",
            delta_percent=percent_diff,
            trend=trend(percent_diff),
            note=_vs_last_month(percent_diff, "Across all programs"),
        ),
    ]


class DashboardAggregator:
    def __init__(self, gateway: LoyaltyGateway, *, clock: Callable[[], datetime] = datetime.now):
        self.gateway = gateway
        self.clock = clock

    async def load(self) -> DashboardView:
        """Fetch schemes and metrics concurrently; render whatever arrived."""
        schemes_result, metrics_result = await asyncio.gather(
            self.gateway.load_loyalty_schemes(),
            self.gateway.web_info(),
            return_exceptions=True,
        )
        for result in (schemes_result, metrics_result):
            if isinstance(result, AuthRequiredError):
                raise result
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        view = DashboardView()

        schemes: list[LoyaltyScheme] = []
        if isinstance(schemes_result, Exception):
            logger.warning("Dashboard schemes fetch failed", error=str(schemes_result))
            view.warnings.append("Loyalty programs could not be loaded")
        else:
            schemes = schemes_result["schemes"]
            view.schemes_available = True

        metrics: Optional[dict] = None
        if isinstance(metrics_result, Exception):
            logger.warning("Dashboard metrics fetch failed", error=str(metrics_result))
            view.warnings.append("Dashboard metrics are unavailable")
        elif metrics_result is None:
            logger.warning("Dashboard metrics response was empty")
            view.warnings.append("Dashboard metrics are unavailable")
        else:
            metrics = metrics_result
            view.metrics_available = True

        free_stamps = metrics.get("total_free_stamps") if metrics else None
        view.schemes = [_scheme_card(scheme, free_stamps) for scheme in schemes]
        if view.schemes:
            view.most_popular = max(view.schemes, key=lambda card: card.members)

        view.cards = build_metric_cards(metrics, schemes)
        if metrics is not None:
            customers = view.cards[0].value or 0
            view.customer_growth = estimate_growth(int(customers), today=self.clock().date())

        logger.info(
            "Dashboard loaded",
            schemes=len(view.schemes),
            metrics_available=view.metrics_available,
        )
        return view
