import math
from collections import Counter
from datetime import date, datetime
from typing import Iterable, Optional

from models import InventoryItem, StockAlert, StockThreshold

DEFAULT_THRESHOLDS = (
    StockThreshold(category="Laptop", min_quantity=5, warning_days=30),
    StockThreshold(category="Masaüstü", min_quantity=3, warning_days=30),
    StockThreshold(category="Monitör", min_quantity=10, warning_days=60),
    StockThreshold(category="Yazıcı", min_quantity=2, warning_days=90),
)

DEFAULT_WARNING_DAYS = 30


def category_stock(items: Iterable[InventoryItem]) -> dict[str, int]:
    """Number of in_stock items per category."""
    return dict(Counter(i.category for i in items if i.current_status == "in_stock"))


def days_until(target: date, today: date) -> int:
    if isinstance(target, datetime):
        target = target.date()
    if isinstance(today, datetime):
        today = today.date()
    return math.ceil((target - today).days)


def low_stock_severity(current: int, minimum: int) -> str:
    if current == 0:
        return "high"
    if current < minimum / 2:
        return "medium"
    return "low"


def warranty_severity(days_left: int) -> str:
    if days_left <= 7:
        return "high"
    if days_left <= 15:
        return "medium"
    return "low"


def generate_alerts(
    items: list[InventoryItem],
    thresholds: Iterable[StockThreshold] = DEFAULT_THRESHOLDS,
    *,
    now: Optional[datetime] = None,
) -> list[StockAlert]:
    now = now or datetime.now()
    today = now.date()
    thresholds = list(thresholds)
    stock = category_stock(items)
    alerts: list[StockAlert] = []

    for t in thresholds:
        current = stock.get(t.category, 0)
        if current < t.min_quantity:
            alerts.append(
                StockAlert(
                    id=f"low-stock-{t.category}",
                    alert_type="low_stock",
                    message=f"{t.category} kategorisinde stok azaldı ({current}/{t.min_quantity})",
                    severity=low_stock_severity(current, t.min_quantity),  # type: ignore[arg-type]
                    created_at=now,
                )
            )

    warning_days = {t.category: t.warning_days for t in thresholds}
    for item in items:
        if not item.warranty_end_date:
            continue
        left = days_until(item.warranty_end_date, today)
        if 0 < left <= warning_days.get(item.category, DEFAULT_WARNING_DAYS):
            alerts.append(
                StockAlert(
                    id=f"warranty-{item.id}",
                    item_id=item.id,
                    alert_type="warranty_expiring",
                    message=f"{item.item_name} garantisi {left} gün içinde bitiyor",
                    severity=warranty_severity(left),  # type: ignore[arg-type]
                    created_at=now,
                )
            )

    return alerts


def warranty_analysis(items: Iterable[InventoryItem], *, today: Optional[date] = None) -> dict[str, int]:
    today = today or date.today()
    result = {"expiring": 0, "expired": 0, "valid": 0}
    for item in items:
        if not item.warranty_end_date:
            continue
        left = days_until(item.warranty_end_date, today)
        if left < 0:
            result["expired"] += 1
        elif left <= 30:
            result["expiring"] += 1
        else:
            result["valid"] += 1
    return result
