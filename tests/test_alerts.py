from datetime import date, datetime

import alerts
from models import InventoryItem, StockThreshold


def _item(serial, category="Laptop", status="in_stock", warranty=None):
    now = datetime(2024, 1, 1)
    return InventoryItem(
        id=serial,
        item_name=f"{category} {serial}",
        serial_number=serial,
        category=category,
        current_status=status,
        warranty_end_date=warranty,
        created_at=now,
        updated_at=now,
    )


def test_low_stock_severity():
    assert alerts.low_stock_severity(0, 5) == "high"
    assert alerts.low_stock_severity(2, 5) == "medium"
    assert alerts.low_stock_severity(3, 5) == "low"


def test_warranty_severity():
    assert alerts.warranty_severity(7) == "high"
    assert alerts.warranty_severity(8) == "medium"
    assert alerts.warranty_severity(15) == "medium"
    assert alerts.warranty_severity(16) == "low"


def test_category_stock_counts_only_in_stock():
    items = [_item("a"), _item("b", status="defective"), _item("c", category="Monitör")]
    assert alerts.category_stock(items) == {"Laptop": 1, "Monitör": 1}


def test_generate_alerts_uses_given_thresholds():
    now = datetime(2024, 1, 1, 9, 0)
    items = [
        _item("a", warranty=date(2024, 1, 20)),
        _item("b", category="Yazıcı", warranty=date(2024, 1, 20)),
    ]
    thresholds = [
        StockThreshold(category="Laptop", min_quantity=1, warning_days=10),
        StockThreshold(category="Monitör", min_quantity=4, warning_days=30),
    ]

    result = alerts.generate_alerts(items, thresholds, now=now)
    by_id = {a.id: a for a in result}

    assert set(by_id) == {"low-stock-Monitör", "warranty-b"}
    assert by_id["low-stock-Monitör"].severity == "high"
    # Yazıcı has no threshold here, so the default warning window applies
    assert by_id["warranty-b"].severity == "low"


def test_warranty_analysis_buckets():
    today = date(2024, 1, 1)
    items = [
        _item("a", warranty=date(2023, 12, 31)),
        _item("b", warranty=date(2024, 1, 31)),
        _item("c", warranty=date(2024, 6, 1)),
        _item("d"),
    ]
    assert alerts.warranty_analysis(items, today=today) == {"expiring": 1, "expired": 1, "valid": 1}
