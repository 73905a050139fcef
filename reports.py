from collections import Counter
from datetime import date
from typing import Optional

from alerts import warranty_analysis
from models import Assignment, DashboardStats, Device, InventoryItem, MaintenanceRecord, Personnel


def dashboard_stats(devices: list[Device], personnel: list[Personnel], assignments: list[Assignment]) -> DashboardStats:
    by_status = Counter(d.status for d in devices)
    return DashboardStats(
        total_devices=len(devices),
        assigned_devices=by_status["assigned"],
        available_devices=by_status["available"],
        maintenance_devices=by_status["maintenance"],
        retired_devices=by_status["retired"],
        active_assignments=sum(1 for a in assignments if a.status == "active"),
        total_personnel=len(personnel),
    )


def recent_assignments(assignments: list[Assignment], limit: int = 5) -> list[Assignment]:
    return sorted(assignments, key=lambda a: a.assigned_date, reverse=True)[:limit]


def device_report(devices: list[Device], personnel: list[Personnel], assignments: list[Assignment]) -> dict:
    return {
        "totalDevices": len(devices),
        "totalPersonnel": len(personnel),
        "totalAssignments": len(assignments),
        "activeAssignments": sum(1 for a in assignments if a.status == "active"),
        "devicesByCategory": dict(Counter(d.category for d in devices)),
        "devicesByStatus": dict(Counter(d.status for d in devices)),
        "personnelByDepartment": dict(Counter(p.department for p in personnel)),
    }


def inventory_report(
    items: list[InventoryItem],
    maintenance: list[MaintenanceRecord],
    *,
    today: Optional[date] = None,
) -> dict:
    category: dict[str, dict] = {}
    department: dict[str, dict] = {}
    for item in items:
        value = item.purchase_price or 0
        c = category.setdefault(item.category, {"category": item.category, "count": 0, "value": 0.0})
        c["count"] += 1
        c["value"] += value
        d = department.setdefault(
            item.location_department,
            {"department": item.location_department, "count": 0, "value": 0.0},
        )
        d["count"] += 1
        d["value"] += value

    total_value = sum(i.purchase_price or 0 for i in items)
    return {
        "categoryDistribution": list(category.values()),
        "statusDistribution": [
            {"status": status, "count": count}
            for status, count in Counter(i.current_status for i in items).items()
        ],
        "departmentDistribution": list(department.values()),
        "costAnalysis": {
            "totalValue": total_value,
            "averageValue": total_value / len(items) if items else 0.0,
            "categoryValues": {c["category"]: c["value"] for c in category.values()},
        },
        "warrantyAnalysis": warranty_analysis(items, today=today),
        "maintenance": {
            "total": len(maintenance),
            "inProgress": sum(1 for r in maintenance if r.status == "in_progress"),
            "completed": sum(1 for r in maintenance if r.status == "completed"),
            "totalCost": sum(r.cost or 0 for r in maintenance),
        },
    }
