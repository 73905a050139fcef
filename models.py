from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, ClassVar, Optional, Literal
from datetime import date, datetime

DeviceStatus = Literal["available", "assigned", "maintenance", "retired"]
AssignmentStatus = Literal["active", "returned"]
InventoryStatus = Literal["in_stock", "defective", "under_repair", "disposed"]
MaintenanceType = Literal["repair", "preventive", "inspection", "replacement"]
MaintenanceStatus = Literal["scheduled", "in_progress", "completed", "cancelled"]
OrderStatus = Literal["pending", "approved", "ordered", "received"]
AlertType = Literal["low_stock", "warranty_expiring", "maintenance_due"]
Severity = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    """Python side uses snake_case, JSON side uses camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PatchModel(CamelModel):
    """Partial update body. Fields named in ``not_nullable`` may be left out but not sent as null."""

    not_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_cleared_fields(self):
        cleared = sorted(f for f in self.model_fields_set if f in self.not_nullable and getattr(self, f) is None)
        if cleared:
            raise ValueError(f"cannot be null: {', '.join(cleared)}")
        return self


# ---------- Device ----------
class DeviceSpecifications(CamelModel):
    ram: Optional[str] = None
    processor: Optional[str] = None
    generation: Optional[str] = None
    storage_type: Optional[str] = None
    storage_capacity: Optional[str] = None

class DeviceIn(CamelModel):
    brand: str
    category: str
    serial_number: str
    status: DeviceStatus = "available"
    specifications: DeviceSpecifications = Field(default_factory=DeviceSpecifications)
    maintenance_date: Optional[datetime] = None

class DeviceUpdate(PatchModel):
    not_nullable: ClassVar[tuple[str, ...]] = ("brand", "category", "serial_number", "status")

    brand: Optional[str] = None
    category: Optional[str] = None
    serial_number: Optional[str] = None
    status: Optional[DeviceStatus] = None
    specifications: Optional[DeviceSpecifications] = None
    maintenance_date: Optional[datetime] = None

class Device(DeviceIn):
    id: str
    assigned_to: Optional[str] = None
    assigned_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ---------- Personnel ----------
class PersonnelIn(CamelModel):
    name: str
    department: str
    title: str = ""
    email: str = ""
    phone: str = ""

class PersonnelUpdate(CamelModel):
    name: Optional[str] = None
    department: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

class Personnel(PersonnelIn):
    id: str
    assigned_devices: list[str] = Field(default_factory=list)
    assignment_history: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------- Assignment ----------
class AssignmentIn(CamelModel):
    device_id: str
    personnel_id: str
    notes: Optional[str] = None

class Assignment(CamelModel):
    id: str
    device_id: str
    personnel_id: str
    assigned_date: datetime
    returned_date: Optional[datetime] = None
    status: AssignmentStatus = "active"
    notes: Optional[str] = None


# ---------- Inventory ----------
class InventoryItemIn(CamelModel):
    item_name: str
    serial_number: str
    category: str
    location_department: str = ""
    current_status: InventoryStatus = "in_stock"
    purchase_date: Optional[date] = None
    warranty_start_date: Optional[date] = None
    warranty_end_date: Optional[date] = None
    warranty_provider: Optional[str] = None
    purchase_price: Optional[float] = None
    supplier: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None

class InventoryItemUpdate(PatchModel):
    not_nullable: ClassVar[tuple[str, ...]] = (
        "item_name", "serial_number", "category", "location_department", "current_status", "specifications",
    )

    item_name: Optional[str] = None
    serial_number: Optional[str] = None
    category: Optional[str] = None
    location_department: Optional[str] = None
    current_status: Optional[InventoryStatus] = None
    purchase_date: Optional[date] = None
    warranty_start_date: Optional[date] = None
    warranty_end_date: Optional[date] = None
    warranty_provider: Optional[str] = None
    purchase_price: Optional[float] = None
    supplier: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    specifications: Optional[dict[str, Any]] = None
    notes: Optional[str] = None

class InventoryItem(InventoryItemIn):
    id: str
    created_at: datetime
    updated_at: datetime

class MaintenanceRecordIn(CamelModel):
    inventory_item_id: str
    maintenance_type: MaintenanceType
    description: str
    start_date: datetime
    completion_date: Optional[datetime] = None
    status: MaintenanceStatus = "scheduled"
    cost: Optional[float] = None
    technician: Optional[str] = None
    supplier_service: Optional[str] = None
    notes: Optional[str] = None

class MaintenanceRecordUpdate(PatchModel):
    not_nullable: ClassVar[tuple[str, ...]] = ("maintenance_type", "description", "start_date", "status")

    maintenance_type: Optional[MaintenanceType] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    status: Optional[MaintenanceStatus] = None
    cost: Optional[float] = None
    technician: Optional[str] = None
    supplier_service: Optional[str] = None
    notes: Optional[str] = None

class MaintenanceRecord(MaintenanceRecordIn):
    id: str
    created_at: datetime

class AuditRecord(CamelModel):
    id: str
    inventory_item_id: str
    action: str
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    changed_by: str
    change_reason: Optional[str] = None
    created_at: datetime

class DefectReport(CamelModel):
    reason: str


# ---------- Suppliers / auto order ----------
class SupplierIn(CamelModel):
    name: str
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    categories: list[str] = Field(default_factory=list)
    payment_terms: str = ""
    delivery_time: str = ""
    notes: Optional[str] = None

class SupplierUpdate(PatchModel):
    not_nullable: ClassVar[tuple[str, ...]] = (
        "name", "contact_person", "email", "phone", "address", "categories", "rating",
        "payment_terms", "delivery_time",
    )

    name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    categories: Optional[list[str]] = None
    rating: Optional[float] = None
    payment_terms: Optional[str] = None
    delivery_time: Optional[str] = None
    notes: Optional[str] = None

class Supplier(SupplierIn):
    id: str
    rating: float = 0.0
    total_orders: int = 0
    total_value: float = 0.0
    last_order_date: Optional[datetime] = None
    created_at: datetime

class AutoOrderRuleIn(CamelModel):
    category: str
    supplier: str
    min_threshold: int = 5
    order_quantity: int = 10

class AutoOrderRule(AutoOrderRuleIn):
    id: str
    is_active: bool = True
    last_order_date: Optional[datetime] = None
    created_at: datetime

class PurchaseOrder(CamelModel):
    id: str
    rule_id: str
    category: str
    supplier: str
    quantity: int
    estimated_cost: float
    status: OrderStatus = "pending"
    notes: Optional[str] = None
    created_at: datetime


# ---------- Alerts / reports ----------
class StockThreshold(CamelModel):
    category: str
    min_quantity: int
    warning_days: int = 30

class StockAlert(CamelModel):
    id: str
    item_id: str = ""
    alert_type: AlertType
    message: str
    severity: Severity
    created_at: datetime
    acknowledged: bool = False

class DashboardStats(CamelModel):
    total_devices: int
    assigned_devices: int
    available_devices: int
    maintenance_devices: int
    retired_devices: int
    active_assignments: int
    total_personnel: int

class ImportResult(CamelModel):
    created: int
    skipped: int
    assigned: int
    errors: list[str] = Field(default_factory=list)

class DevicesMeta(CamelModel):
    total: int
    limit: int
    offset: int
    total_pages: int
