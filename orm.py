from datetime import date, datetime
from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db import Base

class DeviceORM(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    brand: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, index=True)
    serial_number: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="available", index=True)
    assigned_to: Mapped[str | None] = mapped_column(String, nullable=True)
    assigned_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    specifications: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    maintenance_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

class PersonnelORM(Base):
    __tablename__ = "personnel"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    department: Mapped[str] = mapped_column(String, nullable=False, default="")
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    email: Mapped[str] = mapped_column(String, nullable=False, default="")
    phone: Mapped[str] = mapped_column(String, nullable=False, default="")

    # device ids currently held / every assignment id ever issued
    assigned_devices: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assignment_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

class AssignmentORM(Base):
    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    device_id: Mapped[str] = mapped_column(String, ForeignKey("devices.id"), nullable=False, index=True)
    personnel_id: Mapped[str] = mapped_column(String, ForeignKey("personnel.id"), nullable=False, index=True)

    assigned_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    returned_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active", index=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class InventoryItemORM(Base):
    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    item_name: Mapped[str] = mapped_column(String, nullable=False)
    serial_number: Mapped[str] = mapped_column(String, nullable=False, index=True)
    purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_status: Mapped[str] = mapped_column(String, nullable=False, default="in_stock", index=True)
    location_department: Mapped[str] = mapped_column(String, nullable=False, default="")

    warranty_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    warranty_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    warranty_provider: Mapped[str | None] = mapped_column(String, nullable=True)

    purchase_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    supplier: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False, index=True)
    brand: Mapped[str | None] = mapped_column(String, nullable=True)
    model: Mapped[str | None] = mapped_column(String, nullable=True)
    specifications: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MaintenanceRecordORM(Base):
    __tablename__ = "inventory_maintenance"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    inventory_item_id: Mapped[str] = mapped_column(
        String, ForeignKey("inventory_items.id"), nullable=False, index=True
    )
    maintenance_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completion_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    technician: Mapped[str | None] = mapped_column(String, nullable=True)
    supplier_service: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AuditRecordORM(Base):
    __tablename__ = "inventory_audit"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    inventory_item_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SupplierORM(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    contact_person: Mapped[str] = mapped_column(String, nullable=False, default="")
    email: Mapped[str] = mapped_column(String, nullable=False, default="")
    phone: Mapped[str] = mapped_column(String, nullable=False, default="")
    address: Mapped[str] = mapped_column(String, nullable=False, default="")
    categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_order_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    payment_terms: Mapped[str] = mapped_column(String, nullable=False, default="")
    delivery_time: Mapped[str] = mapped_column(String, nullable=False, default="")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AutoOrderRuleORM(Base):
    __tablename__ = "auto_order_rules"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    category: Mapped[str] = mapped_column(String, nullable=False, index=True)
    supplier: Mapped[str] = mapped_column(String, nullable=False)
    min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_order_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class PurchaseOrderORM(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    rule_id: Mapped[str] = mapped_column(String, ForeignKey("auto_order_rules.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    supplier: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_cost: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending", index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
