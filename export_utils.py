"""Spreadsheet and JSON exports of the cached collections.

Everything here is a pure transformation of in-memory lists. Column and
sheet names follow the hotel's operating locale (Turkish). A failed lookup
across collections yields a placeholder string instead of an error.
"""
import io
import json
from datetime import date, datetime
from typing import Any, Iterable, Optional

from fastapi.responses import Response, StreamingResponse
from openpyxl import Workbook

from models import Assignment, Device, InventoryItem, MaintenanceRecord, Personnel

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

NONE = "Yok"
UNKNOWN = "Bilinmiyor"
UNSPECIFIED = "Belirtilmemiş"

DEVICE_STATUS_TEXT = {
    "available": "Müsait",
    "assigned": "Zimmetli",
    "maintenance": "Bakımda",
    "retired": "Emekli",
}
INVENTORY_STATUS_TEXT = {
    "in_stock": "Stokta",
    "defective": "Arızalı",
    "under_repair": "Onarımda",
    "disposed": "İmha Edildi",
}
MAINTENANCE_TYPE_TEXT = {
    "repair": "Onarım",
    "preventive": "Önleyici Bakım",
    "inspection": "İnceleme",
    "replacement": "Değiştirme",
}
MAINTENANCE_STATUS_TEXT = {
    "scheduled": "Planlandı",
    "in_progress": "Devam Ediyor",
    "completed": "Tamamlandı",
    "cancelled": "İptal Edildi",
}

DEVICE_HEADERS = [
    "Cihaz ID", "Marka", "Kategori", "Seri Numarası", "Durum", "Zimmetli Kişi",
    "Departman", "Ünvan", "RAM", "İşlemci", "Nesil", "Depolama",
    "Oluşturma Tarihi", "Zimmet Tarihi",
]
PERSONNEL_HEADERS = [
    "Personel ID", "Ad Soyad", "Departman", "Ünvan", "E-posta", "Telefon", "Zimmetli Cihaz Sayısı",
]
ASSIGNMENT_HEADERS = [
    "Zimmet ID", "Cihaz", "Seri Numarası", "Depolama", "Personel", "Departman",
    "Zimmet Tarihi", "İade Tarihi", "Durum", "Notlar",
]
INVENTORY_HEADERS = [
    "Envanter ID", "Öğe Adı", "Seri Numarası", "Kategori", "Marka", "Model", "Durum",
    "Lokasyon/Departman", "Satın Alma Tarihi", "Satın Alma Fiyatı", "Tedarikçi",
    "Garanti Başlangıç", "Garanti Bitiş", "Garanti Sağlayıcı", "Notlar", "Oluşturma Tarihi",
]
MAINTENANCE_HEADERS = [
    "Bakım ID", "Öğe Adı", "Seri Numarası", "Bakım Türü", "Açıklama", "Başlangıç Tarihi",
    "Bitiş Tarihi", "Durum", "Maliyet", "Teknisyen", "Servis Sağlayıcı", "Notlar",
]
SUMMARY_HEADERS = ["Kategori", "Sayı"]


def format_tr_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%d.%m.%Y")


def format_try(amount: Optional[float]) -> Optional[str]:
    """1234.5 -> '₺1.234,50' (tr-TR grouping)."""
    if amount is None:
        return None
    text = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    if text.endswith(",00"):
        text = text[:-3]
    return f"₺{text}"


def export_filename(prefix: str, ext: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{prefix}_{now:%d-%m-%Y}.{ext}"


def storage_info(device: Device) -> str:
    specs = device.specifications
    parts = [p for p in (specs.storage_type, specs.storage_capacity) if p]
    return " ".join(parts) if parts else UNSPECIFIED


# ---------- rows ----------
def device_rows(devices: Iterable[Device], personnel: Iterable[Personnel]) -> list[dict[str, Any]]:
    by_name = {p.name: p for p in personnel}
    rows = []
    for d in devices:
        person = by_name.get(d.assigned_to) if d.assigned_to else None
        rows.append({
            "Cihaz ID": d.id,
            "Marka": d.brand,
            "Kategori": d.category,
            "Seri Numarası": d.serial_number,
            "Durum": DEVICE_STATUS_TEXT.get(d.status, d.status),
            "Zimmetli Kişi": d.assigned_to or NONE,
            "Departman": person.department if person else NONE,
            "Ünvan": (person.title or NONE) if person else NONE,
            "RAM": d.specifications.ram or UNSPECIFIED,
            "İşlemci": d.specifications.processor or UNSPECIFIED,
            "Nesil": d.specifications.generation or UNSPECIFIED,
            "Depolama": storage_info(d),
            "Oluşturma Tarihi": format_tr_date(d.created_at),
            "Zimmet Tarihi": format_tr_date(d.assigned_date) or NONE,
        })
    return rows


def personnel_rows(personnel: Iterable[Personnel]) -> list[dict[str, Any]]:
    return [
        {
            "Personel ID": p.id,
            "Ad Soyad": p.name,
            "Departman": p.department,
            "Ünvan": p.title,
            "E-posta": p.email,
            "Telefon": p.phone,
            "Zimmetli Cihaz Sayısı": len(p.assigned_devices),
        }
        for p in personnel
    ]


def assignment_rows(
    assignments: Iterable[Assignment],
    devices: Iterable[Device],
    personnel: Iterable[Personnel],
) -> list[dict[str, Any]]:
    devices_by_id = {d.id: d for d in devices}
    personnel_by_id = {p.id: p for p in personnel}
    rows = []
    for a in assignments:
        device = devices_by_id.get(a.device_id)
        person = personnel_by_id.get(a.personnel_id)
        rows.append({
            "Zimmet ID": a.id,
            "Cihaz": f"{device.brand} {device.category}" if device else UNKNOWN,
            "Seri Numarası": device.serial_number if device else UNKNOWN,
            "Depolama": storage_info(device) if device else UNKNOWN,
            "Personel": person.name if person else UNKNOWN,
            "Departman": person.department if person else UNKNOWN,
            "Zimmet Tarihi": format_tr_date(a.assigned_date),
            "İade Tarihi": format_tr_date(a.returned_date) or "Aktif",
            "Durum": "Aktif" if a.status == "active" else "İade Edildi",
            "Notlar": a.notes or NONE,
        })
    return rows


def device_summary_rows(
    devices: list[Device], personnel: list[Personnel], assignments: list[Assignment]
) -> list[dict[str, Any]]:
    rows = [{"Kategori": "Toplam Cihaz", "Sayı": len(devices)}]
    for status, label in DEVICE_STATUS_TEXT.items():
        rows.append({"Kategori": label, "Sayı": sum(1 for d in devices if d.status == status)})
    rows.append({"Kategori": "Toplam Personel", "Sayı": len(personnel)})
    rows.append({"Kategori": "Toplam Zimmet", "Sayı": len(assignments)})
    rows.append({"Kategori": "Aktif Zimmet", "Sayı": sum(1 for a in assignments if a.status == "active")})
    return rows


def inventory_rows(items: Iterable[InventoryItem]) -> list[dict[str, Any]]:
    return [
        {
            "Envanter ID": i.id,
            "Öğe Adı": i.item_name,
            "Seri Numarası": i.serial_number,
            "Kategori": i.category,
            "Marka": i.brand or UNSPECIFIED,
            "Model": i.model or UNSPECIFIED,
            "Durum": INVENTORY_STATUS_TEXT.get(i.current_status, i.current_status),
            "Lokasyon/Departman": i.location_department,
            "Satın Alma Tarihi": format_tr_date(i.purchase_date) or UNSPECIFIED,
            "Satın Alma Fiyatı": format_try(i.purchase_price) or UNSPECIFIED,
            "Tedarikçi": i.supplier or UNSPECIFIED,
            "Garanti Başlangıç": format_tr_date(i.warranty_start_date) or UNSPECIFIED,
            "Garanti Bitiş": format_tr_date(i.warranty_end_date) or UNSPECIFIED,
            "Garanti Sağlayıcı": i.warranty_provider or UNSPECIFIED,
            "Notlar": i.notes or NONE,
            "Oluşturma Tarihi": format_tr_date(i.created_at),
        }
        for i in items
    ]


def maintenance_rows(records: Iterable[MaintenanceRecord], items: Iterable[InventoryItem]) -> list[dict[str, Any]]:
    items_by_id = {i.id: i for i in items}
    rows = []
    for r in records:
        item = items_by_id.get(r.inventory_item_id)
        rows.append({
            "Bakım ID": r.id,
            "Öğe Adı": item.item_name if item else UNKNOWN,
            "Seri Numarası": item.serial_number if item else UNKNOWN,
            "Bakım Türü": MAINTENANCE_TYPE_TEXT.get(r.maintenance_type, r.maintenance_type),
            "Açıklama": r.description,
            "Başlangıç Tarihi": format_tr_date(r.start_date),
            "Bitiş Tarihi": format_tr_date(r.completion_date) or "Devam Ediyor",
            "Durum": MAINTENANCE_STATUS_TEXT.get(r.status, r.status),
            "Maliyet": format_try(r.cost) or UNSPECIFIED,
            "Teknisyen": r.technician or UNSPECIFIED,
            "Servis Sağlayıcı": r.supplier_service or UNSPECIFIED,
            "Notlar": r.notes or NONE,
        })
    return rows


def inventory_summary_rows(items: list[InventoryItem], records: list[MaintenanceRecord]) -> list[dict[str, Any]]:
    rows = [{"Kategori": "Toplam Envanter", "Sayı": len(items)}]
    for status, label in INVENTORY_STATUS_TEXT.items():
        rows.append({"Kategori": label, "Sayı": sum(1 for i in items if i.current_status == status)})
    rows.append({"Kategori": "Toplam Bakım Kaydı", "Sayı": len(records)})
    rows.append({"Kategori": "Aktif Bakım", "Sayı": sum(1 for r in records if r.status == "in_progress")})
    return rows


# ---------- workbooks ----------
def _append_sheet(wb: Workbook, title: str, headers: list[str], rows: list[dict[str, Any]]) -> None:
    sheet = wb.create_sheet(title)
    sheet.append(headers)
    for row in rows:
        sheet.append([row.get(h) for h in headers])


def devices_workbook(devices: list[Device], personnel: list[Personnel], assignments: list[Assignment]) -> Workbook:
    wb = Workbook()
    wb.remove(wb.active)
    _append_sheet(wb, "Cihazlar", DEVICE_HEADERS, device_rows(devices, personnel))
    _append_sheet(wb, "Personel", PERSONNEL_HEADERS, personnel_rows(personnel))
    _append_sheet(wb, "Zimmetler", ASSIGNMENT_HEADERS, assignment_rows(assignments, devices, personnel))
    _append_sheet(wb, "Özet", SUMMARY_HEADERS, device_summary_rows(devices, personnel, assignments))
    return wb


def inventory_workbook(items: list[InventoryItem], records: list[MaintenanceRecord]) -> Workbook:
    wb = Workbook()
    wb.remove(wb.active)
    _append_sheet(wb, "Envanter", INVENTORY_HEADERS, inventory_rows(items))
    _append_sheet(wb, "Bakım Kayıtları", MAINTENANCE_HEADERS, maintenance_rows(records, items))
    _append_sheet(wb, "Özet", SUMMARY_HEADERS, inventory_summary_rows(items, records))
    return wb


def workbook_bytes(wb: Workbook) -> bytes:
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def workbook_response(wb: Workbook, *, filename: str) -> StreamingResponse:
    output = io.BytesIO(workbook_bytes(wb))
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(output, media_type=XLSX_MEDIA_TYPE, headers=headers)


# ---------- JSON ----------
def _dump(model, date_fields: tuple[str, ...]) -> dict[str, Any]:
    data = model.model_dump(mode="json", by_alias=True)
    for name in date_fields:
        alias = type(model).model_fields[name].alias or name
        data[alias] = format_tr_date(getattr(model, name))
    return data


def devices_json(
    devices: list[Device],
    personnel: list[Personnel],
    assignments: list[Assignment],
    *,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    now = now or datetime.now()
    return {
        "exportDate": format_tr_date(now),
        "devices": [
            _dump(d, ("created_at", "updated_at", "assigned_date", "maintenance_date")) for d in devices
        ],
        "personnel": [_dump(p, ("created_at", "updated_at")) for p in personnel],
        "assignments": [_dump(a, ("assigned_date", "returned_date")) for a in assignments],
    }


def inventory_json(
    items: list[InventoryItem],
    records: list[MaintenanceRecord],
    *,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    now = now or datetime.now()
    return {
        "exportDate": format_tr_date(now),
        "inventory": [
            _dump(i, ("created_at", "updated_at", "purchase_date", "warranty_start_date", "warranty_end_date"))
            for i in items
        ],
        "maintenance": [_dump(r, ("start_date", "completion_date", "created_at")) for r in records],
    }


def json_response(data: dict[str, Any], *, filename: str) -> Response:
    body = json.dumps(data, ensure_ascii=False, indent=2)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=body, media_type="application/json; charset=utf-8", headers=headers)
