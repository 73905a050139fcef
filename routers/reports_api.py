from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

import crud
import export_utils
import reports
from csv_utils import devices_to_csv_response, import_template_workbook, upload_to_rows
from dependencies import get_db, get_state
from errors import InventoryError
from models import DashboardStats, ImportResult
from state import AppState

router = APIRouter()


# ---------- reports ----------
@router.get("/reports/stats", response_model=DashboardStats)
def stats_api(store: AppState = Depends(get_state)):
    return reports.dashboard_stats(store.devices, store.personnel, store.assignments)


@router.get("/reports/dashboard")
def dashboard_api(store: AppState = Depends(get_state)):
    stats = reports.dashboard_stats(store.devices, store.personnel, store.assignments)
    recent = reports.recent_assignments(store.assignments)
    return {
        "stats": stats.model_dump(by_alias=True),
        "recentAssignments": [a.model_dump(mode="json", by_alias=True) for a in recent],
    }


@router.get("/reports/devices")
def device_report_api(store: AppState = Depends(get_state)):
    return reports.device_report(store.devices, store.personnel, store.assignments)


@router.get("/reports/inventory")
def inventory_report_api(store: AppState = Depends(get_state)):
    return reports.inventory_report(store.inventory_items, store.maintenance_records)


# ---------- export ----------
@router.get("/export/devices.xlsx")
def export_devices_xlsx(store: AppState = Depends(get_state)):
    wb = export_utils.devices_workbook(store.devices, store.personnel, store.assignments)
    return export_utils.workbook_response(wb, filename=export_utils.export_filename("cihaz_zimmet_raporu", "xlsx"))


@router.get("/export/devices.json")
def export_devices_json(store: AppState = Depends(get_state)):
    data = export_utils.devices_json(store.devices, store.personnel, store.assignments)
    return export_utils.json_response(data, filename=export_utils.export_filename("cihaz_zimmet_verileri", "json"))


@router.get("/export/devices.csv")
def export_devices_csv(store: AppState = Depends(get_state)):
    return devices_to_csv_response(store.devices)


@router.get("/export/inventory.xlsx")
def export_inventory_xlsx(store: AppState = Depends(get_state)):
    wb = export_utils.inventory_workbook(store.inventory_items, store.maintenance_records)
    return export_utils.workbook_response(wb, filename=export_utils.export_filename("envanter_raporu", "xlsx"))


@router.get("/export/inventory.json")
def export_inventory_json(store: AppState = Depends(get_state)):
    data = export_utils.inventory_json(store.inventory_items, store.maintenance_records)
    return export_utils.json_response(data, filename=export_utils.export_filename("envanter_verileri", "json"))


# ---------- import ----------
@router.get("/import/template.xlsx")
def import_template():
    return export_utils.workbook_response(import_template_workbook(), filename="cihaz_import_sablonu.xlsx")


@router.post("/import/devices", response_model=ImportResult)
async def import_devices_api(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    data = await file.read()
    rows, err = upload_to_rows(file.filename or "", data)
    if err:
        raise InventoryError(err)
    result = store.run(db, "import devices", crud.bulk_import_devices, rows)
    return ImportResult(**result)
