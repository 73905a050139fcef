from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

import config
import crud
import reports
from csv_utils import upload_to_rows
from dependencies import get_db, get_state
from errors import InventoryError
from filter_helpers import blank_to_none, normalize_order, normalize_sort, normalize_status
from models import DeviceIn, DeviceSpecifications, PersonnelIn
from state import AppState

router = APIRouter()
PAGE_SIZE = 50


def _back(url: str, error: Optional[str] = None) -> RedirectResponse:
    if error:
        url = f"{url}?error={quote(error)}"
    return RedirectResponse(url=url, status_code=303)


def _checkbox(confirm: str):
    return lambda _message: confirm == "on"


@router.get("/ui", response_class=HTMLResponse)
def dashboard_ui(request: Request, store: AppState = Depends(get_state)):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "stats": reports.dashboard_stats(store.devices, store.personnel, store.assignments),
            "recent": reports.recent_assignments(store.assignments),
            "device_map": {d.id: d for d in store.devices},
            "personnel_map": {p.id: p for p in store.personnel},
            "alerts": store.alerts(),
        },
    )


# ---------- devices ----------
@router.get("/ui/devices", response_class=HTMLResponse)
def devices_ui(
    request: Request,
    q: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    page: int = 1,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if page < 1:
        page = 1

    status = normalize_status(status)
    category = blank_to_none(category)
    sort = normalize_sort(sort)
    order = normalize_order(order)

    meta = crud.devices_meta(
        db,
        q=q,
        status=status,
        category=category,
        limit=PAGE_SIZE,
        offset=(page - 1) * PAGE_SIZE,
    )
    total_pages = meta["total_pages"]
    if page > total_pages:
        page = total_pages

    devices = crud.list_devices_filtered(
        db,
        q=q,
        status=status,
        category=category,
        sort=sort,
        order=order,
        limit=PAGE_SIZE,
        offset=(page - 1) * PAGE_SIZE,
    )
    active = {a.device_id: a for a in store.assignments if a.status == "active"}

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "devices.html",
        {
            "devices": devices,
            "active_assignments": active,
            "personnel": store.personnel,
            "categories": config.DEFAULT_CATEGORIES,
            "q": q or "",
            "status": status or "",
            "category": category or "",
            "sort": sort,
            "order": order,
            "page": page,
            "total_pages": total_pages,
            "total": meta["total"],
            "error": error,
        },
    )


@router.post("/ui/devices")
def create_device_ui(
    brand: str = Form(...),
    category: str = Form(...),
    serial_number: str = Form(...),
    status: str = Form("available"),
    ram: Optional[str] = Form(None),
    processor: Optional[str] = Form(None),
    generation: Optional[str] = Form(None),
    storage_type: Optional[str] = Form(None),
    storage_capacity: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    body = DeviceIn(
        brand=brand,
        category=category,
        serial_number=serial_number,
        status=normalize_status(status) or "available",  # type: ignore[arg-type]
        specifications=DeviceSpecifications(
            ram=blank_to_none(ram),
            processor=blank_to_none(processor),
            generation=blank_to_none(generation),
            storage_type=blank_to_none(storage_type),
            storage_capacity=blank_to_none(storage_capacity),
        ),
    )
    try:
        store.add_device(db, body)
    except InventoryError as e:
        return _back("/ui/devices", e.message)
    return _back("/ui/devices")


@router.post("/ui/devices/{device_id}/delete")
def delete_device_ui(
    device_id: str,
    confirm: str = Form(""),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    try:
        if not store.delete_device(db, device_id, _checkbox(confirm)):
            return _back("/ui/devices", "Silmek için onay kutusunu işaretleyin")
    except InventoryError as e:
        return _back("/ui/devices", e.message)
    return _back("/ui/devices")


@router.post("/ui/devices/{device_id}/assign")
def assign_device_ui(
    device_id: str,
    personnel_id: str = Form(...),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    try:
        store.assign_device(db, device_id, personnel_id, blank_to_none(notes))
    except InventoryError as e:
        return _back("/ui/devices", e.message)
    return _back("/ui/devices")


@router.post("/ui/assignments/{assignment_id}/return")
def return_device_ui(
    assignment_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    try:
        store.return_device(db, assignment_id)
    except InventoryError as e:
        return _back("/ui/devices", e.message)
    return _back("/ui/devices")


# ---------- personnel ----------
@router.get("/ui/personnel", response_class=HTMLResponse)
def personnel_ui(
    request: Request,
    q: Optional[str] = None,
    department: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    personnel = crud.list_personnel(db, q=q, department=blank_to_none(department))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "personnel.html",
        {
            "personnel": personnel,
            "departments": config.DEFAULT_DEPARTMENTS,
            "q": q or "",
            "department": department or "",
            "error": error,
        },
    )


@router.post("/ui/personnel")
def create_personnel_ui(
    name: str = Form(...),
    department: str = Form(...),
    title: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    body = PersonnelIn(name=name, department=department, title=title, email=email, phone=phone)
    try:
        store.add_personnel(db, body)
    except InventoryError as e:
        return _back("/ui/personnel", e.message)
    return _back("/ui/personnel")


@router.post("/ui/personnel/{personnel_id}/delete")
def delete_personnel_ui(
    personnel_id: str,
    confirm: str = Form(""),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    try:
        if not store.delete_personnel(db, personnel_id, _checkbox(confirm)):
            return _back("/ui/personnel", "Silmek için onay kutusunu işaretleyin")
    except InventoryError as e:
        return _back("/ui/personnel", e.message)
    return _back("/ui/personnel")


# ---------- import ----------
@router.get("/ui/import", response_class=HTMLResponse)
def import_ui(request: Request):
    templates = request.app.state.templates
    return templates.TemplateResponse(request, "import.html", {"result": None})


@router.post("/ui/import", response_class=HTMLResponse)
async def import_ui_post(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    data = await file.read()
    rows, err = upload_to_rows(file.filename or "", data)

    templates = request.app.state.templates
    if err:
        return templates.TemplateResponse(request, "import.html", {"result": {"error": err}})

    try:
        result = store.run(db, "import devices", crud.bulk_import_devices, rows)
    except InventoryError as e:
        result = {"error": e.message}
    return templates.TemplateResponse(request, "import.html", {"result": result})
