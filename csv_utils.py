import csv
import io
from typing import Any, Callable, Iterable, Optional, Sequence

from fastapi.responses import StreamingResponse
from openpyxl import Workbook, load_workbook

IMPORT_COLUMNS = [
    "Marka", "Kategori", "Seri Numarası", "Durum", "RAM", "İşlemci", "Nesil",
    "Zimmetli Kişi", "Departman", "Notlar",
]

STATUS_WORDS = {
    "müsait": "available",
    "available": "available",
    "zimmetli": "assigned",
    "assigned": "assigned",
    "bakımda": "maintenance",
    "maintenance": "maintenance",
    "emekli": "retired",
    "retired": "retired",
}


def decode_csv_bytes(data: bytes) -> str:
    # spreadsheet exports on Windows: UTF-8 with BOM, plain UTF-8, then Turkish code page
    for enc in ("utf-8-sig", "utf-8", "cp1254"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def normalize_header(h: str) -> str:
    h = (h or "").strip()
    mapping = {
        # English
        "brand": "brand",
        "category": "category",
        "serial_number": "serial_number",
        "serialnumber": "serial_number",
        "serial": "serial_number",
        "status": "status",
        "ram": "ram",
        "processor": "processor",
        "cpu": "processor",
        "generation": "generation",
        "assigned_to": "assigned_to",
        "assignedto": "assigned_to",
        "department": "department",
        "notes": "notes",
        "note": "notes",
        # Turkish
        "Marka": "brand",
        "Kategori": "category",
        "Seri Numarası": "serial_number",
        "Seri No": "serial_number",
        "Durum": "status",
        "RAM": "ram",
        "İşlemci": "processor",
        "Nesil": "generation",
        "Zimmetli Kişi": "assigned_to",
        "Departman": "department",
        "Notlar": "notes",
    }
    key = h.lower()
    return mapping.get(h, mapping.get(key, h))


def normalize_status_word(word: Optional[str]) -> str:
    """Unknown or empty status words fall back to available."""
    key = (word or "").strip().lower()
    return STATUS_WORDS.get(key, "available")


def _normalize_rows(header: Sequence[Any], records: Iterable[Sequence[Any]]) -> list[dict[str, str]]:
    keys = [normalize_header(str(h) if h is not None else "") for h in header]
    rows: list[dict[str, str]] = []
    for record in records:
        values = ["" if v is None else str(v) for v in record]
        if not any(v.strip() for v in values):
            continue
        row = {k: (values[i] if i < len(values) else "") for i, k in enumerate(keys) if k}
        row["status"] = normalize_status_word(row.get("status"))
        rows.append(row)
    return rows


def csv_bytes_to_rows(data: bytes) -> tuple[list[dict[str, str]], str | None]:
    """
    Parse CSV bytes into normalized rows.
    Returns (rows, None) on success or ([], "CSV header not found").
    """
    text = decode_csv_bytes(data)
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header or not any(h.strip() for h in header):
        return [], "CSV header not found"
    return _normalize_rows(header, reader), None


def xlsx_bytes_to_rows(data: bytes) -> tuple[list[dict[str, str]], str | None]:
    """First worksheet only; row 1 is the header."""
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception:
        return [], "Excel dosyası okunamadı"
    try:
        sheet = wb.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        header = next(values, None)
        if not header or not any(h for h in header):
            return [], "Excel header not found"
        return _normalize_rows(header, values), None
    finally:
        wb.close()


def upload_to_rows(filename: str, data: bytes) -> tuple[list[dict[str, str]], str | None]:
    if (filename or "").lower().endswith((".xlsx", ".xlsm")):
        return xlsx_bytes_to_rows(data)
    return csv_bytes_to_rows(data)


def import_template_workbook() -> Workbook:
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Cihaz Şablonu"
    sheet.append(IMPORT_COLUMNS)
    sheet.append(["Dell", "Laptop", "DL001234", "available", "16GB", "Intel Core i7", "12. Nesil", "", "", ""])
    sheet.append([
        "HP", "Masaüstü", "HP005678", "assigned", "8GB", "Intel Core i5", "11. Nesil",
        "Ahmet Yılmaz", "CRM", "Yeni zimmet",
    ])
    return wb


def devices_to_csv_response(
    devices: Iterable[Any],
    *,
    filename: str = "cihazlar.csv",
    columns: Optional[Sequence[tuple[str, Callable[[Any], str]]]] = None,
) -> StreamingResponse:
    """
    Stream devices as CSV. Works with ORM rows or pydantic models.
    """

    if columns is None:
        columns = [
            ("id", lambda d: str(d.id)),
            ("brand", lambda d: d.brand),
            ("category", lambda d: d.category),
            ("serial_number", lambda d: d.serial_number),
            ("status", lambda d: d.status),
            ("assigned_to", lambda d: d.assigned_to or ""),
            ("ram", lambda d: d.specifications.ram or ""),
            ("processor", lambda d: d.specifications.processor or ""),
            ("generation", lambda d: d.specifications.generation or ""),
            ("updated_at", lambda d: d.updated_at.isoformat() if d.updated_at else ""),
        ]

    def generate():
        buf = io.StringIO()
        w = csv.writer(buf)

        w.writerow([h for h, _ in columns])
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for d in devices:
            w.writerow([getter(d) for _, getter in columns])
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(generate(), media_type="text/csv; charset=utf-8", headers=headers)
