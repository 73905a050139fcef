import os
from pathlib import Path

from db import ROOT_DIR

LOG_LEVEL = os.getenv("APP_LOG_LEVEL", "INFO").upper()

# name recorded as changed_by on audit rows
AUDIT_USER = os.getenv("APP_AUDIT_USER", "Sistem Yöneticisi")

TEMPLATES_DIR = Path(os.getenv("APP_TEMPLATES_DIR") or (ROOT_DIR / "templates"))

ORDER_UNIT_PRICE = float(os.getenv("APP_ORDER_UNIT_PRICE", "1500"))

DEFAULT_CATEGORIES = [
    "Laptop", "Masaüstü", "Monitör", "Yazıcı", "Telefon", "Tablet",
    "Kamera", "Ses Ekipmanı", "Ağ Ekipmanı", "Diğer",
]

DEFAULT_DEPARTMENTS = [
    "CRM", "Animasyon", "I.T", "Ses/Görüntü", "Misafir ilişkileri", "Mutfak",
    "Ön Büro", "Temizlik", "Bakım", "Güvenlik", "Yönetim", "SPA",
    "TEKNİK SERVİS", "SATIN ALMA", "H.K", "İK", "F&B",
]
