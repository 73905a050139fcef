from .assignments_api import router as assignments_api_router
from .devices_api import router as devices_api_router
from .inventory_api import router as inventory_api_router
from .personnel_api import router as personnel_api_router
from .reports_api import router as reports_api_router
from .suppliers_api import router as suppliers_api_router
from .ui import router as ui_router

ALL_ROUTERS = (
    devices_api_router,
    personnel_api_router,
    assignments_api_router,
    inventory_api_router,
    suppliers_api_router,
    reports_api_router,
    ui_router,
)
