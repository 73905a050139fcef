import os
import importlib

import pytest
from fastapi.testclient import TestClient
from fastapi.templating import Jinja2Templates


@pytest.fixture(scope="session")
def app_module(tmp_path_factory):
    # ---- test DB path ----
    tmp_dir = tmp_path_factory.mktemp("zimmet_app")
    db_path = tmp_dir / "test_zimmet.db"
    os.environ["APP_DB_PATH"] = str(db_path)
    os.environ.pop("APP_DATABASE_URL", None)

    # ---- minimal templates so the UI routes render ----
    tmpl_dir = tmp_dir / "templates"
    tmpl_dir.mkdir(parents=True, exist_ok=True)
    os.environ["APP_TEMPLATES_DIR"] = str(tmpl_dir)

    (tmpl_dir / "dashboard.html").write_text(
        "<html><body>dashboard ok total={{ stats.total_devices }} "
        "assigned={{ stats.assigned_devices }}</body></html>",
        encoding="utf-8",
    )
    (tmpl_dir / "devices.html").write_text(
        "<html><body>devices ok ({{ devices|length }}) {{ error or '' }}"
        "{% for d in devices %} {{ d.serial_number }}{% endfor %}</body></html>",
        encoding="utf-8",
    )
    (tmpl_dir / "personnel.html").write_text(
        "<html><body>personnel ok {% for p in personnel %}{{ p.name }};{% endfor %}</body></html>",
        encoding="utf-8",
    )
    (tmpl_dir / "import.html").write_text(
        "<html><body>import ok {% if result %}created={{ result.created }} "
        "error={{ result.error }}{% endif %}</body></html>",
        encoding="utf-8",
    )

    # ---- reload so the modules pick up the test settings ----
    import db
    import config
    import orm
    import realtime
    import crud
    import inventory_crud
    import state
    import main
    import cli

    importlib.reload(db)
    importlib.reload(config)
    importlib.reload(orm)
    importlib.reload(realtime)
    importlib.reload(crud)
    importlib.reload(inventory_crud)
    importlib.reload(state)
    importlib.reload(main)
    importlib.reload(cli)

    main.templates = Jinja2Templates(directory=str(tmpl_dir))
    main.app.state.templates = main.templates

    return main


@pytest.fixture()
def client(app_module):
    def _get_db_override():
        db = app_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[app_module.get_db] = _get_db_override
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()


@pytest.fixture()
def db_session(app_module):
    db = app_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(app_module):
    return app_module.app.state.store


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # wipe every table before each test (children first)
    from sqlalchemy import delete
    from alerts import DEFAULT_THRESHOLDS
    from orm import (
        AssignmentORM,
        AuditRecordORM,
        AutoOrderRuleORM,
        DeviceORM,
        InventoryItemORM,
        MaintenanceRecordORM,
        PersonnelORM,
        PurchaseOrderORM,
        SupplierORM,
    )

    for model in (
        AssignmentORM,
        DeviceORM,
        PersonnelORM,
        MaintenanceRecordORM,
        AuditRecordORM,
        InventoryItemORM,
        PurchaseOrderORM,
        AutoOrderRuleORM,
        SupplierORM,
    ):
        db_session.execute(delete(model))
    db_session.commit()

    # bulk deletes are not reported on the change feed; reload the cache by hand
    store = app_module.app.state.store
    store.refresh(db_session)
    store.acknowledged_alerts.clear()
    store.thresholds = list(DEFAULT_THRESHOLDS)
    yield
