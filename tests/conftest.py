from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from mulapos.core.config import Settings
from mulapos.main import create_app
from mulapos.schemas.pos import Product
from mulapos.services.catalog import Catalog
from mulapos.services.terminal import PosTerminal


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        receipt_delay_seconds=0,
        long_poll_seconds=0.2,
        log_level="WARNING",
    )


@pytest.fixture
def terminal(settings):
    t = PosTerminal(settings)
    yield t
    t.dispose()


@pytest.fixture
def mouse_terminal(settings):
    # Catálogo mínimo de los escenarios: P001 Mouse 29.99, P004 Standing Desk 599.99
    catalog = Catalog([
        Product(id="P001", name="Mouse", price=Decimal("29.99"), category="Electronics"),
        Product(id="P004", name="Standing Desk", price=Decimal("599.99"), category="Furniture"),
    ])
    t = PosTerminal(settings, catalog=catalog)
    yield t
    t.dispose()


@pytest.fixture
def client(settings, terminal):
    with TestClient(create_app(settings, terminal)) as c:
        yield c


@pytest.fixture
def file_terminal(settings, tmp_path):
    # Pruebas con hilos: BD en archivo, una conexión por hilo (no StaticPool)
    settings = settings.model_copy(update={"database_url": f"sqlite:///{tmp_path / 'pos.db'}"})
    t = PosTerminal(settings)
    yield t
    t.dispose()
