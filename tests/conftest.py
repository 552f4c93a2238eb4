import sys, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from database import build_engine, build_session_factory, init_db, session_scope
from models import Company, CompanyType, Equipment, EquipmentStatus
from services.directory import FixedClock
from services.invoice_service import InvoiceService
from services.rental_service import RentalService


@pytest.fixture
def engine(tmp_path):
    """
    File-backed SQLite database per test. A file (not :memory:) so that
    several threads can open their own connections to the same data.
    """
    eng = build_engine(f"sqlite:///{tmp_path / 'rental.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    # tests move time forward by assigning clock.at
    return FixedClock(datetime(2024, 1, 1, 9, 0, 0))


@pytest.fixture
def seed(session_factory):
    """One provider owning two units, two client companies and a second provider."""
    with session_factory() as db:
        provider = Company(name="Frio Andino", company_type=CompanyType.PROVIDER, tax_id="900100200")
        other_provider = Company(name="Termo Sur", company_type=CompanyType.PROVIDER, tax_id="900100300")
        client_1 = Company(name="Lacteos Norte", company_type=CompanyType.CLIENT, tax_id="800200100")
        client_2 = Company(name="Pesquera Azul", company_type=CompanyType.CLIENT, tax_id="800200200")
        inactive_client = Company(
            name="Cerrada SAS", company_type=CompanyType.CLIENT, tax_id="800200300", is_active=False
        )
        db.add_all([provider, other_provider, client_1, client_2, inactive_client])
        db.flush()

        cold_room = Equipment(
            owner_company_id=provider.id,
            name="Cold room 20m3",
            equipment_type="COLD_ROOM",
            serial_number="CR-0001",
            status=EquipmentStatus.AVAILABLE,
        )
        freezer = Equipment(
            owner_company_id=provider.id,
            name="Blast freezer",
            equipment_type="FREEZER",
            serial_number="FZ-0001",
            status=EquipmentStatus.AVAILABLE,
        )
        db.add_all([cold_room, freezer])
        db.commit()

        return SimpleNamespace(
            provider_id=provider.id,
            other_provider_id=other_provider.id,
            client_id=client_1.id,
            client_2_id=client_2.id,
            inactive_client_id=inactive_client.id,
            equipment_id=cold_room.id,
            freezer_id=freezer.id,
        )


@pytest.fixture
def rental_service(session_factory, clock):
    return RentalService(session_factory=session_factory, clock=clock, partial_period_policy="PRORATED")


@pytest.fixture
def invoice_service(session_factory, clock):
    return InvoiceService(
        session_factory=session_factory,
        clock=clock,
        tax_rate=Decimal("0.19"),
        due_days=30,
        number_prefix="FAC",
    )


@pytest.fixture
def equipment_state(session_factory):
    """Read an equipment row's (status, current_client_id) outside any service."""
    def read(equipment_id):
        with session_scope(session_factory) as db:
            equipment = db.get(Equipment, equipment_id)
            return equipment.status, equipment.current_client_id
    return read
