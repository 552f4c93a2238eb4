# services/directory.py
"""
Collaborators the rental and invoice services consume but do not own.

Each contract is a Protocol with a SQL-backed default that works on the
caller's session, so equipment and company reads and writes happen in the
same transaction as the rental writes.
"""
from datetime import date, datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from models import Company, Equipment, EquipmentStatus


class Clock(Protocol):
     def now(self) -> datetime: ...

     def today(self) -> date: ...


class SystemClock:
     """Wall clock in UTC."""

     def now(self) -> datetime:
          return datetime.now(timezone.utc).replace(tzinfo=None)

     def today(self) -> date:
          return self.now().date()


class FixedClock:
     """Clock frozen at a given instant; used by sweeps replayed for a date and by tests."""

     def __init__(self, at: datetime) -> None:
          self.at = at

     def now(self) -> datetime:
          return self.at

     def today(self) -> date:
          return self.at.date()


class EquipmentStore(Protocol):
     def get_by_id(self, db: Session, equipment_id: int, lock: bool = False) -> Optional[Equipment]: ...

     def set_status(
          self,
          db: Session,
          equipment_id: int,
          status: EquipmentStatus,
          current_client_id: Optional[int] = None,
     ) -> None: ...


class CompanyDirectory(Protocol):
     def get_by_id(self, db: Session, company_id: int) -> Optional[Company]: ...


class SqlEquipmentStore:
     """Equipment rows in the rental database."""

     def get_by_id(self, db: Session, equipment_id: int, lock: bool = False) -> Optional[Equipment]:
          """
          Load an equipment row. With lock=True the row is read with
          SELECT ... FOR UPDATE and stays locked until the transaction ends;
          this is the serialization point for allocations on the unit.
          """
          query = db.query(Equipment).filter(Equipment.id == equipment_id)
          if lock:
               query = query.with_for_update().populate_existing()
          return query.first()

     def set_status(
          self,
          db: Session,
          equipment_id: int,
          status: EquipmentStatus,
          current_client_id: Optional[int] = None,
     ) -> None:
          equipment = db.get(Equipment, equipment_id)
          equipment.status = status
          equipment.current_client_id = current_client_id if status is EquipmentStatus.RENTED else None
          db.flush()


class SqlCompanyDirectory:
     def get_by_id(self, db: Session, company_id: int) -> Optional[Company]:
          return db.get(Company, company_id)
