# models/equipment.py
import enum
from sqlalchemy import Column, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class EquipmentStatus(str, enum.Enum):
     """Physical availability of an equipment unit."""
     AVAILABLE = "AVAILABLE"
     RENTED = "RENTED"
     MAINTENANCE = "MAINTENANCE"
     OUT_OF_SERVICE = "OUT_OF_SERVICE"


class Equipment(TimestampMixin, Base):
     """
     Equipment model - a single rentable unit (cold room, freezer, generator...).

     Exclusively owned by one provider. current_client_id is only set while
     the unit is RENTED.
     """
     __tablename__ = "equipment"

     id = Column(Integer, primary_key=True, autoincrement=True)
     owner_company_id = Column(
          Integer,
          ForeignKey("companies.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     current_client_id = Column(Integer, ForeignKey("companies.id"), nullable=True)

     name = Column(String(255), nullable=False)
     equipment_type = Column(String(100), nullable=False)
     serial_number = Column(String(100), nullable=True, unique=True)
     status = Column(
          Enum(EquipmentStatus, name="equipment_status", create_constraint=True),
          default=EquipmentStatus.AVAILABLE,
          nullable=False,
          index=True
     )

     # Relationships
     owner = relationship("Company", foreign_keys=[owner_company_id])
     rentals = relationship("Rental", back_populates="equipment")

     def __repr__(self):
          return f"<Equipment(id={self.id}, name='{self.name}', status='{self.status.value}')>"
