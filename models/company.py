# models/company.py
import enum
from sqlalchemy import Boolean, Column, Enum, Integer, String
from .base import Base, TimestampMixin


class CompanyType(str, enum.Enum):
     """Role a company plays on the platform."""
     CLIENT = "CLIENT"
     PROVIDER = "PROVIDER"


class Company(TimestampMixin, Base):
     """
     Company model - equipment providers and the client companies renting from them.

     Owned by the company directory; the rental services only read it.
     """
     __tablename__ = "companies"

     id = Column(Integer, primary_key=True, autoincrement=True)
     name = Column(String(255), nullable=False)
     company_type = Column(
          Enum(CompanyType, name="company_type", create_constraint=True),
          nullable=False,
          index=True
     )
     tax_id = Column(String(50), nullable=True, unique=True)
     is_active = Column(Boolean, default=True, nullable=False)

     def __repr__(self):
          return f"<Company(id={self.id}, name='{self.name}', type='{self.company_type.value}')>"
