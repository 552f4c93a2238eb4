# schemas/invoice.py
"""
Pydantic schemas for invoice inputs and the immutable invoice records
returned by InvoiceService.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.invoice import InvoiceStatus


class InvoiceCreate(BaseModel):
     """Data for issuing a new invoice."""
     client_company_id: int = Field(..., gt=0, description="Client company ID (must exist)")
     provider_company_id: int = Field(..., gt=0, description="Issuing provider company ID")
     rental_id: Optional[int] = Field(None, gt=0, description="Rental the invoice bills, if any")
     service_request_id: Optional[int] = Field(None, gt=0, description="Completed service request, if any")
     subtotal: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount before tax")
     tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
     issue_date: Optional[date] = Field(None, description="Defaults to today")
     due_date: Optional[date] = Field(None, description="Defaults to issue date + INVOICE_DUE_DAYS")
     description: Optional[str] = None
     notes: Optional[str] = None

     model_config = ConfigDict(
          frozen=True,
          json_schema_extra={
               "example": {
                    "client_company_id": 3,
                    "provider_company_id": 1,
                    "rental_id": 1,
                    "subtotal": 1000.00,
                    "tax_amount": 190.00,
                    "due_date": "2024-02-15"
               }
          }
     )


class InvoiceCorrection(BaseModel):
     """Replacement amounts for a correction invoice; omitted fields are copied from the original."""
     subtotal: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     tax_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     due_date: Optional[date] = None
     description: Optional[str] = None
     reason: str = Field(..., min_length=1, max_length=500, description="Why the original is being corrected")

     model_config = ConfigDict(
          frozen=True,
          json_schema_extra={
               "example": {
                    "subtotal": 900.00,
                    "reason": "Unit was out of service for three days"
               }
          }
     )


class InvoiceRecord(BaseModel):
     """Snapshot of an invoice."""
     id: int
     invoice_number: str
     client_company_id: int
     provider_company_id: int
     rental_id: Optional[int] = None
     service_request_id: Optional[int] = None
     corrects_invoice_id: Optional[int] = None
     issue_date: date
     due_date: date
     subtotal: Decimal
     tax_amount: Decimal
     total_amount: Decimal
     paid_amount: Decimal
     status: InvoiceStatus
     payment_method: Optional[str] = None
     payment_date: Optional[date] = None
     payment_reference: Optional[str] = None
     description: Optional[str] = None
     notes: Optional[str] = None

     model_config = ConfigDict(frozen=True, from_attributes=True)

     @property
     def remaining_amount(self) -> Decimal:
          return self.total_amount - self.paid_amount


class InvoicePaymentRecord(BaseModel):
     """Snapshot of one ledger entry."""
     id: int
     invoice_id: int
     amount: Decimal
     method: str
     paid_on: date
     reference: Optional[str] = None
     transaction_hash: str
     previous_hash: str
     timestamp: datetime

     model_config = ConfigDict(frozen=True, from_attributes=True)


class PaymentReceipt(BaseModel):
     """Result of recording a payment against an invoice."""
     invoice: InvoiceRecord
     entry: InvoicePaymentRecord

     model_config = ConfigDict(frozen=True)


class ClientBalance(BaseModel):
     """Outstanding and settled totals for a client company."""
     client_company_id: int
     total_owed: Decimal
     pending_amount: Decimal
     overdue_amount: Decimal
     paid_amount: Decimal
     total_invoices: int
     pending_count: int
     overdue_count: int
     paid_count: int

     model_config = ConfigDict(frozen=True)


class InvoiceList(BaseModel):
     invoices: List[InvoiceRecord]
     total: int

     model_config = ConfigDict(frozen=True)
