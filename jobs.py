# jobs.py
"""
Periodic billing sweeps.

Run once a day from cron (or any scheduler):

     python jobs.py --horizon-days 5

Each sweep commits rental by rental / invoice by invoice, so a failure
part-way leaves the already processed items done and the rest for the next run.
"""
import argparse
import logging
from dataclasses import dataclass
from typing import Optional

from config import configure_logging
from services.invoice_service import InvoiceService
from services.rental_service import RentalService

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
     completed_rentals: int
     issued_invoices: int
     overdue_invoices: int


def run_daily(
     rental_service: Optional[RentalService] = None,
     invoice_service: Optional[InvoiceService] = None,
     horizon_days: int = 0,
) -> SweepResult:
     """Complete expired rentals, bill due payments, then flag overdue invoices."""
     rental_service = rental_service or RentalService()
     invoice_service = invoice_service or InvoiceService()

     completed = rental_service.complete_expired()
     issued = invoice_service.issue_due_invoices(horizon_days)
     overdue = invoice_service.mark_overdue_invoices()

     result = SweepResult(len(completed), len(issued), overdue)
     logger.info(
          "Daily sweep done: %d rentals completed, %d invoices issued, %d invoices overdue",
          result.completed_rentals, result.issued_invoices, result.overdue_invoices,
     )
     return result


def _build_parser() -> argparse.ArgumentParser:
     parser = argparse.ArgumentParser(description="Run the daily rental billing sweeps.")
     parser.add_argument(
          "--horizon-days",
          type=int,
          default=0,
          help="Also bill scheduled payments falling due within this many days",
     )
     parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
     return parser


def main() -> int:
     args = _build_parser().parse_args()
     configure_logging(args.log_level)
     run_daily(horizon_days=args.horizon_days)
     return 0


if __name__ == "__main__":
     raise SystemExit(main())
