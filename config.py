# config.py
"""
Runtime configuration for the rental billing engine.

Values are read once from the environment (a local .env file is honoured).
Services take explicit overrides for the billing knobs, so these module-level
values only act as defaults.
"""
import logging
import os
from decimal import Decimal

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./equipment_rental.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Billing
BILLING_PARTIAL_PERIOD_POLICY = os.getenv("BILLING_PARTIAL_PERIOD_POLICY", "PRORATED").upper()
INVOICE_TAX_RATE = Decimal(os.getenv("INVOICE_TAX_RATE", "0.19"))
INVOICE_DUE_DAYS = int(os.getenv("INVOICE_DUE_DAYS", "30"))
INVOICE_NUMBER_PREFIX = os.getenv("INVOICE_NUMBER_PREFIX", "FAC").upper()


def configure_logging(level: str = None) -> None:
     """Apply LOG_LEVEL to the root logger (call once from the entrypoint)."""
     logging.basicConfig(
          level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
          format="%(asctime)s %(levelname)s %(name)s: %(message)s",
     )
