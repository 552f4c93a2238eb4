# services/schedule.py
"""
Payment schedule generation.

Pure calendar arithmetic, no database access. A schedule is anchored on the
rental start date: payment i is due start + i*k months (k from the billing
frequency), with month-end clamping (Jan 31 + 1 month = Feb 28/29). Anchoring
every date on the start, rather than stepping from the previous date, keeps
the day of month from drifting after a short month.

The last period can be shorter than the cadence (13 months billed
quarterly). PartialPeriodPolicy decides whether it is charged for the months
actually covered (PRORATED) or as a whole period (FULL_PERIOD).
"""
from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Iterator, Tuple

from exceptions import ValidationError
from models.payment import PaymentStatus, PaymentType
from models.rental import BillingFrequency, PartialPeriodPolicy
from schemas.rental import ScheduledPayment

CENT = Decimal("0.01")
ONE_DAY = timedelta(days=1)


def to_money(value) -> Decimal:
     """Normalize an amount to a 2-decimal Decimal; raise ValidationError if not numeric."""
     try:
          return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
     except (InvalidOperation, ValueError, TypeError):
          raise ValidationError(f"Error: invalid amount {value!r}")


def parse_frequency(value) -> BillingFrequency:
     try:
          return BillingFrequency(value)
     except ValueError:
          raise ValidationError(f"Error: unknown billing frequency {value!r}")


def parse_policy(value) -> PartialPeriodPolicy:
     try:
          return PartialPeriodPolicy(value)
     except ValueError:
          raise ValidationError(f"Error: unknown partial period policy {value!r}")


def add_months(day: date, months: int) -> date:
     """Shift a date by whole calendar months, clamping to the last day of the target month."""
     month_index = day.month - 1 + months
     year = day.year + month_index // 12
     month = month_index % 12 + 1
     return date(year, month, min(day.day, monthrange(year, month)[1]))


def billable_months(start: date, end: date) -> int:
     """
     Number of calendar months covered by [start, end] (end inclusive), rounded up.

     2024-01-01..2024-06-01 covers five months and one day, so six are billable.
     """
     if end < start:
          raise ValidationError("Error: end date must not be before start date")
     stop = end + ONE_DAY
     months = (stop.year - start.year) * 12 + (stop.month - start.month)
     while months > 0 and add_months(start, months) > stop:
          months -= 1
     if add_months(start, months) < stop:
          months += 1
     return months


def iter_periods(
     start: date,
     end: date,
     monthly_rate: Decimal,
     frequency: BillingFrequency,
     policy: PartialPeriodPolicy,
) -> Iterator[Tuple[date, date, Decimal]]:
     """Yield (period_start, period_end, amount) for every billing period of [start, end]."""
     step = frequency.months
     total_months = billable_months(start, end)
     index = 0
     while index * step < total_months:
          period_start = add_months(start, index * step)
          period_end = min(add_months(start, (index + 1) * step) - ONE_DAY, end)
          if policy is PartialPeriodPolicy.FULL_PERIOD:
               months = step
          else:
               months = min(step, total_months - index * step)
          yield period_start, period_end, to_money(monthly_rate * months)
          index += 1


def _validate_terms(rental, deposit_amount) -> Tuple[Decimal, Decimal]:
     if rental.end_date <= rental.start_date:
          raise ValidationError("Error: end date must be after start date")
     rate = to_money(rental.monthly_rate)
     if rate <= 0:
          raise ValidationError("Error: monthly rate must be greater than zero")
     deposit = to_money(deposit_amount or 0)
     if deposit < 0:
          raise ValidationError("Error: deposit amount cannot be negative")
     return rate, deposit


def generate_schedule(
     rental,
     frequency=BillingFrequency.MONTHLY,
     deposit_amount=0,
     policy=PartialPeriodPolicy.PRORATED,
) -> list[ScheduledPayment]:
     """
     Build the full payment schedule of a rental.

     Args:
          rental: anything exposing start_date, end_date and monthly_rate
          frequency: BillingFrequency (or its name)
          deposit_amount: emitted as a DEPOSIT due on start_date when > 0
          policy: PartialPeriodPolicy for a short final period

     Returns:
          DEPOSIT (if any) followed by RENTAL payments in strictly increasing
          due-date order, the last one due on or before end_date.
     """
     frequency = parse_frequency(frequency)
     policy = parse_policy(policy)
     rate, deposit = _validate_terms(rental, deposit_amount)

     schedule = []
     if deposit > 0:
          schedule.append(ScheduledPayment(
               payment_type=PaymentType.DEPOSIT,
               due_date=rental.start_date,
               amount=deposit,
          ))
     for period_start, period_end, amount in iter_periods(
          rental.start_date, rental.end_date, rate, frequency, policy
     ):
          schedule.append(ScheduledPayment(
               payment_type=PaymentType.RENTAL,
               due_date=period_start,
               amount=amount,
               period_start=period_start,
               period_end=period_end,
          ))
     return schedule


def extension_schedule(
     rental,
     existing_payments: Iterable,
     new_end_date: date,
     frequency=BillingFrequency.MONTHLY,
     policy=PartialPeriodPolicy.PRORATED,
) -> list[ScheduledPayment]:
     """
     Payments to append when a rental's end date moves to new_end_date.

     The anchored schedule is regenerated for the new end and compared,
     period by period, with what existing_payments already bill. New periods
     are due on their own start date. A period that was billed short (a
     prorated final period now fully covered) gets a top-up due the day
     after the old end date, which always falls between the last existing
     due date and the next new period, so due dates stay strictly increasing
     and nothing is billed twice.
     """
     frequency = parse_frequency(frequency)
     policy = parse_policy(policy)
     if new_end_date <= rental.end_date:
          raise ValidationError("Error: new end date must be after the current end date")
     rate = to_money(rental.monthly_rate)

     billed = {}
     for payment in existing_payments:
          if payment.payment_type is PaymentType.DEPOSIT or getattr(payment, "status", None) == PaymentStatus.CANCELLED:
               continue
          if payment.period_start is None:
               continue
          billed[payment.period_start] = billed.get(payment.period_start, Decimal("0")) + payment.amount

     top_up_date = rental.end_date + ONE_DAY
     extension = []
     for period_start, period_end, amount in iter_periods(
          rental.start_date, new_end_date, rate, frequency, policy
     ):
          outstanding = amount - billed.get(period_start, Decimal("0"))
          if outstanding <= 0:
               continue
          extension.append(ScheduledPayment(
               payment_type=PaymentType.RENTAL_EXTENSION,
               due_date=top_up_date if period_start in billed else period_start,
               amount=to_money(outstanding),
               period_start=period_start,
               period_end=period_end,
          ))
     return extension


def rental_total(schedule: Iterable, exclude_cancelled: bool = True) -> Decimal:
     """Sum of RENTAL and RENTAL_EXTENSION amounts (deposits excluded)."""
     total = Decimal("0.00")
     for payment in schedule:
          if payment.payment_type is PaymentType.DEPOSIT:
               continue
          if exclude_cancelled and getattr(payment, "status", None) == PaymentStatus.CANCELLED:
               continue
          total += payment.amount
     return to_money(total)


def deposit_total(schedule: Iterable, exclude_cancelled: bool = True) -> Decimal:
     total = Decimal("0.00")
     for payment in schedule:
          if payment.payment_type is not PaymentType.DEPOSIT:
               continue
          if exclude_cancelled and getattr(payment, "status", None) == PaymentStatus.CANCELLED:
               continue
          total += payment.amount
     return to_money(total)
