# exceptions.py
"""
Error taxonomy for the rental and billing services.

Callers (an HTTP layer, a scheduled job) catch these to map them onto their
own responses:

- ValidationError: malformed input, nothing was written
- NotFoundError: a referenced company, equipment, rental or invoice is missing
- ConflictError: overlapping allocation or an invalid state transition
- PersistenceError: the transaction failed to flush or commit; retryable
"""


class RentalEngineError(Exception):
     """Base class for every error raised by the services."""

     default_message = "Error: request could not be processed"

     def __init__(self, message: str = None) -> None:
          self.message = message or self.default_message
          super().__init__(self.message)

     def __str__(self) -> str:
          return self.message


class ValidationError(RentalEngineError):
     """Raised for bad dates, non-positive amounts or unknown enum values."""

     default_message = "Error: invalid input"


class NotFoundError(RentalEngineError):
     """Raised when an entity id cannot be resolved."""

     default_message = "Error: not found"


class ConflictError(RentalEngineError):
     """Raised when a business rule rejects the operation."""

     default_message = "Error: conflicting state"


class PersistenceError(RentalEngineError):
     """Raised when the data store rejects the transaction."""

     default_message = "Error: transaction failed"
