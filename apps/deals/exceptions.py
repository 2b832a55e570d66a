"""
Domain exceptions for deals app.

Service errors (plain Exception subclasses) describe business rule
violations and are translated to HTTP responses in views.

Exception Hierarchy:
    DealsServiceError (base)
    ├── DealNotFoundError
    ├── DealClosedError
    ├── AlreadyParticipantError
    ├── InvalidQuantityError
    ├── ParticipantNotFoundError
    ├── InvalidTierTableError
    ├── InsufficientPermissionsError
    └── PaymentGatewayError
"""


class DealsServiceError(Exception):
    """Base exception for deal service errors."""
    pass


class DealNotFoundError(DealsServiceError):
    """Raised when a deal does not exist."""
    pass


class DealClosedError(DealsServiceError):
    """Raised when joining a deal that is not active or has expired."""
    pass


class AlreadyParticipantError(DealsServiceError):
    """Raised when a user joins a deal twice."""
    pass


class InvalidQuantityError(DealsServiceError):
    """Raised when a join quantity is below one."""
    pass


class ParticipantNotFoundError(DealsServiceError):
    """Raised when a user has no position in the deal."""
    pass


class InvalidTierTableError(DealsServiceError):
    """Raised when a tier table breaks range or price ordering rules."""
    pass


class InsufficientPermissionsError(DealsServiceError):
    """Raised when a user may not manage a deal."""
    pass


class PaymentGatewayError(DealsServiceError):
    """Raised by payment gateways when a charge is declined or fails."""
    pass
