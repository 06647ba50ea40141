"""Custom exceptions for care service management."""


class ServiceManagementError(Exception):
    """Base class for every domain error raised by the service layer."""
    pass


class ServiceNotFoundError(ServiceManagementError):
    """Raised when a service cannot be found."""
    pass


class NotServiceOwnerError(ServiceManagementError):
    """Raised when the caller neither owns nor is assigned to the service."""
    pass


class NotificationNotFoundError(ServiceManagementError):
    """Raised when a caregiver has no offer for the service."""
    pass


class CaregiverNotFoundError(ServiceManagementError):
    """Raised when a caregiver profile cannot be found."""
    pass


class FamilyNotFoundError(ServiceManagementError):
    """Raised when a family profile cannot be found."""
    pass


class InvalidServiceStateError(ServiceManagementError):
    """Raised when a transition is attempted from the wrong status."""
    pass


class ConcurrentUpdateError(InvalidServiceStateError):
    """Raised when another request changed the service first."""
    pass


class ServiceValidationError(ServiceManagementError):
    """Raised when input is malformed, before any state is changed."""
    pass


class PaymentError(ServiceManagementError):
    """Raised when a payment operation cannot proceed."""
    pass
