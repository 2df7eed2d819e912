from fastapi import status


class ClinicError(Exception):
    """Base class for errors the caller can fix by changing the request."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ClinicError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(ClinicError):
    """Missing record, or one owned by another patient."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT


class SlotConflictError(ConflictError):
    def __init__(self, detail: str = "This time slot is already booked"):
        super().__init__(detail)


class DuplicateBookingError(ConflictError):
    def __init__(self, detail: str = "You already have an appointment for this service on this date"):
        super().__init__(detail)


class DuplicateWaitlistError(ConflictError):
    def __init__(self, detail: str = "You already have an active waitlist entry for this date"):
        super().__init__(detail)


class InvalidTransitionError(ConflictError):
    pass
