from fastapi import HTTPException, status

# Scheduling exceptions
class SlotValidationError(HTTPException):
    """Bad day or time format, start not before end, too short, or overlapping."""

    def __init__(self, detail: str = "Invalid time slot"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )

class DoctorUnavailableError(HTTPException):
    """Doctor is not approved or the account is deactivated."""

    def __init__(self, detail: str = "Doctor is not available for appointments"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

class SlotConflictError(HTTPException):
    """Concurrent writers kept changing the same doctor's slots."""

    def __init__(self, detail: str = "Time slots were modified concurrently, please retry"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

class AppointmentValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid appointment request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

class BookingConflictError(HTTPException):
    """The slot already holds an active appointment on that date."""

    def __init__(self, detail: str = "Time slot is already booked for this date"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

class StorageError(HTTPException):
    """Unexpected persistence failure. The cause is logged, never returned."""

    def __init__(self, detail: str = "Server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
        )
