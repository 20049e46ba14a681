class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when a scheduling request is malformed before any store access."""
    def __init__(self, message: str, field: str | None = None, details: dict = None):
        payload = dict(details or {})
        if field is not None:
            payload.setdefault("field", field)
        self.field = field
        super().__init__(message, status_code=422, details=payload)


class InvalidIntervalError(ValidationError):
    """Raised when an interval does not satisfy start < end."""


class SchedulingConflictError(AppError):
    """Raised when a candidate entry overlaps an active entry for the same batch or teacher."""
    def __init__(self, report):
        self.report = report
        super().__init__(
            "Timetable conflict detected",
            status_code=409,
            details=report.model_dump(by_alias=True, mode="json"),
        )

    @property
    def conflicting_entries(self) -> list:
        return self.report.conflicting_entries


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"entityType": resource_type, "entityId": resource_id},
        )


class StoreError(AppError):
    """Raised when the underlying database fails; never retried by the engine."""
    def __init__(self, message: str):
        super().__init__(message, status_code=503)
