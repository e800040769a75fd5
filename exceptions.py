# exceptions.py
"""
Typed errors raised by the workflow engine.

Every error carries a machine-readable ``code`` and the HTTP status the API
gateway answers with. Routers never translate messages; ``main.py`` maps the
whole hierarchy in one exception handler.

    BuildlineError
    +-- ValidationFailed            400
    |   +-- ChecklistIncompleteError
    +-- NotFoundError               404
    |   +-- JourneyNotFoundError
    |   +-- BinNotFoundError
    |   +-- LocationNotFoundError
    |   +-- ProfileNotFoundError
    +-- ForbiddenError              403
    |   +-- NotAssignedTechnicianError
    +-- ConflictError               409
        +-- DuplicateBarcodeError
        +-- InvalidTransitionError
        +-- AlreadyAssignedError
        +-- JourneyPausedError
        +-- BinCapacityError
        +-- ConcurrentUpdateError
"""


class BuildlineError(Exception):
    code: str = "BUILDLINE_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# 400


class ValidationFailed(BuildlineError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ChecklistIncompleteError(ValidationFailed):
    code = "CHECKLIST_INCOMPLETE"

    def __init__(self, barcode: str, missing: list[str]):
        self.barcode = barcode
        self.missing = missing
        super().__init__(
            f"Checklist incomplete for {barcode}: {', '.join(missing)} not done"
        )


# 404


class NotFoundError(BuildlineError):
    code = "NOT_FOUND"
    status_code = 404


class JourneyNotFoundError(NotFoundError):
    code = "JOURNEY_NOT_FOUND"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"Bike not found: {barcode}")


class BinNotFoundError(NotFoundError):
    code = "BIN_NOT_FOUND"

    def __init__(self, bin_id: int):
        self.bin_id = bin_id
        super().__init__(f"Bin not found: {bin_id}")


class LocationNotFoundError(NotFoundError):
    code = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: int):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class ProfileNotFoundError(NotFoundError):
    code = "PROFILE_NOT_FOUND"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# 403


class ForbiddenError(BuildlineError):
    code = "FORBIDDEN"
    status_code = 403


class NotAssignedTechnicianError(ForbiddenError):
    code = "NOT_ASSIGNED_TECHNICIAN"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"Bike {barcode} is not assigned to you")


# 409


class ConflictError(BuildlineError):
    code = "CONFLICT"
    status_code = 409


class DuplicateBarcodeError(ConflictError):
    code = "DUPLICATE_BARCODE"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"Barcode already exists: {barcode}")


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, barcode: str, current: str, action: str):
        self.barcode = barcode
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} bike {barcode} in status '{current}'")


class AlreadyAssignedError(ConflictError):
    code = "ALREADY_ASSIGNED"

    def __init__(self, barcode: str, current: str):
        self.barcode = barcode
        self.current = current
        super().__init__(f"Bike {barcode} is already assigned (status '{current}')")


class JourneyPausedError(ConflictError):
    code = "JOURNEY_PAUSED"

    def __init__(self, barcode: str, reason: str | None):
        self.barcode = barcode
        self.reason = reason
        super().__init__(f"Bike {barcode} is paused ({reason}); resume it first")


class BinCapacityError(ConflictError):
    code = "BIN_CAPACITY_EXCEEDED"

    def __init__(self, bin_code: str, capacity: int):
        self.bin_code = bin_code
        self.capacity = capacity
        super().__init__(f"Bin {bin_code} is full (capacity {capacity})")


class ConcurrentUpdateError(ConflictError):
    code = "CONCURRENT_UPDATE"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(
            f"{entity} {key} was modified by another request; reload and retry"
        )
