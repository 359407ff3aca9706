"""Domain error taxonomy.

Services raise these; the application maps them to JSON responses at the
operation boundary (see ``main.py``). Out-of-scope entities are reported
with ``NotFoundError`` exactly like missing ones.
"""


class ClinicError(Exception):
    status_code: int = 400
    kind: str = "ClinicError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClinicError):
    status_code = 422
    kind = "ValidationError"


class NotFoundError(ClinicError):
    status_code = 404
    kind = "NotFoundError"

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity


class ConflictError(ClinicError):
    status_code = 409
    kind = "ConflictError"

    def __init__(self, message: str, conflicting_id: int = None):
        super().__init__(message)
        self.conflicting_id = conflicting_id


class InvalidTransitionError(ClinicError):
    status_code = 409
    kind = "InvalidTransitionError"


class InvalidStateError(ClinicError):
    status_code = 409
    kind = "InvalidStateError"


class PersistenceError(ClinicError):
    status_code = 500
    kind = "PersistenceError"

    def __init__(self, message: str = "The operation could not be completed"):
        super().__init__(message)
