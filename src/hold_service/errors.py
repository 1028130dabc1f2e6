import enum


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    SERIALIZATION = "SERIALIZATION"
    INFRASTRUCTURE = "INFRASTRUCTURE"


class HoldServiceError(Exception):
    kind = ErrorKind.INFRASTRUCTURE


class HoldValidationError(HoldServiceError):
    kind = ErrorKind.VALIDATION


class HoldNotFoundError(HoldServiceError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, hold_id):
        super().__init__(f"Hold not found: {hold_id}")
        self.hold_id = hold_id


class PayloadSerializationError(HoldServiceError):
    kind = ErrorKind.SERIALIZATION


class PublishError(HoldServiceError):
    pass


def error_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, HoldServiceError):
        return exc.kind
    return ErrorKind.INFRASTRUCTURE
