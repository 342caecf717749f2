"""
Custom Exception Classes for Link Station

Every domain outcome that is not a success is raised as an AppException
subclass. Four families matter to callers:

- NotFound: the room, user or token no longer exists (or has expired)
- Conflict: duplicate name, already voted, room full, wrong game state
- Forbidden: the actor lacks the role or credential for the operation
- BackendFailure: the key-value store could not complete an operation

The first three are routine control flow. BackendFailure is never caught
by domain code and surfaces to the caller unchanged.
"""

from typing import Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Stable, language-neutral error codes"""

    # Not found (NF_xxx)
    NOT_FOUND = "NF_001"
    ROOM_NOT_FOUND = "NF_002"
    USER_NOT_FOUND = "NF_003"
    TARGET_NOT_FOUND = "NF_004"

    # Conflict (CONF_xxx)
    CONFLICT = "CONF_001"
    ROOM_NAME_TAKEN = "CONF_002"
    USERNAME_TAKEN = "CONF_003"
    USERNAME_RESERVED = "CONF_004"
    ALREADY_VOTED = "CONF_005"
    ROOM_FULL = "CONF_006"
    GAME_IN_PROGRESS = "CONF_007"
    INVALID_GAME_STATE = "CONF_008"
    NOT_ENOUGH_ATTENDERS = "CONF_009"
    CANNOT_KICK_SELF = "CONF_010"
    SELF_SELECTION = "CONF_011"

    # Forbidden (AUTH_xxx)
    PERMISSION_DENIED = "AUTH_001"
    NOT_ROOM_MASTER = "AUTH_002"
    NOT_ATTENDER = "AUTH_003"
    WRONG_PASSWORD = "AUTH_004"
    PASSWORD_REQUIRED = "AUTH_005"
    ADMIN_SESSION_EXPIRED = "AUTH_006"
    APP_SHUTDOWN = "AUTH_007"

    # Validation (VAL_xxx)
    VALIDATION_ERROR = "VAL_001"

    # Backend (STORE_xxx)
    BACKEND_FAILURE = "STORE_001"

    # General (GEN_xxx)
    INTERNAL_SERVER_ERROR = "GEN_001"


class AppException(Exception):
    """
    Base exception class for all application errors.

    Attributes:
        message: Human readable message
        code: ErrorCode value
        status_code: HTTP status code the handler layer should use
        details: Optional extra payload
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses"""
        result = {
            "error": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result["details"] = self.details
        return result


# ==================== Not Found ====================

class NotFoundException(AppException):
    def __init__(
        self,
        message: str = "Resource not found",
        code: ErrorCode = ErrorCode.NOT_FOUND,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, 404, details)


class RoomNotFoundException(NotFoundException):
    def __init__(self, message: str = "Room not found", details: Optional[dict[str, Any]] = None):
        super().__init__(message, ErrorCode.ROOM_NOT_FOUND, details)


class UserNotFoundException(NotFoundException):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, ErrorCode.USER_NOT_FOUND)


class TargetNotFoundException(NotFoundException):
    """Selected user is not in the room"""

    def __init__(self, message: str = "Selected user not found"):
        super().__init__(message, ErrorCode.TARGET_NOT_FOUND)


# ==================== Conflict ====================

class ConflictException(AppException):
    def __init__(
        self,
        message: str = "Conflict",
        code: ErrorCode = ErrorCode.CONFLICT,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, 409, details)


class RoomNameTakenException(ConflictException):
    def __init__(self, room_name: str = ""):
        super().__init__("Room name already exists", ErrorCode.ROOM_NAME_TAKEN, {"field": "room_name", "value": room_name})


class UsernameTakenException(ConflictException):
    def __init__(self, username: str = ""):
        super().__init__("Username is already in use", ErrorCode.USERNAME_TAKEN, {"field": "username", "value": username})


class ReservedUsernameException(ConflictException):
    def __init__(self):
        super().__init__("This username is reserved", ErrorCode.USERNAME_RESERVED, {"field": "username"})


class AlreadyVotedException(ConflictException):
    def __init__(self):
        super().__init__("You have already voted", ErrorCode.ALREADY_VOTED)


class RoomFullException(ConflictException):
    def __init__(self):
        super().__init__("Room is full", ErrorCode.ROOM_FULL)


class GameInProgressException(ConflictException):
    def __init__(self):
        super().__init__("Game is in progress", ErrorCode.GAME_IN_PROGRESS)


class InvalidGameStateException(ConflictException):
    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Room must be in '{expected}' state",
            ErrorCode.INVALID_GAME_STATE,
            {"expected": expected, "actual": actual},
        )


class NotEnoughAttendersException(ConflictException):
    def __init__(self, required: int = 2):
        super().__init__(
            f"At least {required} attenders are required",
            ErrorCode.NOT_ENOUGH_ATTENDERS,
            {"required": required},
        )


class CannotKickSelfException(ConflictException):
    def __init__(self):
        super().__init__("You cannot kick yourself", ErrorCode.CANNOT_KICK_SELF)


class SelfSelectionException(ConflictException):
    def __init__(self):
        super().__init__("You cannot select yourself", ErrorCode.SELF_SELECTION)


# ==================== Forbidden ====================

class ForbiddenException(AppException):
    def __init__(
        self,
        message: str = "Permission denied",
        code: ErrorCode = ErrorCode.PERMISSION_DENIED,
        status_code: int = 403,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, status_code, details)


class NotRoomMasterException(ForbiddenException):
    def __init__(self, message: str = "Only the room master can do this"):
        super().__init__(message, ErrorCode.NOT_ROOM_MASTER)


class NotAttenderException(ForbiddenException):
    def __init__(self):
        super().__init__("Only attenders can vote", ErrorCode.NOT_ATTENDER)


class WrongPasswordException(ForbiddenException):
    def __init__(self, message: str = "Incorrect password"):
        super().__init__(message, ErrorCode.WRONG_PASSWORD)


class PasswordRequiredException(ForbiddenException):
    def __init__(self):
        super().__init__(
            "Password is required",
            ErrorCode.PASSWORD_REQUIRED,
            details={"requires_password": True},
        )


class AdminSessionExpiredException(ForbiddenException):
    def __init__(self, message: str = "Admin session expired, please log in again"):
        super().__init__(message, ErrorCode.ADMIN_SESSION_EXPIRED, 401)


class AppShutdownException(ForbiddenException):
    def __init__(self):
        super().__init__("The app is shut down", ErrorCode.APP_SHUTDOWN, 503)


# ==================== Validation ====================

class ValidationException(AppException):
    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, details)


class InvalidInputException(ValidationException):
    def __init__(self, field: str, reason: str = "Invalid value"):
        super().__init__(
            f"Invalid value: {field}",
            {"field": field, "reason": reason},
        )


# ==================== Backend ====================

class BackendFailureException(AppException):
    """The key-value store could not complete an operation"""

    def __init__(
        self,
        backend: str,
        command: str,
        reason: str = "Backend error",
        details: Optional[dict[str, Any]] = None,
    ):
        all_details = {"backend": backend, "command": command}
        if details:
            all_details.update(details)
        super().__init__(
            f"{backend} {command} failed: {reason}",
            ErrorCode.BACKEND_FAILURE,
            502,
            all_details,
        )
