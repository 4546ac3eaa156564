# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class ServiceRole(str, Enum):
    RECEIVER = "receiver"
    LABELER = "labeler"
    ARCHIVER = "archiver"
    PURGER = "purger"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    FORM_PARSE_FAILED = ErrorInfo(
        "Unable to extract file contents from request",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    UPLOAD_FAILED = ErrorInfo("File upload failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
    UPLOAD_INCOMPLETE = ErrorInfo(
        "File upload incomplete", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    NOTIFICATION_FAILED = ErrorInfo(
        "Received notification failed", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
