# util/errors.py
from fastapi import HTTPException, status
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)


class UploadError(AppError):
    """
    Receiver failure rendered as a plain-text 500: "<message> [<cause>]".
    """

    def __init__(
        self,
        message: str,
        cause: object = None,
        http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(message, http_status)
        self.message = message
        self.cause = cause

    @classmethod
    def of(cls, error: ErrorMessage, cause: object = None, detail: str = "") -> "UploadError":
        info = error.value
        message = f"{info.message} {detail}" if detail else info.message
        return cls(message, cause, info.http_status)

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} [{self.cause}]"


class PipelineError(Exception):
    """Base class for errors raised by the pipeline stages and their stores."""


class MalformedMessageError(PipelineError):
    # Permanent: handlers log and acknowledge, never retry.
    pass


class ObjectNotFoundError(PipelineError):
    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"object {bucket}/{key} not found")
        self.bucket = bucket
        self.key = key


class BucketNotFoundError(PipelineError):
    def __init__(self, bucket: str) -> None:
        super().__init__(f"bucket {bucket} does not exist")
        self.bucket = bucket


class TopicNotFoundError(PipelineError):
    def __init__(self, topic: str) -> None:
        super().__init__(f"topic {topic} does not exist")
        self.topic = topic


class AnnotationError(PipelineError):
    pass


class ArchiveError(PipelineError):
    pass


class SubscriptionNotFoundError(PipelineError):
    def __init__(self, subscription: str) -> None:
        super().__init__(f"subscription {subscription} does not exist")
        self.subscription = subscription
