# model/notification.py
from pydantic import BaseModel, Field, ValidationError, field_validator
from core.entities import ObjectLocation
from util.errors import MalformedMessageError


class LabeledImage(BaseModel):
    """
    Payload of a labeled-notification: where the image lives and the labels the
    annotation service returned for it, best first.
    """

    location: str
    labels: list[str] = Field(min_length=1)

    @field_validator("location")
    @classmethod
    def _check_location(cls, v: str) -> str:
        try:
            ObjectLocation.parse(v)
        except MalformedMessageError as e:
            raise ValueError(str(e)) from e
        return v

    @property
    def object_location(self) -> ObjectLocation:
        return ObjectLocation.parse(self.location)

    @classmethod
    def decode(cls, raw: bytes | str) -> "LabeledImage":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise MalformedMessageError(
                f"bad labeled notification ({e.error_count()} errors) [{e}]"
            ) from e

    def encode(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
