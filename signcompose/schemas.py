from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field as ModelField, field_validator, model_validator
from pydantic.alias_generators import to_camel

TEXT_TYPES = ("text", "name", "email", "phone", "date")
FIELD_TYPES = TEXT_TYPES + ("checkbox", "signature", "initial")

_PERCENT_KEYS = {
    "left_percent": "leftPercent",
    "top_percent": "topPercent",
    "width_percent": "widthPercent",
    "height_percent": "heightPercent",
}
_PIXEL_KEYS = {
    "x": "x",
    "y": "y",
    "width": "width",
    "height": "height",
    "original_width": "originalWidth",
    "original_height": "originalHeight",
}


class _Model(BaseModel):
    # host payloads use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PercentPosition(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    left_percent: float
    top_percent: float
    width_percent: float = 0.0
    height_percent: float = 0.0


class PixelPosition(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    original_width: Optional[float] = None
    original_height: Optional[float] = None


Position = Union[PercentPosition, PixelPosition]


def _pick(data: dict, keys: Dict[str, str]) -> dict:
    picked = {}
    for snake, camel in keys.items():
        value = data.get(camel, data.get(snake))
        if value is not None:
            picked[snake] = value
    return picked


class Field(_Model):
    id: str
    type: str
    page_number: int = 1
    required: bool = False
    position: Optional[Position] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("page_number", mode="before")
    @classmethod
    def _default_page(cls, value):
        # a missing or zero page number means the first page
        return value or 1

    @model_validator(mode="before")
    @classmethod
    def _lift_position(cls, data):
        if not isinstance(data, dict) or data.get("position") is not None:
            return data
        data = dict(data)
        percent = _pick(data, _PERCENT_KEYS)
        pixel = _pick(data, _PIXEL_KEYS)
        if "left_percent" in percent and "top_percent" in percent:
            data["position"] = PercentPosition(**percent)
        elif "x" in pixel and "y" in pixel:
            data["position"] = PixelPosition(**pixel)
        return data


class SourceFile(_Model):
    file_id: Optional[str] = None
    storage_ref: Optional[str] = ModelField(
        default=None,
        validation_alias=AliasChoices("storageRef", "storage_ref", "fileName", "file_name"),
    )
    original_name: Optional[str] = None
    declared_mime_type: Optional[str] = ModelField(
        default=None,
        validation_alias=AliasChoices("declaredMimeType", "declared_mime_type", "mimeType", "mime_type"),
    )
    fields: List[Field] = ModelField(default_factory=list)


class Signer(_Model):
    email: str = ""
    name: str = ""
    signed: bool = False
    signed_at: Optional[datetime] = None
    field_values: Dict[str, Any] = ModelField(default_factory=dict)

    @field_validator("field_values", mode="before")
    @classmethod
    def _values_or_empty(cls, value):
        if value is None:
            return {}
        return {str(k): v for k, v in value.items()}


class Document(_Model):
    id: Optional[str] = None
    title: Optional[str] = None
    original_name: Optional[str] = None
    files: List[SourceFile] = ModelField(default_factory=list)
    # legacy single-file documents keep these on the document itself
    storage_ref: Optional[str] = ModelField(
        default=None,
        validation_alias=AliasChoices("storageRef", "storage_ref", "fileName", "file_name"),
    )
    declared_mime_type: Optional[str] = ModelField(
        default=None,
        validation_alias=AliasChoices("declaredMimeType", "declared_mime_type", "mimeType", "mime_type"),
    )
    fields: List[Field] = ModelField(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return str(value) if value is not None else value

    def source_files(self) -> List[SourceFile]:
        if self.files:
            return list(self.files)
        return [
            SourceFile(
                file_id=self.id,
                storage_ref=self.storage_ref,
                original_name=self.original_name,
                declared_mime_type=self.declared_mime_type,
                fields=self.fields,
            )
        ]

    @property
    def display_title(self) -> Optional[str]:
        return self.title or self.original_name


@dataclass(frozen=True)
class ComposedDocument:
    content: bytes
    filename: str
