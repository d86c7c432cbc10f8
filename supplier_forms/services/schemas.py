"""Structured output contracts for the text-generation service."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Envelope(BaseModel):
    """Object wrapper around a list of items.

    Models sometimes answer with the bare array instead of the wrapping
    object; such answers are accepted as if they had been wrapped.
    """
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, data):
        if isinstance(data, list):
            return {"items": data}
        return data


class _Item(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ExtractedField(_Item):
    field_name: str = Field(alias="fieldName", min_length=1)
    cell_location: str = Field(alias="cellLocation", min_length=1)


class FieldExtractionResponse(_Envelope):
    items: List[ExtractedField]


class FieldMatch(_Item):
    form_field: str = Field(alias="formField")
    sheet_value: Optional[str] = Field(alias="sheetValue", default="")


class FieldMatchResponse(_Envelope):
    items: List[FieldMatch]


class CellCorrection(_Item):
    target_cell: str = Field(alias="targetCell", min_length=1)
    value: str


class CorrectionResponse(_Envelope):
    items: List[CellCorrection]
