"""
Payload schemas, one per implemented module type.

validate_payload() is pure: it never touches the database. It returns the
normalized document that gets stored (unknown keys dropped, dates as ISO
strings) or raises InvalidPayload naming the first offending field.
"""
from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
)

from app.rotinas.errors import InvalidPayload
from app.rotinas.modules.models import ModuleType


def _iso_date(value: Any) -> dt.date:
    # Only "YYYY-MM-DD" text; timestamps and other numbers are rejected.
    if not isinstance(value, str):
        raise ValueError("must be a date string (YYYY-MM-DD)")
    return dt.date.fromisoformat(value.strip())


RequiredText = Annotated[StrictStr, Field(min_length=1)]
# Integers stay integers in the stored document. Floats must be finite.
NonNegative = Union[
    Annotated[StrictInt, Field(ge=0)],
    Annotated[StrictFloat, Field(ge=0, allow_inf_nan=False)],
]
IsoDate = Annotated[dt.date, BeforeValidator(_iso_date)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class FuelPayload(_Payload):
    """Fuel log entry."""

    odometer: NonNegative
    liters: NonNegative
    driver: RequiredText
    vehicle: RequiredText
    station: RequiredText
    date: IsoDate


class ChecklistPayload(_Payload):
    """Vehicle inspection checklist."""

    vehicle: RequiredText
    brakes: StrictBool
    lights: StrictBool
    tires: StrictBool
    fuel: StrictBool
    oil: StrictBool
    water: StrictBool
    equipment: StrictBool
    cleanliness: StrictBool
    notes: Optional[StrictStr] = None
    date: IsoDate


class PassAlongPayload(_Payload):
    """Shift hand-off."""

    outgoing_shift: RequiredText
    incoming_shift: RequiredText
    outgoing_responsible: RequiredText
    incoming_responsible: RequiredText
    incidents: StrictStr
    pending_items: StrictStr
    notes: StrictStr
    date: IsoDate


PAYLOAD_SCHEMAS: dict[ModuleType, type[_Payload]] = {
    ModuleType.FUEL: FuelPayload,
    ModuleType.CHECKLIST: ChecklistPayload,
    ModuleType.PASS_ALONG: PassAlongPayload,
}


def parse_module_type(raw: Any) -> ModuleType:
    try:
        return ModuleType(raw)
    except ValueError:
        raise InvalidPayload(f"Unknown module type: {raw!r}", field="type") from None


def validate_payload(module_type: ModuleType | str, payload: Any) -> dict[str, Any]:
    mtype = parse_module_type(module_type)
    schema = PAYLOAD_SCHEMAS.get(mtype)
    if schema is None:
        raise InvalidPayload(f"Module type {mtype.value} is not supported yet.", field="type")
    if not isinstance(payload, dict):
        raise InvalidPayload("Payload must be a JSON object.", field="payload")

    try:
        doc = schema.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ()
        field = str(loc[0]) if loc else "payload"
        raise InvalidPayload(f"{field}: {first.get('msg', 'invalid value')}", field=field) from e
    return doc.model_dump(mode="json")
