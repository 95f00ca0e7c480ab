from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from string_tuner.instruments import Instrument
from string_tuner.session import DEFAULT_REFERENCE_PITCH, DEFAULT_TOLERANCE


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# Reference pitch and tolerance are clamped by the session, so only obviously
# broken values are rejected here.
class InitMessage(_Model):
    type: Literal["init"]
    sample_rate: int = Field(alias="sampleRate", ge=8_000, le=192_000)
    instrument: str = Field(default=Instrument.GUITAR.value)
    reference_hz: float = Field(alias="referenceHz", default=DEFAULT_REFERENCE_PITCH, gt=0.0)
    tolerance_cents: float = Field(alias="toleranceCents", default=DEFAULT_TOLERANCE)


class SetConfigMessage(_Model):
    type: Literal["set_config"]
    reference_hz: float | None = Field(alias="referenceHz", default=None, gt=0.0)
    tolerance_cents: float | None = Field(alias="toleranceCents", default=None)


class SelectInstrumentMessage(_Model):
    type: Literal["select_instrument"]
    instrument: str


class StopMessage(_Model):
    type: Literal["stop"]


class TransportPingMessage(_Model):
    type: Literal["transport_ping"]
    client_ts: float = Field(alias="clientTs")


class StatusEvent(_Model):
    type: Literal["status"] = "status"
    message: str


class ErrorEvent(_Model):
    type: Literal["error"] = "error"
    code: str
    message: str


class TunerUpdateEvent(_Model):
    type: Literal["tuner_update"] = "tuner_update"
    t: float
    hz: float | None
    note: str | None
    octave: int | None
    cents: float | None
    note_hz: float | None = Field(alias="noteHz")
    status: str | None
    string: str | None
    string_number: int | None = Field(alias="stringNumber")
    string_hz: float | None = Field(alias="stringHz")
    recommendation: str | None
    reference_hz: float = Field(alias="referenceHz")
    tolerance_cents: float = Field(alias="toleranceCents")
    instrument: str


class TransportPongEvent(_Model):
    type: Literal["transport_pong"] = "transport_pong"
    client_ts: float = Field(alias="clientTs")
    server_ts: float = Field(alias="serverTs")


class StringInfo(_Model):
    name: str
    number: int
    semitone_offset: int = Field(alias="semitoneOffset")
    target_hz: float = Field(alias="targetHz")


class InstrumentInfo(_Model):
    id: str
    label: str
    strings: list[StringInfo]


class AnalysisResult(_Model):
    hz: float | None
    note: str | None = None
    octave: int | None = None
    cents: float | None = None
    status: str | None = None
    string: str | None = None
    string_number: int | None = Field(alias="stringNumber", default=None)
    recommendation: str | None = None
    reference_hz: float = Field(alias="referenceHz")
    tolerance_cents: float = Field(alias="toleranceCents")
    instrument: str
