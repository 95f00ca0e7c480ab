from __future__ import annotations

import io
import json
import logging
import os
import time

import numpy as np
import soundfile as sf
import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from string_tuner import __version__
from string_tuner.instruments import INSTRUMENTS, parse_instrument
from string_tuner.session import DEFAULT_REFERENCE_PITCH, DEFAULT_TOLERANCE, TuningSession
from string_tuner.spectrum import estimate_recording
from string_tuner.web.schemas import (
    AnalysisResult,
    ErrorEvent,
    InitMessage,
    InstrumentInfo,
    SelectInstrumentMessage,
    SetConfigMessage,
    StatusEvent,
    StopMessage,
    StringInfo,
    TransportPingMessage,
    TransportPongEvent,
)
from string_tuner.web.session import RealtimeSession, SessionManager

logger = logging.getLogger(__name__)

app = FastAPI(title="String Tuner Web", version=__version__)
sessions = SessionManager()


@app.get("/api/health")
async def health() -> dict[str, object]:
    return {
        "status": "ok",
        "version": __version__,
        "activeSessions": sessions.active_count,
    }


@app.get("/api/instruments")
async def instruments(reference_hz: float = Query(440.0, alias="referenceHz", gt=0.0)) -> list[dict[str, object]]:
    # Same clamping as a live session.
    ref = TuningSession(reference_hz=reference_hz).reference_pitch
    items = []
    for key, definition in INSTRUMENTS.items():
        info = InstrumentInfo(
            id=key.name.lower(),
            label=definition.label,
            strings=[
                StringInfo(
                    name=s.name,
                    number=s.number,
                    semitone_offset=s.semitone_offset,
                    target_hz=round(s.target_hz(ref), 2),
                )
                for s in definition.strings
            ],
        )
        items.append(info.model_dump(by_alias=True))
    return items


@app.post("/api/analyze")
async def analyze_recording(
    audio: UploadFile = File(...),
    instrument: str = Form("Guitar"),
    reference_hz: float = Form(DEFAULT_REFERENCE_PITCH),
    tolerance_cents: float = Form(DEFAULT_TOLERANCE),
) -> dict[str, object]:
    payload = await audio.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Audio file is empty")

    try:
        waveform, sample_rate = _decode_audio(payload)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=f"Unable to decode audio: {exc}") from exc

    tuning = TuningSession(
        instrument=parse_instrument(instrument),
        reference_hz=reference_hz,
        tolerance_cents=tolerance_cents,
    )
    hz = estimate_recording(waveform, sample_rate)
    if hz is not None:
        tuning.on_frequency(hz)
    snap = tuning.snapshot()
    logger.info("Analyzed %s: %s Hz", audio.filename or "<upload>", hz)

    note = snap.note
    status = snap.status
    result = AnalysisResult(
        hz=hz,
        note=note.name if note is not None else None,
        octave=note.octave if note is not None else None,
        cents=note.cents if note is not None else None,
        status=status.value if status is not None else None,
        string=snap.string.name if snap.string is not None else None,
        string_number=snap.string.number if snap.string is not None else None,
        recommendation=snap.recommendation,
        reference_hz=snap.config.reference_hz,
        tolerance_cents=snap.config.tolerance_cents,
        instrument=snap.instrument.label,
    )
    return result.model_dump(by_alias=True)


@app.websocket("/ws/tuner")
async def tuner_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    session = sessions.create()
    await websocket.send_json(_status("Connected."))

    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            text = message.get("text")
            binary = message.get("bytes")

            if text is not None:
                for event in _handle_text_message(session, text):
                    await websocket.send_json(event)
            elif binary is not None:
                for event in session.process_audio_bytes(binary):
                    await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        sessions.remove(session.session_id)


def _status(message: str) -> dict[str, object]:
    return StatusEvent(message=message).model_dump(by_alias=True)


def _error(code: str, message: str) -> dict[str, object]:
    return ErrorEvent(code=code, message=message).model_dump(by_alias=True)


def _handle_text_message(session: RealtimeSession, text: str) -> list[dict[str, object]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [_error("invalid_json", "Invalid JSON payload")]

    if not isinstance(payload, dict):
        return [_error("invalid_payload", "Expected JSON object")]

    msg_type = payload.get("type")
    try:
        if msg_type == "init":
            msg = InitMessage.model_validate(payload)
            session.init(
                sample_rate=msg.sample_rate,
                instrument=msg.instrument,
                reference_hz=msg.reference_hz,
                tolerance_cents=msg.tolerance_cents,
            )
            return [_status("Session initialized.")]

        if msg_type == "set_config":
            msg = SetConfigMessage.model_validate(payload)
            update = session.set_config(reference_hz=msg.reference_hz, tolerance_cents=msg.tolerance_cents)
            return [_status("Config updated."), update]

        if msg_type == "select_instrument":
            msg = SelectInstrumentMessage.model_validate(payload)
            return [_status("Instrument selected."), session.select_instrument(msg.instrument)]

        if msg_type == "stop":
            StopMessage.model_validate(payload)
            return [_status("Stopped."), session.stop()]

        if msg_type == "transport_ping":
            msg = TransportPingMessage.model_validate(payload)
            pong = TransportPongEvent(client_ts=msg.client_ts, server_ts=time.time())
            return [pong.model_dump(by_alias=True)]

    except ValidationError as exc:
        return [_error("invalid_message", str(exc))]

    return [_error("unknown_message", f"Unknown type: {msg_type}")]


def _decode_audio(payload: bytes) -> tuple[np.ndarray, int]:
    # WAV, FLAC and OGG via libsndfile; downmixed to mono.
    data, sample_rate = sf.read(io.BytesIO(payload), dtype="float32", always_2d=False)
    audio = np.asarray(data, dtype=np.float32)
    if audio.ndim == 2:
        audio = np.mean(audio, axis=1, dtype=np.float32)
    if audio.size == 0:
        raise ValueError("decoded audio is empty")
    return audio, int(sample_rate)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "string_tuner.web.server:app",
        host=os.environ.get("STRING_TUNER_HOST", "0.0.0.0"),
        port=int(os.environ.get("STRING_TUNER_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
