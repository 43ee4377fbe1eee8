"""
Wire event models for both sides of the relay.

Telephony side: Media Streams JSON frames (``start``, ``media``, ...) keyed
by the ``event`` field. AI side: OpenAI Realtime API events keyed by the
``type`` field.

Inbound frames are decoded into one variant per known tag, or into an
explicit ``Unrecognized*`` variant for tags the relay does not translate.
Outbound events are pydantic models encoded with ``encode_event()``.
"""

import json
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedFrameError, SerializationError


# ============================================================================
# Event Tags
# ============================================================================


class TelephonyEventType(str, Enum):
    """Media Streams event names handled by the relay."""
    START = "start"
    MEDIA = "media"


class RealtimeEventType(str, Enum):
    """OpenAI Realtime API event types handled by the relay."""
    # Client events (relay -> AI)
    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    RESPONSE_CANCEL = "response.cancel"

    # Server events (AI -> relay)
    RESPONSE_CREATE = "response.create"
    RESPONSE_CREATED = "response.created"
    RESPONSE_DONE = "response.done"
    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    ERROR = "error"


# ============================================================================
# Telephony Inbound
# ============================================================================


class StreamStart(BaseModel):
    """Body of a ``start`` frame."""
    model_config = ConfigDict(populate_by_name=True)

    stream_sid: str = Field(validation_alias=AliasChoices("streamSid", "streamId"))


class MediaChunk(BaseModel):
    """Body of a ``media`` frame, in either direction."""
    payload: str


class TelephonyStart(BaseModel):
    event: Literal["start"] = "start"
    start: StreamStart

    @property
    def stream_sid(self) -> str:
        return self.start.stream_sid


class TelephonyMedia(BaseModel):
    event: Literal["media"] = "media"
    media: MediaChunk

    @property
    def payload(self) -> str:
        return self.media.payload


class UnrecognizedTelephonyEvent(BaseModel):
    """Any telephony frame whose ``event`` the relay does not act on."""
    event: str
    data: dict = Field(default_factory=dict)


TelephonyEvent = Union[TelephonyStart, TelephonyMedia, UnrecognizedTelephonyEvent]


# ============================================================================
# AI Inbound
# ============================================================================


class ResponseStarted(BaseModel):
    # The live endpoint announces generation with "response.created"
    type: Literal["response.create", "response.created"] = "response.create"


class ResponseDone(BaseModel):
    type: Literal["response.done"] = "response.done"


class AudioDelta(BaseModel):
    type: Literal["response.audio.delta"] = "response.audio.delta"
    delta: str = ""


class RealtimeError(BaseModel):
    type: Literal["error"] = "error"
    error: dict = Field(default_factory=dict)

    @property
    def message(self) -> str:
        return self.error.get("message", str(self.error))


class UnrecognizedRealtimeEvent(BaseModel):
    """Any AI event whose ``type`` the relay does not translate."""
    type: str
    data: dict = Field(default_factory=dict)


RealtimeEvent = Union[
    ResponseStarted, ResponseDone, AudioDelta, RealtimeError, UnrecognizedRealtimeEvent
]


# ============================================================================
# Outbound
# ============================================================================


class TurnDetection(BaseModel):
    type: str = "server_vad"


class SessionParameters(BaseModel):
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)
    input_audio_format: str
    output_audio_format: str
    voice: str
    instructions: str
    modalities: list[str] = Field(default_factory=lambda: ["text", "audio"])
    temperature: float = 0.8


class SessionUpdate(BaseModel):
    type: Literal["session.update"] = "session.update"
    session: SessionParameters


class InputAudioAppend(BaseModel):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str


class ResponseCancel(BaseModel):
    type: Literal["response.cancel"] = "response.cancel"


class TelephonyMediaOut(BaseModel):
    """Audio frame sent back to the telephony side."""
    event: Literal["media"] = "media"
    stream_sid: str = Field(default="", serialization_alias="streamSid")
    media: MediaChunk

    @classmethod
    def for_stream(cls, stream_sid: Optional[str], payload: str) -> "TelephonyMediaOut":
        return cls(stream_sid=stream_sid or "", media=MediaChunk(payload=payload))


# ============================================================================
# Decoding / Encoding
# ============================================================================


_TELEPHONY_VARIANTS: dict[str, type[BaseModel]] = {
    TelephonyEventType.START.value: TelephonyStart,
    TelephonyEventType.MEDIA.value: TelephonyMedia,
}

_REALTIME_VARIANTS: dict[str, type[BaseModel]] = {
    RealtimeEventType.RESPONSE_CREATE.value: ResponseStarted,
    RealtimeEventType.RESPONSE_CREATED.value: ResponseStarted,
    RealtimeEventType.RESPONSE_DONE.value: ResponseDone,
    RealtimeEventType.RESPONSE_AUDIO_DELTA.value: AudioDelta,
    RealtimeEventType.ERROR.value: RealtimeError,
}


def _load_object(raw: Union[str, bytes]) -> dict:
    try:
        data = json.loads(raw)
    # ValueError covers JSONDecodeError, UnicodeDecodeError and the int digit limit
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedFrameError(f"Frame is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedFrameError("Frame is not a JSON object")
    return data


def _validate(model: type[BaseModel], tag: str, data: dict) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedFrameError(
            f"Invalid '{tag}' frame ({e.error_count()} error(s)): {e.errors()[0]['msg']}"
        ) from e


def parse_telephony_event(raw: Union[str, bytes]) -> TelephonyEvent:
    """
    Decode one telephony frame.

    Raises:
        MalformedFrameError: if the frame is not a JSON object, has no string
            ``event`` field, or a known event is missing its expected fields.
    """
    data = _load_object(raw)
    tag = data.get("event")
    if not isinstance(tag, str):
        raise MalformedFrameError("Frame has no 'event' name")

    model = _TELEPHONY_VARIANTS.get(tag)
    if model is None:
        return UnrecognizedTelephonyEvent(event=tag, data=data)
    return _validate(model, tag, data)


def parse_realtime_event(raw: Union[str, bytes]) -> RealtimeEvent:
    """
    Decode one AI endpoint event.

    Raises:
        MalformedFrameError: if the frame is not a JSON object, has no string
            ``type`` field, or a known type is missing its expected fields.
    """
    data = _load_object(raw)
    tag = data.get("type")
    if not isinstance(tag, str):
        raise MalformedFrameError("Event has no 'type'")

    model = _REALTIME_VARIANTS.get(tag)
    if model is None:
        return UnrecognizedRealtimeEvent(type=tag, data=data)
    return _validate(model, tag, data)


def encode_event(event: BaseModel) -> str:
    """Serialize an outbound event to its JSON wire form."""
    try:
        return event.model_dump_json(by_alias=True)
    except (ValueError, TypeError) as e:
        raise SerializationError(f"Could not encode {type(event).__name__}: {e}") from e
