"""
Decoder turning raw visualization messages into typed events
"""

import json
from typing import Any, Union

from pydantic import ValidationError

from errors.exceptions import MalformedFieldError, UnrecognizedEventError
from models.events import EVENT_MODELS, Event


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def decode(raw: Union[str, bytes, dict, Any]) -> Event:
    """
    Classify one message and validate its body.

    ``raw`` may be JSON text/bytes or an already parsed object. Raises
    UnrecognizedEventError when the message is not a single known
    discriminator, MalformedFieldError when the body does not validate.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnrecognizedEventError(f"Message is not UTF-8: {e}")

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise UnrecognizedEventError(f"Message is not valid JSON: {e}")
        except RecursionError:
            raise UnrecognizedEventError("Message is nested too deeply to decode")

    if not isinstance(raw, dict):
        raise UnrecognizedEventError(f"Message must be an object, got {type(raw).__name__}")

    if len(raw) != 1:
        raise UnrecognizedEventError(
            f"Message must carry exactly one event key, got {sorted(map(str, raw.keys()))}"
        )

    kind, body = next(iter(raw.items()))
    model = EVENT_MODELS.get(kind)
    if model is None:
        raise UnrecognizedEventError(f"Unknown event kind: {kind}")

    if not isinstance(body, dict):
        raise MalformedFieldError(kind, f"body must be an object, got {type(body).__name__}")

    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise MalformedFieldError(kind, _describe(e))
