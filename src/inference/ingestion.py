"""
Ingestion boundary: decode producer payloads into ticks and enqueue them.

A payload is a JSON object mapping feature id to value, optionally gzip
compressed. Feature ids are the integer positions ``0 .. F-1`` written as
strings (JSON keys) or integers.
"""

import json
import math
import zlib
from datetime import UTC, datetime
from typing import Any, Optional

import numpy as np
import structlog

from .errors import Backpressure, PayloadTooLarge, ValidationError
from .models import Tick
from .queue import BoundedQueue

logger = structlog.get_logger(__name__)

IDENTITY_ENCODINGS = frozenset({"", "identity"})


def gunzip_limited(body: bytes, max_bytes: Optional[int] = None) -> bytes:
    """Decompress a single gzip member, stopping once max_bytes is exceeded

    Raises:
        PayloadTooLarge: If the decompressed body is larger than max_bytes
        ValidationError: If the body is not a complete gzip stream
    """
    decompressor = zlib.decompressobj(wbits=16 + zlib.MAX_WBITS)
    limit = 0 if max_bytes is None else max_bytes + 1
    try:
        data = decompressor.decompress(body, limit)
    except zlib.error as e:
        raise ValidationError(f"Invalid gzip body: {e}") from e

    if max_bytes is not None and (len(data) > max_bytes or decompressor.unconsumed_tail):
        raise PayloadTooLarge(len(data), max_bytes, label="Decompressed payload")
    if not decompressor.eof:
        raise ValidationError("Invalid gzip body: truncated stream")
    if decompressor.unused_data:
        raise ValidationError("Invalid gzip body: trailing data after stream")
    return data


def decode_payload(
    body: bytes, content_encoding: Optional[str] = None, max_decoded_bytes: Optional[int] = None
) -> dict[str, Any]:
    """Decompress and parse a request body into a feature mapping

    Raises:
        PayloadTooLarge: If a compressed body inflates past max_decoded_bytes
        ValidationError: If the body cannot be decoded or is not a JSON object
    """
    encoding = (content_encoding or "").strip().lower()

    if encoding == "gzip":
        body = gunzip_limited(body, max_decoded_bytes)
    elif encoding not in IDENTITY_ENCODINGS:
        raise ValidationError(f"Unsupported content encoding '{content_encoding}'")

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise ValidationError(f"Body is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ValidationError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _feature_index(key: Any, num_features: int) -> int:
    if isinstance(key, bool):
        raise ValidationError(f"Invalid feature id {key!r}")
    if isinstance(key, int):
        index = key
    elif isinstance(key, str) and key.isascii() and key.isdigit():
        # Longer than the widest valid id; also keeps int() under its digit limit
        if len(key) > len(str(num_features - 1)):
            raise ValidationError(
                f"Feature id of {len(key)} digits out of range [0, {num_features})"
            )
        index = int(key)
    else:
        raise ValidationError(f"Invalid feature id {key!r}")

    if not 0 <= index < num_features:
        raise ValidationError(f"Feature id {key!r} out of range [0, {num_features})")
    return index


def build_tick(
    payload: dict[Any, Any], num_features: int, timestamp: Optional[datetime] = None
) -> Tick:
    """Validate a feature mapping and turn it into a Tick

    Raises:
        ValidationError: On a wrong feature count, bad ids, or non-finite or
            non-numeric values
    """
    if len(payload) != num_features:
        raise ValidationError(f"Expected {num_features} features, got {len(payload)}")

    features = np.empty(num_features, dtype=np.float64)
    seen = np.zeros(num_features, dtype=bool)

    for key, value in payload.items():
        index = _feature_index(key, num_features)
        if seen[index]:
            raise ValidationError(f"Duplicate feature id {key!r}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Feature {key!r} has non-numeric value {value!r}")
        try:
            number = float(value)
        except OverflowError as e:
            raise ValidationError(f"Feature {key!r} value out of range") from e
        if not math.isfinite(number):
            raise ValidationError(f"Feature {key!r} has non-finite value {value!r}")
        seen[index] = True
        features[index] = number

    return Tick(timestamp=timestamp or datetime.now(UTC), features=features)


class IngestionGateway:
    """Validates producer payloads and hands accepted ticks to the queue"""

    def __init__(
        self,
        queue: BoundedQueue,
        num_features: int,
        max_payload_bytes: int,
        max_decoded_bytes: Optional[int] = None,
    ):
        self.queue = queue
        self.num_features = num_features
        self.max_payload_bytes = max_payload_bytes
        self.max_decoded_bytes = max_decoded_bytes

        self.stats = {
            "accepted": 0,
            "rejected_invalid": 0,
            "rejected_backpressure": 0,
        }

    def submit(
        self,
        body: bytes,
        content_encoding: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Tick:
        """Validate and enqueue one tick

        Raises:
            ValidationError: Payload rejected before any enqueue attempt
            Backpressure: Queue is full
            QueueClosed: Pipeline is shutting down
        """
        try:
            if len(body) > self.max_payload_bytes:
                raise PayloadTooLarge(len(body), self.max_payload_bytes)
            payload = decode_payload(body, content_encoding, self.max_decoded_bytes)
            tick = build_tick(payload, self.num_features, timestamp)
        except ValidationError as e:
            self.stats["rejected_invalid"] += 1
            logger.warning("Rejected invalid tick", error=str(e), body_bytes=len(body))
            raise

        try:
            self.queue.enqueue(tick)
        except Backpressure:
            self.stats["rejected_backpressure"] += 1
            logger.warning("Queue full, rejecting tick", queue_capacity=self.queue.capacity)
            raise

        self.stats["accepted"] += 1
        return tick
