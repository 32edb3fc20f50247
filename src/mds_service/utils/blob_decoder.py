"""
Decoder for the compact JWS carrying the metadata BLOB.

Nothing here establishes trust: the payload is parsed so the pipeline can
inspect the sequence number and entries, and the signature is checked later
by the feed verifier.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from mds_service.core.exceptions import MalformedPayloadError
from mds_service.models.mds_models import FeedPayload, IngestionOutcome

logger = logging.getLogger(__name__)

PAYLOAD_PARSE_ERROR = "payload parse error"


def b64url_decode(segment: str) -> bytes:
    """Decode unpadded base64url, rejecting characters outside the alphabet."""
    padding = "=" * ((4 - len(segment) % 4) % 4)
    return base64.b64decode(segment + padding, altchars=b"-_", validate=True)


@dataclass(frozen=True, slots=True)
class DecodedFeed:
    """A metadata BLOB split into its segments with the payload parsed."""

    token: str
    encoded_header: str
    encoded_payload: str
    payload: FeedPayload

    @property
    def entry_count(self) -> int:
        return len(self.payload.entries)


def _malformed(detail: str) -> MalformedPayloadError:
    logger.warning("Metadata BLOB rejected: %s", detail)
    return MalformedPayloadError(
        f"{PAYLOAD_PARSE_ERROR}: {detail}", IngestionOutcome.failure(PAYLOAD_PARSE_ERROR)
    )


def decode_feed_token(token: str) -> DecodedFeed:
    """
    Split a compact JWS and parse its payload segment.

    Args:
        token: The ``header.payload.signature`` string as downloaded

    Returns:
        The decoded feed

    Raises:
        MalformedPayloadError: If the token does not have three segments or the
            payload is not base64url encoded JSON matching the BLOB schema
    """
    segments = token.strip().split(".")
    if len(segments) != 3:
        raise _malformed(f"expected 3 token segments, got {len(segments)}")

    encoded_header, encoded_payload, _ = segments
    try:
        raw_payload = b64url_decode(encoded_payload)
    except (binascii.Error, ValueError) as e:
        raise _malformed(f"payload segment is not base64url: {e}") from e

    try:
        payload = FeedPayload.model_validate(json.loads(raw_payload))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError, ValidationError) as e:
        raise _malformed(f"payload does not match the BLOB schema: {e}") from e

    logger.info(
        "Decoded metadata BLOB no=%s with %d entries (next update %s)",
        payload.no,
        len(payload.entries),
        payload.next_update,
    )
    return DecodedFeed(
        token=token.strip(),
        encoded_header=encoded_header,
        encoded_payload=encoded_payload,
        payload=payload,
    )
