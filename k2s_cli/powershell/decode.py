# /*
# Copyright 2026 The K2s Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Marker-line codec for structured script output.

A script emits its result as a single stdout line::

    #pm#<reserved>#<message type>#<base64(gzip(json))>

Every other stdout line is plain progress output.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from dataclasses import dataclass
from typing import Any

from k2s_cli.constants import MESSAGE_FIELD_COUNT, MESSAGE_FIELD_SEPARATOR, MESSAGE_MARKER
from k2s_cli.errors import MalformedMessageError, MessageDecodeError


@dataclass(frozen=True)
class StructuredMessage:
    """A decoded payload and the message type it was tagged with."""

    message_type: str
    data: bytes


def is_encoded_message(line: str) -> bool:
    return line.startswith(MESSAGE_MARKER)


def decode_message(line: str) -> StructuredMessage:
    """Decode one marker line.

    Raises:
        MalformedMessageError: If the line does not have exactly four fields.
        MessageDecodeError: If the payload is not valid base64 or gzip data.
    """
    parts = line.split(MESSAGE_FIELD_SEPARATOR)
    if len(parts) != MESSAGE_FIELD_COUNT:
        raise MalformedMessageError(f"message malformed, found {len(parts)} parts")

    message_type, payload = parts[2], parts[3]
    try:
        compressed = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as err:
        raise MessageDecodeError(f"could not decode base64 payload of '{message_type}' message: {err}") from err

    try:
        data = gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as err:
        raise MessageDecodeError(f"could not decompress payload of '{message_type}' message: {err}") from err

    return StructuredMessage(message_type=message_type, data=data)


def encode_message(message_type: str, payload: Any) -> str:
    """Build a marker line for ``payload``, the producer side of :func:`decode_message`.

    ``payload`` may be raw bytes, a string or any JSON-serializable value.
    """
    if isinstance(payload, bytes):
        data = payload
    elif isinstance(payload, str):
        data = payload.encode("utf-8")
    else:
        data = json.dumps(payload).encode("utf-8")
    encoded = base64.b64encode(gzip.compress(data)).decode("ascii")
    return f"{MESSAGE_MARKER}{message_type}{MESSAGE_FIELD_SEPARATOR}{encoded}"
