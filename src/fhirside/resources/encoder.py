"""
fhirside.resources.encoder - NDJSON Artifact Encoder
======================================================

Converts records into newline-delimited JSON, the bulk data output format:
one compact JSON object per line, each line independently parseable.

    encode({"resourceType": "Patient", "id": "1"})
        → '{"resourceType":"Patient","id":"1"}'

    encode_many([p1, p2])
        → '{...p1...}\\n{...p2...}'

``json.dumps`` escapes control characters inside strings, so an encoded
record never contains a raw newline and line boundaries are unambiguous.
The body of a multi-record artifact carries no trailing newline.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

NDJSON_MEDIA_TYPE = "application/ndjson"


class NdjsonEncoder:
    """Pure record → line encoder.

    Raises ``TypeError``/``ValueError`` from ``json.dumps`` for records that
    are not JSON-serializable; the export orchestrator converts those into
    a failed job.
    """

    def __init__(self, ensure_ascii: bool = False) -> None:
        self._ensure_ascii = ensure_ascii

    def encode(self, record: Mapping[str, Any]) -> str:
        return json.dumps(
            record,
            separators=(",", ":"),
            ensure_ascii=self._ensure_ascii,
            allow_nan=False,
        )

    def encode_many(self, records: Iterable[Mapping[str, Any]]) -> str:
        return "\n".join(self.encode(record) for record in records)
