"""
Sample sinks: where decoded records go after a notification is parsed.

The decoders never own an output channel. Callers pass a sink to publish(),
which turns one record into pushes on the HR / RRi / ECG / ACC streams.
Sinks that buffer per chunk (LSL) size themselves from len(rows) of each push.
"""

import json
import sys
import time
from enum import Enum
from typing import Protocol, Sequence, TextIO

from polar_pmd.models import AccFrame, EcgFrame, HeartRateSample


class StreamKind(Enum):
    HR = "HR"
    RRI = "RRi"
    ECG = "ECG"
    ACC = "ACC"


class SampleSink(Protocol):
    def push_sample(self, stream: StreamKind, values: Sequence[float], timestamp: float) -> None:
        """One sample (one value per channel) at host time timestamp (s)."""

    def push_chunk(self, stream: StreamKind, rows: Sequence[Sequence[int]], timestamp_ns: int) -> None:
        """All samples of one frame; timestamp_ns is the device time of the last sample."""

    def close(self) -> None:
        ...


def publish(record, sink: SampleSink, received_at: float | None = None) -> bool:
    """
    Push record to sink. Returns False for records that have no stream
    (battery level, control point replies).
    """
    ts = time.time() if received_at is None else received_at
    if isinstance(record, HeartRateSample):
        sink.push_sample(StreamKind.HR, [record.heart_rate_bpm], ts)
        for rr_ms in record.rr_intervals_ms:
            sink.push_sample(StreamKind.RRI, [rr_ms], ts)
        return True
    if isinstance(record, EcgFrame):
        sink.push_chunk(StreamKind.ECG, [[uv] for uv in record.samples_microvolts], record.timestamp_ns)
        return True
    if isinstance(record, AccFrame):
        sink.push_chunk(StreamKind.ACC, [list(s) for s in record.samples], record.timestamp_ns)
        return True
    return False


class JsonLinesSink:
    """One JSON object per push, e.g. {"stream": "HR", "values": [72], "ts": ...}."""

    def __init__(self, out: TextIO | None = None, rr_decimals: int = 2):
        self._out = out if out is not None else sys.stdout
        self.rr_decimals = rr_decimals

    def _emit(self, obj: dict) -> None:
        """Write one line; exit cleanly if downstream closed the pipe."""
        try:
            print(json.dumps(obj), file=self._out, flush=True)
        except BrokenPipeError:
            sys.exit(0)

    def push_sample(self, stream: StreamKind, values: Sequence[float], timestamp: float) -> None:
        if stream == StreamKind.RRI:
            values = [round(v, self.rr_decimals) for v in values]
        self._emit({"stream": stream.value, "values": list(values), "ts": timestamp})

    def push_chunk(self, stream: StreamKind, rows: Sequence[Sequence[int]], timestamp_ns: int) -> None:
        self._emit({"stream": stream.value, "device_ts_ns": timestamp_ns, "samples": [list(r) for r in rows]})

    def close(self) -> None:
        try:
            self._out.flush()
        except BrokenPipeError:
            pass
