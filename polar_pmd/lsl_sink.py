"""
LabStreamingLayer sink: one pylsl outlet per stream (HeartRate, RRinterval, RawECG, RawACC).

ECG / ACC outlets are opened with chunk_size = samples in the first frame. Later
frames with a different sample count are pushed to the same outlet; chunk_size()
reports the most recent count.
"""

import logging
from typing import Callable, Sequence

from polar_pmd.sinks import StreamKind

logger = logging.getLogger(__name__)

STREAM_TYPE = "PolarH10"

# name, channels, channel format
STREAM_LAYOUT: dict[StreamKind, tuple[str, int, str]] = {
    StreamKind.HR: ("HeartRate", 1, "int16"),
    StreamKind.RRI: ("RRinterval", 1, "float32"),
    StreamKind.ECG: ("RawECG", 1, "int32"),  # microvolts
    StreamKind.ACC: ("RawACC", 3, "int32"),  # x, y, z
}

OutletFactory = Callable[[StreamKind, int], object]


def pylsl_outlet_factory(source_id: str) -> OutletFactory:
    """Factory that opens real pylsl outlets; pylsl is imported on first use."""

    def open_outlet(stream: StreamKind, chunk_size: int):
        import pylsl

        name, channels, fmt = STREAM_LAYOUT[stream]
        info = pylsl.StreamInfo(name, STREAM_TYPE, channels, pylsl.IRREGULAR_RATE, fmt, source_id)
        return pylsl.StreamOutlet(info, chunk_size=chunk_size)

    return open_outlet


class LslSink:
    def __init__(self, source_id: str = "Polar H10", outlet_factory: OutletFactory | None = None):
        self.source_id = source_id
        self._open_outlet = outlet_factory or pylsl_outlet_factory(source_id)
        self._outlets: dict[StreamKind, object] = {}
        self._chunk_sizes: dict[StreamKind, int] = {}

    def chunk_size(self, stream: StreamKind) -> int | None:
        return self._chunk_sizes.get(stream)

    def _outlet(self, stream: StreamKind, chunk_size: int):
        if stream not in self._outlets:
            logger.debug("%s outlet configured with chunk size %d", stream.value, chunk_size)
            self._outlets[stream] = self._open_outlet(stream, chunk_size)
        elif self._chunk_sizes[stream] != chunk_size:
            # chunk_size is only a transmission hint; reopening would drop the stream for consumers
            logger.debug("%s outlet: chunk size %d -> %d", stream.value, self._chunk_sizes[stream], chunk_size)
        self._chunk_sizes[stream] = chunk_size
        return self._outlets[stream]

    def push_sample(self, stream: StreamKind, values: Sequence[float], timestamp: float) -> None:
        # LSL stamps with its own local_clock(); host wall time is not comparable
        self._outlet(stream, 1).push_sample(list(values))

    def push_chunk(self, stream: StreamKind, rows: Sequence[Sequence[int]], timestamp_ns: int) -> None:
        if not rows:
            return
        self._outlet(stream, len(rows)).push_chunk([list(r) for r in rows])

    def close(self) -> None:
        self._outlets.clear()
        self._chunk_sizes.clear()
