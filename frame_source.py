import math
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from errors import SensorError
from geometry import Coord3D


@dataclass(frozen=True)
class PhysicalSample:
    """One poll of the sensor: where the fingertip is and how far above the surface."""
    location: Optional[Coord3D]
    contact_distance: float = math.inf


NO_HAND = PhysicalSample(None, math.inf)


class FrameSource(Protocol):
    def open(self) -> None: ...

    def read_sample(self) -> Optional[PhysicalSample]: ...

    def close(self) -> None: ...


class ReplayFrameSource:
    """Plays back a fixed list of samples, then reports end of stream."""

    def __init__(self, samples, frame_period=0.0, fail_open=False, fail_after=None):
        self.samples = list(samples)
        self.frame_period = frame_period
        self.fail_open = fail_open
        self.fail_after = fail_after
        self.is_open = False
        self.open_count = 0
        self._position = 0

    def open(self):
        if self.fail_open:
            raise SensorError("Replay source configured to fail on open")
        self.is_open = True
        self.open_count += 1
        self._position = 0

    def read_sample(self):
        if not self.is_open:
            raise SensorError("Replay source is not open")
        if self.fail_after is not None and self._position >= self.fail_after:
            raise SensorError(f"Replay source failed after {self.fail_after} samples")
        if self._position >= len(self.samples):
            return None
        if self.frame_period:
            time.sleep(self.frame_period)
        sample = self.samples[self._position]
        self._position += 1
        return sample

    def close(self):
        self.is_open = False
