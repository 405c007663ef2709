"""
Turns the per-frame contact distance into START / MOVE / END interactions.

The detector is Idle until a sample comes within the touch threshold, then
Contacting until a sample rises above the threshold plus the release
hysteresis. Every interaction handed out must be given back through
free_interaction() exactly once.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import config
from calibration import CalibrationPointSet, CalibrationTransform
from errors import InsufficientCalibrationData, InteractionOwnershipError, SensorError
from geometry import Coord2D, Coord3D

logger = logging.getLogger(__name__)


class InteractionType(Enum):
    START = "start"
    MOVE = "move"
    END = "end"


@dataclass(eq=False)
class Interaction:
    type: InteractionType
    physical_location: Coord3D
    virtual_location: Optional[Coord2D] = None


class InteractionDetector:
    def __init__(self, frame_source,
                 touch_threshold=config.TOUCH_DEPTH_THRESHOLD,
                 release_hysteresis=config.RELEASE_HYSTERESIS,
                 calibration_touch_threshold=config.CALIBRATION_TOUCH_THRESHOLD,
                 move_epsilon=config.MOVE_EPSILON):
        self.frame_source = frame_source
        self.touch_threshold = touch_threshold
        self.release_hysteresis = release_hysteresis
        self.calibration_touch_threshold = calibration_touch_threshold
        self.move_epsilon = move_epsilon

        self.transform = None
        self.screen_size = None  # (height, width)

        self._started = False
        self._exhausted = False
        self._contacting = False
        self._last_location = None
        self._last_emitted = None
        self._outstanding = set()

    @property
    def is_calibrated(self):
        return self.transform is not None

    @property
    def is_contacting(self):
        return self._contacting

    @property
    def outstanding_interactions(self):
        return len(self._outstanding)

    def start(self):
        if self._started:
            return
        self.frame_source.open()
        self._started = True
        self._exhausted = False
        self._contacting = False
        self._last_location = None
        self._last_emitted = None
        logger.info("Interaction detector started (%s)",
                    "calibrated" if self.is_calibrated else "uncalibrated")

    def set_calibration_points(self, rows, cols, physical, virtual):
        if self._contacting:
            raise RuntimeError("Cannot change calibration during an active contact")
        try:
            point_set = CalibrationPointSet(rows, cols, physical, virtual)
            self.transform = CalibrationTransform.build(point_set)
        except (InsufficientCalibrationData, ValueError) as e:
            logger.warning("Calibration unusable, reporting physical coordinates only: %s", e)
            self.transform = None

    def set_screen_virtual(self, height, width):
        self.screen_size = (height, width)

    def detect_interaction(self, is_calibrating=False, cancel=None):
        if not self._started or self._exhausted:
            return None

        if is_calibrating:
            touch = self.calibration_touch_threshold
        else:
            touch = self.touch_threshold
        release = touch + self.release_hysteresis

        while True:
            if cancel is not None and cancel.is_set():
                return None
            try:
                sample = self.frame_source.read_sample()
            except SensorError as e:
                logger.error("Sensor read failed, ending stream: %s", e)
                self._exhausted = True
                return None
            if sample is None:
                logger.info("Frame source exhausted")
                self._exhausted = True
                return None

            if not self._contacting:
                if sample.location is not None and sample.contact_distance <= touch:
                    self._contacting = True
                    self._last_location = sample.location
                    return self._emit(InteractionType.START, sample.location)
                continue

            if sample.location is None or sample.contact_distance > release:
                self._contacting = False
                return self._emit(InteractionType.END, self._last_location)

            self._last_location = sample.location
            if is_calibrating:
                continue
            if self.move_epsilon and \
                    sample.location.distance_xy(self._last_emitted) < self.move_epsilon:
                continue
            return self._emit(InteractionType.MOVE, sample.location)

    def stop(self):
        if not self._started:
            return None
        pending = None
        if self._contacting:
            self._contacting = False
            pending = self._emit(InteractionType.END, self._last_location)
            logger.info("Contact still active on stop, synthesized END")
        self.frame_source.close()
        self._started = False
        if len(self._outstanding) > (1 if pending else 0):
            logger.warning("Detector stopped with %d unreleased interactions",
                           len(self._outstanding))
        return pending

    def free_interaction(self, interaction):
        try:
            self._outstanding.remove(interaction)
        except KeyError:
            raise InteractionOwnershipError(
                f"{interaction!r} was already released or not issued by this detector") from None

    def _virtual(self, physical):
        if self.transform is None:
            return None
        location = self.transform.apply(physical)
        if self.screen_size is not None:
            height, width = self.screen_size
            location = location.clamp(width, height)
        return location

    def _emit(self, kind, physical):
        self._last_emitted = physical
        interaction = Interaction(kind, physical, self._virtual(physical))
        self._outstanding.add(interaction)
        return interaction
