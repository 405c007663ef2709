import logging
from typing import Optional, Protocol

import config
from geometry import Coord2D, Coord3D
from interaction_detector import Interaction, InteractionType

logger = logging.getLogger(__name__)


class PointerSink(Protocol):
    def press(self, location: Coord2D) -> None: ...

    def move_to(self, location: Coord2D) -> None: ...

    def release(self, location: Coord2D) -> None: ...


class InteractionEffect(Protocol):
    def on_start(self, interaction: Interaction) -> None: ...

    def on_move(self, interaction: Interaction) -> None: ...

    def on_end(self, interaction: Interaction, is_tap: bool) -> None: ...


class PointerEffect:
    """Drives the system pointer: START presses, MOVE drags, END releases."""

    def __init__(self, pointer):
        self.pointer = pointer

    def on_start(self, interaction):
        if self._skip(interaction):
            return
        self.pointer.press(interaction.virtual_location)

    def on_move(self, interaction):
        if self._skip(interaction):
            return
        self.pointer.move_to(interaction.virtual_location)

    def on_end(self, interaction, is_tap):
        if self._skip(interaction):
            return
        self.pointer.release(interaction.virtual_location)

    @staticmethod
    def _skip(interaction):
        if interaction.virtual_location is None:
            logger.debug("No virtual location for %s, pointer untouched",
                         interaction.type.value)
            return True
        return False


class CalibrationCaptureEffect:
    """Remembers where the last qualifying tap landed on the sensor."""

    def __init__(self):
        self.captured: Optional[Coord3D] = None

    def on_start(self, interaction):
        self.captured = None

    def on_move(self, interaction):
        pass

    def on_end(self, interaction, is_tap):
        if is_tap:
            self.captured = interaction.physical_location


class InteractionHandler:
    def __init__(self, effect, tap_tolerance=config.TAP_TOLERANCE):
        self.effect = effect
        self.tap_tolerance = tap_tolerance
        self._down_location = None
        self._max_drift = 0.0

    def handle_interaction(self, interaction):
        """Forward one interaction to the effect; True when it completes a tap."""
        if interaction is None:
            return False

        if interaction.type is InteractionType.START:
            self._down_location = interaction.physical_location
            self._max_drift = 0.0
            self.effect.on_start(interaction)
            return False

        if self._down_location is None:
            logger.warning("Ignoring %s without a preceding start", interaction.type.value)
            return False

        drift = interaction.physical_location.distance_xy(self._down_location)
        self._max_drift = max(self._max_drift, drift)

        if interaction.type is InteractionType.MOVE:
            self.effect.on_move(interaction)
            return False

        is_tap = self._max_drift <= self.tap_tolerance
        self._down_location = None
        self.effect.on_end(interaction, is_tap)
        if not is_tap:
            logger.debug("Contact drifted %.1f px, treated as a drag", self._max_drift)
        return is_tap
