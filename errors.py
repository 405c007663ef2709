class VirtualMonitorError(Exception):
    pass


class SensorError(VirtualMonitorError):
    """The depth sensor could not be opened or stopped delivering frames."""


class InsufficientCalibrationData(VirtualMonitorError):
    """Too few, duplicated or degenerate calibration points to fit a transform."""


class MalformedPersistenceData(VirtualMonitorError):
    """The calibration file is short or holds fields that do not parse."""


class InteractionOwnershipError(VirtualMonitorError):
    """An interaction was released twice or to a detector that did not issue it."""
