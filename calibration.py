"""
Calibration data for the virtual monitor.

A calibration is a fixed ROWS x COLS table of physical/virtual pairs: the point
the sensor saw when the user tapped a target, and where that target was drawn
on the projected screen. The table is fitted into a homography that maps any
sensor pixel onto the screen, and is kept on disk as a plain text table.
"""
import logging
import math
import threading

import cv2
import numpy as np
from shapely.geometry import MultiPoint

from errors import InsufficientCalibrationData, MalformedPersistenceData
from geometry import Coord2D, Coord3D

logger = logging.getLogger(__name__)

# Smallest projective denominator used when extrapolating far outside the hull
_MIN_W = 1e-9


class CalibrationPointSet:
    def __init__(self, rows, cols, physical, virtual):
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Calibration grid must be positive, got {rows}x{cols}")
        if len(physical) != rows * cols or len(virtual) != rows * cols:
            raise ValueError(
                f"Expected {rows * cols} calibration pairs, got "
                f"{len(physical)} physical and {len(virtual)} virtual")
        self.rows = rows
        self.cols = cols
        self.physical = list(physical)
        self.virtual = list(virtual)

    @classmethod
    def empty(cls, rows, cols):
        count = rows * cols
        return cls(rows, cols,
                   [Coord3D(0, 0, 0.0) for _ in range(count)],
                   [Coord2D(0, 0) for _ in range(count)])

    def __len__(self):
        return self.rows * self.cols

    def __eq__(self, other):
        if not isinstance(other, CalibrationPointSet):
            return NotImplemented
        return (self.rows, self.cols, self.physical, self.virtual) == \
               (other.rows, other.cols, other.physical, other.virtual)

    def set(self, index, physical, virtual):
        self.physical[index] = physical
        self.virtual[index] = virtual

    def copy(self):
        return CalibrationPointSet(self.rows, self.cols, self.physical, self.virtual)


def _hull_area(points):
    return MultiPoint(points).convex_hull.area


class CalibrationTransform:
    """Homography from sensor pixels onto the projected screen."""

    def __init__(self, matrix):
        self.matrix = np.asarray(matrix, dtype=np.float64)

    @classmethod
    def build(cls, point_set):
        required = len(point_set)
        if required < 4:
            raise InsufficientCalibrationData(
                f"A homography needs at least 4 calibration points, got {required}")
        src = [(p.x, p.y) for p in point_set.physical]
        dst = [(v.x, v.y) for v in point_set.virtual]

        if len(set(src)) < required:
            raise InsufficientCalibrationData(
                f"Need {required} distinct physical points, got {len(set(src))}")
        if _hull_area(src) <= 0:
            raise InsufficientCalibrationData("Physical calibration points are collinear")
        if _hull_area(dst) <= 0:
            raise InsufficientCalibrationData("Virtual calibration targets are collinear")

        # Method 0: least squares over every pair, no outlier rejection
        try:
            matrix, _ = cv2.findHomography(np.array(src, dtype=np.float64),
                                           np.array(dst, dtype=np.float64), 0)
        except cv2.error as e:
            raise InsufficientCalibrationData(f"Homography fit failed: {e}") from e
        if matrix is None or not np.all(np.isfinite(matrix)):
            raise InsufficientCalibrationData("Homography fit failed")
        return cls(matrix)

    def apply(self, physical):
        x, y, w = self.matrix @ np.array([physical.x, physical.y, 1.0])
        if abs(w) < _MIN_W:
            w = math.copysign(_MIN_W, w)
        vx, vy = x / w, y / w
        # Keep degenerate extrapolation finite so rounding cannot raise
        limit = float(np.iinfo(np.int32).max)
        vx = min(max(vx, -limit), limit) if math.isfinite(vx) else 0.0
        vy = min(max(vy, -limit), limit) if math.isfinite(vy) else 0.0
        return Coord2D(int(round(vx)), int(round(vy)))


# =======================
# Persistence
# =======================

def parse_calibration_table(lines, rows, cols):
    physical = []
    virtual = []
    for line_no, line in enumerate(lines, start=1):
        if len(physical) == rows * cols:
            break
        fields = line.split()
        if not fields:
            continue
        if len(fields) != 5:
            raise MalformedPersistenceData(
                f"Line {line_no}: expected 5 fields, got {len(fields)}")
        try:
            px, py = int(fields[0]), int(fields[1])
            pz = float(fields[2])
            vx, vy = int(fields[3]), int(fields[4])
        except ValueError as e:
            raise MalformedPersistenceData(f"Line {line_no}: {e}") from e
        physical.append(Coord3D(px, py, pz))
        virtual.append(Coord2D(vx, vy))

    if len(physical) < rows * cols:
        raise MalformedPersistenceData(
            f"Expected {rows * cols} calibration rows, read {len(physical)}")
    return CalibrationPointSet(rows, cols, physical, virtual)


def format_calibration_table(point_set):
    return "".join(
        f"{p.x} {p.y} {float(p.z)!r} {v.x} {v.y}\n"
        for p, v in zip(point_set.physical, point_set.virtual))


def read_calibration_file(path, rows, cols):
    try:
        with open(path, "r") as f:
            return parse_calibration_table(f, rows, cols)
    except FileNotFoundError:
        logger.warning("No calibration data at %s, running uncalibrated", path)
    except OSError as e:
        logger.warning("Could not read calibration data from %s: %s", path, e)
    except UnicodeDecodeError as e:
        logger.warning("Calibration data in %s is not text: %s", path, e)
    except MalformedPersistenceData as e:
        logger.warning("Ignoring malformed calibration data in %s: %s", path, e)
    return None


def write_calibration_file(path, point_set):
    try:
        with open(path, "w") as f:
            f.write(format_calibration_table(point_set))
    except OSError as e:
        logger.error("Could not write calibration data to %s: %s", path, e)
        return False
    logger.info("Calibration data written to %s", path)
    return True


# =======================
# Calibration Session
# =======================

def raster_targets(rows, cols, width, height, margin=0.1):
    def spread(count, extent):
        lo = extent * margin
        hi = extent * (1 - margin)
        if count == 1:
            return [int(round((lo + hi) / 2))]
        step = (hi - lo) / (count - 1)
        return [int(round(lo + i * step)) for i in range(count)]

    xs = spread(cols, width - 1)
    ys = spread(rows, height - 1)
    return [Coord2D(x, y) for y in ys for x in xs]


class CalibrationSession:
    """Visits every target once, in raster order, pairing it with a tap."""

    def __init__(self, rows, cols, targets):
        targets = list(targets)
        if len(targets) != rows * cols:
            raise ValueError(f"Expected {rows * cols} targets, got {len(targets)}")
        self.targets = targets
        self.point_set = CalibrationPointSet.empty(rows, cols)
        self.index = 0
        self._lock = threading.Lock()

    @property
    def is_complete(self):
        return self.index >= len(self.targets)

    @property
    def current_target(self):
        if self.is_complete:
            return None
        return self.targets[self.index]

    def record(self, physical):
        with self._lock:
            if self.is_complete:
                raise RuntimeError("Calibration session already complete")
            index = self.index
            self.point_set.set(index, physical, self.targets[index])
            self.index += 1
        logger.info("Calibration point %d/%d: physical (%d, %d, %.1f) -> virtual (%d, %d)",
                    index + 1, len(self.targets), physical.x, physical.y, physical.z,
                    self.targets[index].x, self.targets[index].y)
        return index

    def snapshot(self):
        with self._lock:
            return self.point_set.copy()
