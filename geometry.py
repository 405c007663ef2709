import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Coord3D:
    """Point in sensor space: pixel column, pixel row, depth in mm."""
    x: int
    y: int
    z: float

    def __add__(self, other):
        return Coord3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other):
        return Coord3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def distance_xy(self, other):
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Coord2D:
    """Point on the projected screen, in pixels."""
    x: int
    y: int

    def __add__(self, other):
        return Coord2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other):
        return Coord2D(self.x - other.x, self.y - other.y)

    def distance_xy(self, other):
        return math.hypot(self.x - other.x, self.y - other.y)

    def clamp(self, width, height):
        return Coord2D(min(max(self.x, 0), width - 1),
                       min(max(self.y, 0), height - 1))
