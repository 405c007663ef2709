import pytest

from frame_source import NO_HAND, PhysicalSample
from geometry import Coord2D, Coord3D


class RecordingPointer:
    def __init__(self):
        self.calls = []

    def press(self, location):
        self.calls.append(("press", location))

    def move_to(self, location):
        self.calls.append(("move", location))

    def release(self, location):
        self.calls.append(("release", location))


@pytest.fixture
def pointer():
    return RecordingPointer()


@pytest.fixture
def grid_points():
    """2x4 grid where virtual = 10 * (physical - (10, 20))."""
    physical = [Coord3D(10 + 10 * col, 20 + 10 * row, 800.0 + col)
                for row in range(2) for col in range(4)]
    virtual = [Coord2D(100 * col, 100 * row) for row in range(2) for col in range(4)]
    return physical, virtual


@pytest.fixture
def make_samples():
    def make(distances, locations=None):
        if locations is None:
            locations = [Coord3D(i, i, 500.0) for i in range(len(distances))]
        return [PhysicalSample(loc, d) for loc, d in zip(locations, distances)]
    return make


@pytest.fixture
def tap_samples():
    def make(locations, distance=2.0):
        samples = []
        for location in locations:
            samples += [NO_HAND, PhysicalSample(location, distance),
                        PhysicalSample(location, distance), NO_HAND]
        return samples
    return make
