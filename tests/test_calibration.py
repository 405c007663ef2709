import pytest

from calibration import (CalibrationPointSet, CalibrationSession, CalibrationTransform,
                         format_calibration_table, parse_calibration_table, raster_targets,
                         read_calibration_file, write_calibration_file)
from errors import InsufficientCalibrationData, MalformedPersistenceData
from geometry import Coord2D, Coord3D


def test_transform_maps_calibration_points(grid_points):
    physical, virtual = grid_points
    transform = CalibrationTransform.build(CalibrationPointSet(2, 4, physical, virtual))

    for p, v in zip(physical, virtual):
        assert transform.apply(p) == v
    assert transform.apply(Coord3D(25, 25, 0.0)) == Coord2D(150, 50)


def test_transform_extrapolates_outside_hull(grid_points):
    physical, virtual = grid_points
    transform = CalibrationTransform.build(CalibrationPointSet(2, 4, physical, virtual))

    assert transform.apply(Coord3D(100, 100, 0.0)) == Coord2D(900, 800)
    far = transform.apply(Coord3D(10 ** 6, -10 ** 6, 0.0))
    assert isinstance(far.x, int) and isinstance(far.y, int)


def test_duplicate_points_are_insufficient(grid_points):
    _, virtual = grid_points
    physical = [Coord3D(10, 20, 800.0)] * 8
    with pytest.raises(InsufficientCalibrationData):
        CalibrationTransform.build(CalibrationPointSet(2, 4, physical, virtual))


def test_collinear_points_are_insufficient(grid_points):
    _, virtual = grid_points
    physical = [Coord3D(10 * i, 20, 800.0) for i in range(8)]
    with pytest.raises(InsufficientCalibrationData):
        CalibrationTransform.build(CalibrationPointSet(2, 4, physical, virtual))


def test_collinear_targets_are_insufficient(grid_points):
    physical, _ = grid_points
    virtual = [Coord2D(50 * i, 0) for i in range(8)]
    with pytest.raises(InsufficientCalibrationData):
        CalibrationTransform.build(CalibrationPointSet(2, 4, physical, virtual))


def test_empty_point_set_is_insufficient():
    with pytest.raises(InsufficientCalibrationData):
        CalibrationTransform.build(CalibrationPointSet.empty(2, 4))


def test_point_set_size_is_fixed(grid_points):
    physical, virtual = grid_points
    with pytest.raises(ValueError):
        CalibrationPointSet(2, 4, physical[:7], virtual)


def test_persistence_round_trip(tmp_path, grid_points):
    physical, virtual = grid_points
    physical[3] = Coord3D(40, 20, 812.3456789)
    physical[5] = Coord3D(20, 30, 0.1)
    point_set = CalibrationPointSet(2, 4, physical, virtual)
    path = tmp_path / "calibration.vmcal"

    assert write_calibration_file(str(path), point_set)
    assert len(path.read_text().splitlines()) == 8
    assert read_calibration_file(str(path), 2, 4) == point_set


def test_table_format():
    point_set = CalibrationPointSet(1, 1, [Coord3D(12, 34, 567.5)], [Coord2D(8, 9)])
    assert format_calibration_table(point_set) == "12 34 567.5 8 9\n"


def test_missing_file_reads_as_uncalibrated(tmp_path):
    assert read_calibration_file(str(tmp_path / "missing.vmcal"), 2, 4) is None


def test_short_file_reads_as_uncalibrated(tmp_path):
    path = tmp_path / "short.vmcal"
    path.write_text("1 2 3.0 4 5\n6 7 8.0 9 10\n")
    assert read_calibration_file(str(path), 2, 4) is None


def test_malformed_file_reads_as_uncalibrated(tmp_path):
    path = tmp_path / "bad.vmcal"
    path.write_text("1 2 3.0 4 5\n" * 7 + "1 two 3.0 4 5\n")
    assert read_calibration_file(str(path), 2, 4) is None


def test_parse_rejects_wrong_field_count():
    with pytest.raises(MalformedPersistenceData):
        parse_calibration_table(["1 2 3.0 4\n"], 1, 1)


def test_parse_skips_blank_lines_and_ignores_extra_rows():
    lines = ["\n", "1 2 3.5 4 5\n", "\n", "6 7 8.0 9 10\n", "11 12 13.0 14 15\n"]
    point_set = parse_calibration_table(lines, 1, 2)
    assert point_set.physical == [Coord3D(1, 2, 3.5), Coord3D(6, 7, 8.0)]
    assert point_set.virtual == [Coord2D(4, 5), Coord2D(9, 10)]


def test_raster_targets_order():
    targets = raster_targets(2, 4, 800, 600, margin=0.1)
    assert len(targets) == 8
    assert targets[0] == Coord2D(80, 60)
    assert targets[1] == Coord2D(293, 60)
    assert targets[3] == Coord2D(719, 60)
    assert targets[4] == Coord2D(80, 539)
    assert targets[7] == Coord2D(719, 539)


def test_session_completes_after_every_target(grid_points):
    physical, _ = grid_points
    targets = raster_targets(2, 4, 800, 600)
    session = CalibrationSession(2, 4, targets)

    for i, p in enumerate(physical):
        assert not session.is_complete
        assert session.current_target == targets[i]
        assert session.record(p) == i

    assert session.is_complete
    assert session.current_target is None
    snapshot = session.snapshot()
    assert snapshot.physical == physical
    assert snapshot.virtual == targets
    with pytest.raises(RuntimeError):
        session.record(physical[0])


def test_completed_session_persists_every_row(tmp_path, grid_points):
    physical, _ = grid_points
    session = CalibrationSession(2, 4, raster_targets(2, 4, 800, 600))
    for p in physical:
        session.record(p)

    path = tmp_path / "calibration.vmcal"
    write_calibration_file(str(path), session.snapshot())
    assert len(path.read_text().splitlines()) == 8


def test_binary_file_reads_as_uncalibrated(tmp_path):
    path = tmp_path / "binary.vmcal"
    path.write_bytes(b"\xff\xfe\x00garbage\n" * 8)
    assert read_calibration_file(str(path), 2, 4) is None


def test_too_few_points_for_a_homography():
    physical = [Coord3D(0, 0, 800.0), Coord3D(10, 0, 800.0), Coord3D(0, 10, 800.0)]
    virtual = [Coord2D(0, 0), Coord2D(100, 0), Coord2D(0, 100)]
    with pytest.raises(InsufficientCalibrationData):
        CalibrationTransform.build(CalibrationPointSet(1, 3, physical, virtual))
