import main
from errors import SensorError


class SnapshotSource:
    fail_open = False
    saved = True

    def __init__(self, background_frames):
        self.background_frames = background_frames
        self.closed = False
        self.path = None
        SnapshotSource.last = self

    def open(self):
        if self.fail_open:
            raise SensorError("no device")

    def save_snapshot(self, path):
        self.path = path
        return self.saved

    def close(self):
        self.closed = True


def test_parse_args_defaults():
    args = main.parse_args([])
    assert args.calibration_file == main.config.CALIBRATION_DATA_FILENAME
    assert args.snapshot is None
    assert not args.debug


def test_parse_args_flags():
    args = main.parse_args(["--calibration-file", "wall.vmcal", "--snapshot", "d.png", "--debug"])
    assert args.calibration_file == "wall.vmcal"
    assert args.snapshot == "d.png"
    assert args.debug


def test_snapshot_mode(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "AstraFrameSource", SnapshotSource)
    path = str(tmp_path / "depth.png")

    assert main.main(["--snapshot", path]) == 0
    assert SnapshotSource.last.path == path
    assert SnapshotSource.last.background_frames == 1
    assert SnapshotSource.last.closed


def test_snapshot_reports_failures(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "AstraFrameSource", SnapshotSource)

    monkeypatch.setattr(SnapshotSource, "saved", False)
    assert main.take_snapshot(str(tmp_path / "a.png")) == 1

    monkeypatch.setattr(SnapshotSource, "fail_open", True)
    assert main.take_snapshot(str(tmp_path / "b.png")) == 1
    assert SnapshotSource.last.closed
