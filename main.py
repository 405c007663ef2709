import argparse
import logging

import cv2

import config
from astra_depth import AstraFrameSource
from errors import SensorError
from logic_handler import MonitorState, VirtualMonitor
from pointer import PyAutoGuiPointer, screen_size

logger = logging.getLogger(__name__)

WINDOW_NAME = "Virtual Monitor"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Turn a projected screen into a touchscreen")
    parser.add_argument("--calibration-file", default=config.CALIBRATION_DATA_FILENAME,
                        help="Where calibration data is read from and written to")
    parser.add_argument("--snapshot", metavar="PATH",
                        help="Write one colour-mapped depth frame to PATH and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def take_snapshot(path):
    source = AstraFrameSource(background_frames=1)
    try:
        source.open()
        return 0 if source.save_snapshot(path) else 1
    except SensorError as e:
        logger.error("Snapshot failed: %s", e)
        return 1
    finally:
        source.close()


def run(monitor):
    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.setWindowProperty(WINDOW_NAME, cv2.WND_PROP_FULLSCREEN, cv2.WINDOW_FULLSCREEN)

    while True:
        monitor.process_notifications()

        frame = monitor.calibration_ui.new_canvas()
        if monitor.state is MonitorState.CALIBRATING:
            monitor.calibration_ui.draw_ui(frame)
        else:
            cv2.putText(frame, monitor.status_text(), (10, 30),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
        cv2.imshow(WINDOW_NAME, frame)

        key = cv2.waitKey(30) & 0xFF
        if key == 27:  # ESC
            break
        if key == ord("d"):
            monitor.toggle_detection()
        elif key == ord("c"):
            monitor.calibrate()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else config.LOG_LEVEL,
                        format=config.LOG_FORMAT)

    if args.snapshot:
        return take_snapshot(args.snapshot)

    screen_w, screen_h = screen_size()
    monitor = VirtualMonitor(AstraFrameSource, PyAutoGuiPointer(), screen_w, screen_h,
                             calibration_path=args.calibration_file)
    try:
        run(monitor)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        monitor.shutdown()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
