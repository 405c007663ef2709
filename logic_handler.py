import logging
import queue
import threading
from enum import Enum

import config
from calibration import (CalibrationSession, CalibrationTransform, CalibrationPointSet,
                         read_calibration_file, write_calibration_file)
from errors import InsufficientCalibrationData, SensorError
from interaction_detector import InteractionDetector
from interaction_handler import CalibrationCaptureEffect, InteractionHandler, PointerEffect
from ui_handler import CalibrationUI

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    PAUSED = "paused"
    DETECTING = "detecting"
    CALIBRATING = "calibrating"


def _consume(detector, handler, interaction):
    try:
        return handler.handle_interaction(interaction)
    finally:
        detector.free_interaction(interaction)


class VirtualMonitor:
    """
    Owns the acquisition threads and the Paused/Detecting/Calibrating state.

    All public methods are meant for the control (UI) thread. The acquisition
    threads talk back only through the notification queue, which the control
    thread drains in process_notifications().
    """

    def __init__(self, frame_source_factory, pointer, screen_width, screen_height,
                 calibration_path=config.CALIBRATION_DATA_FILENAME,
                 rows=config.CALIBRATION_ROWS, cols=config.CALIBRATION_COLS,
                 tap_tolerance=config.TAP_TOLERANCE,
                 queue_size=config.NOTIFICATION_QUEUE_SIZE,
                 **detector_options):
        self.frame_source_factory = frame_source_factory
        self.pointer = pointer
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.calibration_path = calibration_path
        self.rows = rows
        self.cols = cols
        self.tap_tolerance = tap_tolerance
        self.queue_size = queue_size
        self.detector_options = detector_options

        self.state = MonitorState.PAUSED
        self.calibration_ui = CalibrationUI(rows, cols, screen_width, screen_height)
        self.calibration_session = None
        self.notifications = queue.Queue(maxsize=queue_size)
        self.last_error = None

        self._point_set = CalibrationPointSet.empty(rows, cols)
        self._point_set_lock = threading.Lock()
        self._cancel = threading.Event()
        self._thread = None

    @property
    def point_set(self):
        with self._point_set_lock:
            return self._point_set.copy()

    # =======================
    # Control surface
    # =======================

    def toggle_detection(self):
        if self.state is MonitorState.CALIBRATING:
            return
        if self.state is MonitorState.DETECTING:
            self.stop_detection()
        else:
            self.start_detection()

    def calibrate(self):
        if self.state is MonitorState.CALIBRATING:
            return
        if self.state is MonitorState.DETECTING:
            self.stop_detection()
        self.start_calibration()

    def start_detection(self):
        if self.state is not MonitorState.PAUSED:
            logger.warning("Cannot start detection while %s", self.state.value)
            return False

        loaded = read_calibration_file(self.calibration_path, self.rows, self.cols)
        with self._point_set_lock:
            if loaded is not None:
                self._point_set = loaded
            point_set = self._point_set.copy()
        if loaded is None:
            logger.info("Detection proceeding without stored calibration data")

        self._launch(self._detection_loop, point_set, "detection")
        self.state = MonitorState.DETECTING
        return True

    def stop_detection(self):
        if self.state is not MonitorState.DETECTING:
            return
        self._stop_thread()
        self.state = MonitorState.PAUSED
        logger.info("Detection stopped")

    def start_calibration(self):
        if self.state is not MonitorState.PAUSED:
            logger.warning("Cannot start calibration while %s", self.state.value)
            return False

        self.calibration_session = CalibrationSession(
            self.rows, self.cols, self.calibration_ui.targets)
        self.calibration_ui.begin()
        self.notifications = queue.Queue(maxsize=self.queue_size)

        self._launch(self._calibration_loop, self.calibration_session, "calibration")
        self.state = MonitorState.CALIBRATING
        return True

    def stop_calibration(self):
        if self.state is not MonitorState.CALIBRATING:
            return
        self._stop_thread()
        self.calibration_ui.finish()
        self.state = MonitorState.PAUSED
        logger.info("Calibration stopped")

    def process_notifications(self):
        while True:
            try:
                index = self.notifications.get_nowait()
            except queue.Empty:
                break
            if self.state is not MonitorState.CALIBRATING:
                continue
            logger.debug("Calibration update %d", index)
            if index < self.rows * self.cols - 1:
                # UI follows the target after the last recorded one
                self.calibration_ui.show(index + 1)
            else:
                self.stop_calibration()
        self._reap()

    def status_text(self):
        if self.state is MonitorState.DETECTING:
            return "Detecting. Press d to stop, c to calibrate."
        if self.state is MonitorState.CALIBRATING:
            return self.calibration_ui.message
        text = "Paused. Press d to start detection, c to calibrate."
        if self.last_error is not None:
            text += f" Last error: {self.last_error}"
        return text

    def join(self, timeout=None):
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def shutdown(self):
        if self.state is MonitorState.DETECTING:
            self.stop_detection()
        elif self.state is MonitorState.CALIBRATING:
            self.stop_calibration()

    # =======================
    # Thread management
    # =======================

    def _launch(self, target, payload, name):
        self.last_error = None
        self._cancel = threading.Event()
        self._thread = threading.Thread(target=target, args=(payload, self._cancel),
                                        name=name, daemon=True)
        self._thread.start()

    def _stop_thread(self):
        self._cancel.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _reap(self):
        # Acquisition threads also end on their own: sensor failure or end of stream
        if self.state is MonitorState.PAUSED or self._thread is None:
            return
        if self._thread.is_alive():
            return
        self._thread.join()
        self._thread = None
        if self.state is MonitorState.CALIBRATING:
            self.calibration_ui.finish()
        logger.info("%s ended", self.state.value.capitalize())
        self.state = MonitorState.PAUSED

    def _new_detector(self):
        return InteractionDetector(self.frame_source_factory(), **self.detector_options)

    def _notify(self, index):
        try:
            self.notifications.put_nowait(index)
        except queue.Full:
            logger.warning("Notification queue full, dropped calibration update %d", index)

    def _detection_loop(self, point_set, cancel):
        detector = self._new_detector()
        handler = InteractionHandler(PointerEffect(self.pointer), self.tap_tolerance)
        detector.set_calibration_points(point_set.rows, point_set.cols,
                                        point_set.physical, point_set.virtual)
        detector.set_screen_virtual(self.screen_height, self.screen_width)

        try:
            detector.start()
        except SensorError as e:
            logger.error("Detection did not start: %s", e)
            self.last_error = e
            return

        logger.info("Starting detection...")
        try:
            while not cancel.is_set():
                interaction = detector.detect_interaction(cancel=cancel)
                if interaction is None:
                    break
                _consume(detector, handler, interaction)
        except Exception as e:
            logger.exception("Detection aborted")
            self.last_error = e
        finally:
            self._finish_pending(detector, handler)

    def _calibration_loop(self, session, cancel):
        detector = self._new_detector()
        effect = CalibrationCaptureEffect()
        handler = InteractionHandler(effect, self.tap_tolerance)

        try:
            detector.start()
        except SensorError as e:
            logger.error("Calibration did not start: %s", e)
            self.last_error = e
            return

        logger.info("Starting calibration...")
        try:
            while not session.is_complete and not cancel.is_set():
                interaction = detector.detect_interaction(is_calibrating=True, cancel=cancel)
                if interaction is None:
                    break
                if _consume(detector, handler, interaction):
                    self._notify(session.record(effect.captured))
        except Exception as e:
            logger.exception("Calibration aborted")
            self.last_error = e
        finally:
            # A contact cut short by stop is never recorded
            self._finish_pending(detector, handler)

        if session.is_complete:
            self._store_calibration(session.snapshot())

    def _finish_pending(self, detector, handler):
        pending = detector.stop()
        if pending is None:
            return
        try:
            _consume(detector, handler, pending)
        except Exception as e:
            logger.exception("Could not deliver the final release")
            if self.last_error is None:
                self.last_error = e

    def _store_calibration(self, point_set):
        write_calibration_file(self.calibration_path, point_set)
        try:
            CalibrationTransform.build(point_set)
        except InsufficientCalibrationData as e:
            logger.warning("New calibration cannot be used: %s", e)
        with self._point_set_lock:
            self._point_set = point_set
