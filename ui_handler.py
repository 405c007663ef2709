import cv2
import numpy as np

import config
from calibration import raster_targets


class CalibrationUI:
    def __init__(self, rows, cols, screen_width, screen_height,
                 margin=config.CALIBRATION_TARGET_MARGIN):
        self.rows = rows
        self.cols = cols
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.targets = raster_targets(rows, cols, screen_width, screen_height, margin)
        self.index = 0
        self.active = False
        self.message = ""

    def begin(self):
        self.index = 0
        self.active = True
        self.message = f"Tap target 1 of {len(self.targets)}"

    def show(self, index):
        self.index = min(max(index, 0), len(self.targets) - 1)
        self.message = f"Tap target {self.index + 1} of {len(self.targets)}"

    def finish(self):
        self.active = False
        self.message = "Calibration finished."

    def current_target(self):
        return self.targets[self.index]

    def new_canvas(self):
        return np.zeros((self.screen_height, self.screen_width, 3), dtype=np.uint8)

    def draw_ui(self, frame):
        if not self.active:
            return frame
        size = config.CALIBRATION_TARGET_SIZE

        # Already visited targets stay dim
        for target in self.targets[:self.index]:
            cv2.circle(frame, (target.x, target.y), size // 4, (80, 80, 80), cv2.FILLED)

        target = self.current_target()
        cv2.line(frame, (target.x - size, target.y), (target.x + size, target.y), (255, 255, 255), 2)
        cv2.line(frame, (target.x, target.y - size), (target.x, target.y + size), (255, 255, 255), 2)
        cv2.circle(frame, (target.x, target.y), size // 2, (0, 255, 255), 2)

        cv2.putText(frame, self.message, (10, frame.shape[0] - 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
        return frame
