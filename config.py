import logging

# =======================
# Depth Sensor
# =======================
BACKGROUND_FRAMES = 30              # Frames averaged into the empty-surface model
DEPTH_MEDIAN_FILTER_SIZE = 5        # cv2.medianBlur only takes 3 or 5 on 16-bit depth
DEPTH_PATCH_SIZE = 5                # Patch used for the median depth at the fingertip
MIN_BLOB_AREA = 40                  # Pixels; smaller blobs are treated as noise
CONTACT_PERCENTILE = 10             # Percentile of blob height reported as contact distance

# =======================
# Depth Thresholds (in mm above the surface)
# =======================
SURFACE_NOISE_FLOOR = 3             # Below this a pixel still belongs to the surface
HOVER_DEPTH_THRESHOLD = 60          # Above this a pixel is arm, not fingertip
TOUCH_DEPTH_THRESHOLD = 15          # Contact distance that starts a touch
RELEASE_HYSTERESIS = 5              # Extra height needed before a touch ends
CALIBRATION_TOUCH_THRESHOLD = 10    # Calibration taps must be deliberate

# =======================
# Interaction Handling
# =======================
TAP_TOLERANCE = 6                   # Sensor pixels a tap may drift and still count
MOVE_EPSILON = 0                    # Sensor pixels; 0 reports every move

# =======================
# Calibration
# Targets are shown in raster order, ROWS x COLS
# =======================
CALIBRATION_ROWS = 2
CALIBRATION_COLS = 4
CALIBRATION_DATA_FILENAME = "calibration.vmcal"
CALIBRATION_TARGET_MARGIN = 0.1     # Fraction of the screen kept free around targets
CALIBRATION_TARGET_SIZE = 20

# =======================
# Threads
# =======================
NOTIFICATION_QUEUE_SIZE = 16

# =======================
# Pointer
# =======================
POINTER_FAILSAFE = True
POINTER_PAUSE = 0.0

# =======================
# Logging
# =======================
LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
