import logging
import warnings

import cv2
import numpy as np
from openni import openni2

import config
from errors import SensorError
from frame_source import NO_HAND, PhysicalSample
from geometry import Coord3D

logger = logging.getLogger(__name__)


def median_depth(depth_map, x, y, size=config.DEPTH_PATCH_SIZE):
    h, w = depth_map.shape
    x1, y1 = max(0, x - size // 2), max(0, y - size // 2)
    x2, y2 = min(w, x + size // 2 + 1), min(h, y + size // 2 + 1)
    patch = depth_map[y1:y2, x1:x2]
    valid = patch[patch > 0]
    return float(np.median(valid)) if valid.size > 0 else 0.0


def build_background(frames):
    # Per-pixel median, ignoring dropouts (depth 0)
    stack = np.stack(frames).astype(np.float32)
    stack[stack == 0] = np.nan
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        background = np.nanmedian(stack, axis=0)
    return np.nan_to_num(background, nan=0.0).astype(np.uint16)


def locate_contact(depth_map, background,
                   noise_floor=config.SURFACE_NOISE_FLOOR,
                   hover_threshold=config.HOVER_DEPTH_THRESHOLD,
                   min_blob_area=config.MIN_BLOB_AREA,
                   median_size=config.DEPTH_MEDIAN_FILTER_SIZE,
                   percentile=config.CONTACT_PERCENTILE):
    """
    Find the fingertip in a depth frame.

    Pixels between noise_floor and hover_threshold mm above the background
    surface form the near-surface band; the largest blob in that band is the
    fingertip. Its centroid gives x/y, the median depth around the centroid
    gives z, and a low percentile of its height above the surface is the
    contact distance.
    """
    depth = cv2.medianBlur(depth_map, median_size) if median_size > 1 else depth_map
    height = background.astype(np.int32) - depth.astype(np.int32)
    valid = (depth > 0) & (background > 0)
    band = valid & (height > noise_floor) & (height <= hover_threshold)

    mask = band.astype(np.uint8) * 255
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        return NO_HAND

    blob = max(contours, key=cv2.contourArea)
    if cv2.contourArea(blob) < min_blob_area:
        return NO_HAND

    moments = cv2.moments(blob)
    if moments["m00"] == 0:
        return NO_HAND
    cx = int(round(moments["m10"] / moments["m00"]))
    cy = int(round(moments["m01"] / moments["m00"]))

    blob_mask = np.zeros_like(mask)
    cv2.drawContours(blob_mask, [blob], -1, 255, cv2.FILLED)
    heights = height[(blob_mask > 0) & band]
    if heights.size == 0:
        return NO_HAND

    contact_distance = float(np.percentile(heights, percentile))
    z = median_depth(depth, cx, cy)
    return PhysicalSample(Coord3D(cx, cy, z), contact_distance)


class AstraFrameSource:
    """OpenNI2 depth stream reduced to one fingertip sample per frame."""

    def __init__(self, background_frames=config.BACKGROUND_FRAMES):
        self.background_frames = background_frames
        self.dev = None
        self.depth_stream = None
        self.resolution = None
        self.background = None
        self._initialized = False

    def open(self):
        try:
            openni2.initialize()
            self._initialized = True
            self.dev = openni2.Device.open_any()
            self.depth_stream = self.dev.create_depth_stream()
            self.depth_stream.start()
            vm = self.depth_stream.get_video_mode()
            self.resolution = (vm.resolutionX, vm.resolutionY)
        except Exception as e:
            self.close()
            raise SensorError(f"Could not open depth sensor: {e}") from e

        logger.info("Depth stream %dx%d, capturing background from %d frames",
                    self.resolution[0], self.resolution[1], self.background_frames)
        try:
            self.background = build_background(
                [self.get_depth_frame() for _ in range(self.background_frames)])
        except SensorError:
            self.close()
            raise

    def get_depth_frame(self):
        if self.depth_stream is None:
            raise SensorError("Depth stream is not open")
        try:
            frame = self.depth_stream.read_frame()
            data = frame.get_buffer_as_uint16()
        except Exception as e:
            raise SensorError(f"Depth frame read failed: {e}") from e
        return np.frombuffer(data, dtype=np.uint16).reshape(self.resolution[1], self.resolution[0])

    def read_sample(self):
        return locate_contact(self.get_depth_frame(), self.background)

    def save_snapshot(self, path):
        depth_map = self.get_depth_frame()
        depth_8u = cv2.convertScaleAbs(depth_map, alpha=0.03)
        depth_colored = cv2.applyColorMap(depth_8u, cv2.COLORMAP_JET)
        if not cv2.imwrite(path, depth_colored):
            logger.error("Could not write depth snapshot to %s", path)
            return False
        logger.info("Depth snapshot written to %s", path)
        return True

    def close(self):
        if self.depth_stream is not None:
            self.depth_stream.stop()
            self.depth_stream = None
        if self.dev is not None:
            self.dev.close()
            self.dev = None
        if self._initialized:
            openni2.unload()
            self._initialized = False
