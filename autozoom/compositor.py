import cv2
import numpy as np

from .camera import CameraState

FILL = (0, 0, 0)


def transform_matrix(camera: CameraState, size):
    """Affine map from source pixels to output pixels.

    Translate to the output center, scale by zoom, translate by -camera.
    """
    w, h = size
    z = camera.zoom
    return np.float32([
        [z, 0, w / 2 - z * camera.x],
        [0, z, h / 2 - z * camera.y],
    ])


def blank(size, fill=FILL):
    w, h = size
    return np.full((h, w, 3), fill, dtype=np.uint8)


def render(camera: CameraState, frame, size, fill=FILL):
    """Compose one output frame of ``size`` (w, h) from the latest source frame.

    A source that has not produced a frame yet still yields a solid frame so
    the output cadence never stalls.
    """
    w, h = size
    if frame is None or frame.size == 0:
        return blank(size, fill)
    if frame.ndim == 3 and frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    if frame.shape[1] != w or frame.shape[0] != h:
        frame = cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)
    return cv2.warpAffine(
        frame,
        transform_matrix(camera, size),
        (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=fill,
    )
