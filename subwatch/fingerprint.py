import hashlib

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage

FINGERPRINT_SIZE = 16

def fingerprint(image_input) -> str:
    """Calculate a cheap perceptual hash of a captured region for change detection.

    Decodable images are downsampled to a small grayscale grid so minor
    noise/flicker does not count as a change. Anything Qt cannot decode is
    hashed byte for byte, so identical captures always match.
    """
    if isinstance(image_input, QImage):
        image = image_input
    else:
        data = bytes(image_input or b"")
        image = QImage.fromData(data)
        if image.isNull():
            return hashlib.md5(data).hexdigest()

    if image.isNull():
        return ""

    small = image.scaled(FINGERPRINT_SIZE, FINGERPRINT_SIZE,
                         Qt.AspectRatioMode.IgnoreAspectRatio,
                         Qt.TransformationMode.FastTransformation)
    small = small.convertToFormat(QImage.Format.Format_Grayscale8)

    values = []
    for y in range(FINGERPRINT_SIZE):
        for x in range(FINGERPRINT_SIZE):
            values.append(str(small.pixelColor(x, y).red()))

    return hashlib.md5(",".join(values).encode()).hexdigest()
