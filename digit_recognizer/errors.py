class DigitRecognizerError(Exception):
    """Base class for pipeline errors"""


class FormatError(DigitRecognizerError):
    """Input table row does not have the expected layout"""


class RangeError(DigitRecognizerError):
    """Label or pixel value outside its domain"""


class ShapeError(DigitRecognizerError):
    """Tensor cannot be reshaped to the requested shape"""


class TrainingError(DigitRecognizerError):
    """Numerical divergence or a failure reported by torch during fitting"""
