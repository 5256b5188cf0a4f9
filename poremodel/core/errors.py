"""Exception hierarchy for pore model construction and use."""


class PoreModelError(ValueError):
    """Base class for all pore model errors."""


class ModelFormatError(PoreModelError):
    """A model source is malformed (bad header, row, value or k-mer)."""

    def __init__(self, message: str, path: str = None, line_number: int = None):
        self.path = path
        self.line_number = line_number
        location = ''
        if path is not None:
            location = f"{path}:{line_number}: " if line_number is not None else f"{path}: "
        super().__init__(location + message)


class ModelCompletenessError(PoreModelError):
    """The model does not hold exactly one entry per k-mer."""

    def __init__(self, message: str, path: str = None, missing=None):
        self.path = path
        self.missing = list(missing) if missing is not None else []
        prefix = f"{path}: " if path is not None else ''
        super().__init__(prefix + message)


class ModelNumericError(PoreModelError):
    """Calibration produced non-finite or non-positive derived values."""


class ModelNotCalibratedError(PoreModelError, RuntimeError):
    """Calibrated parameters were requested from a model that is not baked."""


class Fast5FormatError(PoreModelError):
    """A fast5 file lacks the model table or attributes we need."""
