"""Error taxonomy for the susceptibility engine."""


class SusceptibilityError(Exception):
    """Base class for every error raised by the engine."""


class InsufficientSourceData(SusceptibilityError):
    """A temporal stack has too few acquisitions to build a layer."""

    def __init__(self, layer: str, found: int, required: int = 1):
        self.layer = layer
        self.found = found
        self.required = required
        super().__init__(
            f"Insufficient source data for '{layer}': "
            f"{found} acquisition(s) found, {required} required"
        )


class MisalignedGrids(SusceptibilityError):
    """Grids combined in one expression differ in extent, resolution or CRS."""


class InvalidConfiguration(SusceptibilityError):
    """A model configuration value is out of its allowed domain."""


class InvalidWeightSet(InvalidConfiguration):
    """Weights are negative, incomplete or do not sum to 1."""
