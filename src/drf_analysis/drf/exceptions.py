class DRFConfigurationError(ValueError):
    """Invalid combination of inputs, detected before any computation."""


class CovarianceNotAvailableError(Exception):
    """Parametric draws need a positive definite parameter covariance."""


class DrawLimitExceededError(Exception):
    def __init__(self, draw_index: int, redraws: int) -> None:
        # Positional args are kept so the error survives pickling from workers
        super().__init__(draw_index, redraws)
        self.draw_index = draw_index
        self.redraws = redraws

    def __str__(self) -> str:
        return (
            f"Draw {self.draw_index} exceeded the limit of {self.redraws} "
            "redraws without satisfying the parameter bounds and constraints"
        )


class FrequencyTableError(Exception):
    """Population weighting needs response data or a pre-computed table."""
