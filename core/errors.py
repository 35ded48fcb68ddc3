from __future__ import annotations


class InputDataError(ValueError):
    """Input files or in-memory inputs are missing or malformed."""


class PanoramaLoadError(InputDataError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot load panorama input {path}: {reason}")
        self.path = str(path)
        self.reason = str(reason)


class PreconditionViolation(RuntimeError):
    """
    A caller broke an invariant the algorithm relies on (sampling outside the
    raster, a visibility segment leaving the grid, a mask with a free border).

    This is a programming error, not bad data.
    """


class DeadlineExceeded(TimeoutError):
    def __init__(self, stage: str, budget_s: float) -> None:
        super().__init__(f"{stage} exceeded its {budget_s:.1f}s budget")
        self.stage = str(stage)
        self.budget_s = float(budget_s)
