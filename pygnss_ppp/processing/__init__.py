"""Per-day processing: observations, orbit tiers, extraction, finalization."""

from pygnss_ppp.processing.extraction import (
    ResultArtifact,
    ResultRow,
    SolutionExtractor,
    TransformFlags,
)
from pygnss_ppp.processing.finalizer import FinalizeReport, RunFinalizer
from pygnss_ppp.processing.observations import (
    AssemblyResult,
    ObservationAssembler,
    RealTimeWindowBuilder,
)
from pygnss_ppp.processing.orbits import (
    AttemptStatus,
    OrbitTierScheduler,
    ScheduleOutcome,
    TierAttempt,
)
from pygnss_ppp.processing.pipeline import (
    DayResult,
    DayStatus,
    PPPPipeline,
    RunSummary,
)

__all__ = [
    "ResultArtifact",
    "ResultRow",
    "SolutionExtractor",
    "TransformFlags",
    "FinalizeReport",
    "RunFinalizer",
    "AssemblyResult",
    "ObservationAssembler",
    "RealTimeWindowBuilder",
    "AttemptStatus",
    "OrbitTierScheduler",
    "ScheduleOutcome",
    "TierAttempt",
    "DayResult",
    "DayStatus",
    "PPPPipeline",
    "RunSummary",
]
