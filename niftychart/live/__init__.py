"""Live recompute coordination for chart views."""

from niftychart.live.coordinator import (
    BundleCell,
    BundleUpdate,
    CoordinatorState,
    RecomputeCoordinator,
    RefreshStatus,
)

__all__ = [
    "BundleCell",
    "BundleUpdate",
    "CoordinatorState",
    "RecomputeCoordinator",
    "RefreshStatus",
]
