"""
Pre-write sanity check of a venue's batch against its own history.

The guard is biased towards availability: only two narrow conditions block
a batch (a collapse in volume, and screenings piling up in the small hours,
which is what a broken AM/PM or timezone parse looks like). Everything else
is reported as a warning and the batch is applied.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import tzinfo
from zoneinfo import ZoneInfo

from cinecatalog.config import Settings, settings
from cinecatalog.scrapers.models import RawListing

logger = logging.getLogger(__name__)

VOLUME_DROP = "volume_drop"
VOLUME_DECLINE = "volume_decline"
VOLUME_SPIKE = "volume_spike"
SUSPICIOUS_HOURS = "suspicious_hours"
NO_BASELINE = "no_baseline"


@dataclass(frozen=True)
class GuardConfig:
    baseline_runs: int = 7
    min_baseline: float = 10.0
    block_ratio: float = 0.3
    warn_ratio: float = 0.6
    spike_ratio: float = 3.0
    suspicious_hour_start: int = 2
    suspicious_hour_end: int = 5
    suspicious_min_sample: int = 10
    suspicious_block_share: float = 0.5
    suspicious_warn_share: float = 0.2

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "GuardConfig":
        return cls(
            baseline_runs=source.anomaly_baseline_runs,
            min_baseline=source.anomaly_min_baseline,
            block_ratio=source.anomaly_block_ratio,
            warn_ratio=source.anomaly_warn_ratio,
            spike_ratio=source.anomaly_spike_ratio,
            suspicious_hour_start=source.anomaly_suspicious_hour_start,
            suspicious_hour_end=source.anomaly_suspicious_hour_end,
            suspicious_min_sample=source.anomaly_suspicious_min_sample,
            suspicious_block_share=source.anomaly_suspicious_block_share,
            suspicious_warn_share=source.anomaly_suspicious_warn_share,
        )


@dataclass(frozen=True)
class GuardWarning:
    code: str
    message: str
    blocking: bool = False

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "blocking": self.blocking}


@dataclass
class IngestionDiffReport:
    current_count: int
    historical_baseline: float | None
    percent_delta: float | None
    suspicious_hour_count: int
    blocked: bool = False
    warnings: list[GuardWarning] = field(default_factory=list)

    @property
    def rule_codes(self) -> list[str]:
        """Codes of the rules that blocked the batch."""
        return [w.code for w in self.warnings if w.blocking]

    @property
    def warning_codes(self) -> list[str]:
        return [w.code for w in self.warnings]


def evaluate_batch(
    listings: Sequence[RawListing],
    history: Sequence[int],
    config: GuardConfig | None = None,
    tz: tzinfo | None = None,
) -> IngestionDiffReport:
    """
    Compare a proposed batch with the venue's recent successful runs.

    Args:
        listings: Validated listings of the batch (all with start times)
        history: Listing counts of recent successful runs
        config: Thresholds (defaults from settings)
        tz: Zone the suspicious-hour band is expressed in

    Returns:
        IngestionDiffReport; blocked is True if any blocking rule fired
    """
    config = config or GuardConfig.from_settings()
    tz = tz or ZoneInfo(settings.local_timezone)

    current = len(listings)
    baseline = sum(history) / len(history) if history else None
    percent_delta = None
    if baseline:
        percent_delta = round((current - baseline) / baseline * 100, 1)

    suspicious = sum(
        1
        for listing in listings
        if listing.start_time is not None
        and config.suspicious_hour_start
        <= listing.start_time.astimezone(tz).hour
        < config.suspicious_hour_end
    )

    warnings: list[GuardWarning] = []

    if baseline is None:
        warnings.append(GuardWarning(NO_BASELINE, "No successful run to compare against"))
    else:
        if baseline >= config.min_baseline and current < baseline * config.block_ratio:
            warnings.append(
                GuardWarning(
                    VOLUME_DROP,
                    f"{current} listings vs baseline {baseline:.1f} "
                    f"(below {config.block_ratio:.0%})",
                    blocking=True,
                )
            )
        elif current < baseline * config.warn_ratio:
            warnings.append(
                GuardWarning(
                    VOLUME_DECLINE,
                    f"{current} listings vs baseline {baseline:.1f} "
                    f"(below {config.warn_ratio:.0%})",
                )
            )
        if baseline > 0 and current > baseline * config.spike_ratio:
            warnings.append(
                GuardWarning(
                    VOLUME_SPIKE,
                    f"{current} listings vs baseline {baseline:.1f} "
                    f"(above {config.spike_ratio:g}x)",
                )
            )

    if suspicious:
        share = suspicious / current
        band = f"{config.suspicious_hour_start:02d}:00-{config.suspicious_hour_end:02d}:00"
        message = f"{suspicious}/{current} screenings start between {band}"
        if current >= config.suspicious_min_sample and share >= config.suspicious_block_share:
            warnings.append(GuardWarning(SUSPICIOUS_HOURS, message, blocking=True))
        elif share >= config.suspicious_warn_share or current < config.suspicious_min_sample:
            warnings.append(GuardWarning(SUSPICIOUS_HOURS, message))

    return IngestionDiffReport(
        current_count=current,
        historical_baseline=baseline,
        percent_delta=percent_delta,
        suspicious_hour_count=suspicious,
        blocked=any(w.blocking for w in warnings),
        warnings=warnings,
    )
