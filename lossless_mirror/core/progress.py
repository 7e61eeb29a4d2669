"""
Progress reporting for the conversion phase.

The orchestrator only talks to the ProgressReporter interface; the CLI
picks the implementation:

    TqdmProgressReporter  - progress bar with converted/failed counts
    NullProgressReporter  - no output (quiet mode, tests, nothing to do)

Only the coordinator thread calls a reporter, so implementations do not
need to be thread-safe.
"""

from abc import ABC, abstractmethod

from tqdm import tqdm

from lossless_mirror.core.models import ConversionOutcome


class ProgressReporter(ABC):
    """Receives one notification per finished audio job."""

    @abstractmethod
    def start(self, total: int) -> None:
        """Called once before the first job is dispatched."""

    @abstractmethod
    def advance(self, outcome: ConversionOutcome) -> None:
        """Called once per drained outcome, in completion order."""

    @abstractmethod
    def finish(self) -> None:
        """Called once after the last outcome, also on interruption."""


class NullProgressReporter(ProgressReporter):
    def start(self, total: int) -> None:
        pass

    def advance(self, outcome: ConversionOutcome) -> None:
        pass

    def finish(self) -> None:
        pass


class TqdmProgressReporter(ProgressReporter):
    """
    tqdm progress bar for a batch of conversions.

    Attributes:
        desc: Label shown in front of the bar.
        converted: Number of successful outcomes seen so far.
        failed: Number of failed outcomes seen so far.
    """

    def __init__(self, desc: str = "Converting") -> None:
        self.desc = desc
        self.converted = 0
        self.failed = 0
        self._bar: tqdm | None = None

    def start(self, total: int) -> None:
        self.converted = 0
        self.failed = 0
        self._bar = tqdm(
            total=total,
            desc=self.desc,
            unit="file",
            bar_format="{desc} {n_fmt}/{total_fmt} {bar} {percentage:3.0f}% [{elapsed}<{remaining}{postfix}]",
            dynamic_ncols=True,
            leave=True,
        )

    def advance(self, outcome: ConversionOutcome) -> None:
        if outcome.success:
            self.converted += 1
        else:
            self.failed += 1

        if self._bar is not None:
            self._bar.set_postfix(ok=self.converted, failed=self.failed, refresh=False)
            self._bar.update(1)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
