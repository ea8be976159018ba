"""PriceOracle: Scheduler loop keeping the on-chain oracle up to date.

Architecture:
    - A fixed-rate tick every ``frequency_seconds`` starts a cycle
    - Each cycle checks every configured asset in order via DeviationMonitor
    - After each asset the loop pauses ``sleep_seconds`` to space out
      submissions and avoid nonce contention
    - Per-asset errors are logged and never end the loop
    - ``stop()`` ends the loop at the next wait; ``max_cycles`` bounds it
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from .GasEstimator import GasEstimationError
from .OracleWriter import OracleWriteError
from .QuotationSource import QuotationError

if TYPE_CHECKING:
    from .Asset import Asset
    from .DeviationMonitor import DeviationMonitor

logger = logging.getLogger(__name__)


class PriceOracle:
    """Drives deviation checks for all assets on a fixed interval.

    :ivar assets: Ordered list of tracked assets.
    :ivar monitor: Deviation monitor performing the per-asset checks.
    :ivar frequency_seconds: Interval between cycle starts.
    :ivar sleep_seconds: Pause after each asset within a cycle.
    :ivar cycles: Number of completed cycles.
    """

    def __init__(
        self,
        assets: list[Asset],
        monitor: DeviationMonitor,
        frequency_seconds: float = 120,
        sleep_seconds: float = 10,
    ) -> None:
        """Initialize the scheduler.

        :param assets: Assets to keep updated, processed in this order.
        :param monitor: Deviation monitor.
        :param frequency_seconds: Seconds between cycle starts (default: 120).
        :param sleep_seconds: Seconds to pause after each asset (default: 10).
        :raises ValueError: If no assets are given or intervals are negative.
        """
        if not assets:
            raise ValueError("At least one asset must be specified")
        if frequency_seconds < 0 or sleep_seconds < 0:
            raise ValueError("Intervals must not be negative")

        self.assets = list(assets)
        self.monitor = monitor
        self.frequency_seconds = frequency_seconds
        self.sleep_seconds = sleep_seconds
        self.cycles = 0
        self._stop_event = asyncio.Event()

        logger.info(
            f"PriceOracle initialized: assets={[str(a) for a in self.assets]}, "
            f"frequency={self.frequency_seconds}s, sleep={self.sleep_seconds}s, "
            f"deviation={self.monitor.deviation_permille} permille"
        )

    def stop(self) -> None:
        """Request the loop to end at its next wait."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def _wait(self, seconds: float) -> bool:
        """Sleep unless stopped.

        :param seconds: Maximum seconds to wait.
        :returns: True if a stop was requested.
        """
        if seconds <= 0:
            await asyncio.sleep(0)
            return self.stopped
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self.stopped

    async def check_asset(self, asset: Asset) -> bool:
        """Run one deviation check, logging instead of raising.

        :param asset: Asset to check.
        :returns: True if an update was submitted.
        """
        try:
            return await self.monitor.check(asset)
        except QuotationError as e:
            logger.error(f"{asset}: Failed to retrieve quotation: {e}")
        except GasEstimationError as e:
            logger.error(f"{asset}: Failed to estimate gas price: {e}")
        except OracleWriteError as e:
            logger.error(f"{asset}: Failed to update oracle: {e}")
        except Exception:  # Keep the loop alive on unexpected errors
            logger.exception(f"{asset}: Unexpected error during oracle update")
        return False

    async def run_cycle(self) -> int:
        """Check every asset once, pausing after each.

        :returns: Number of assets updated on-chain.
        """
        updated = 0
        for asset in self.assets:
            if await self.check_asset(asset):
                updated += 1
            if await self._wait(self.sleep_seconds):
                break
        return updated

    async def run(self, max_cycles: int | None = None) -> None:
        """Run the scheduler loop.

        The first cycle starts one interval after the call. If a cycle
        overruns the interval, the next one starts right away and later
        cycles stay on the original schedule.

        :param max_cycles: Stop after this many cycles (default: run until
            stopped).
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.frequency_seconds
        logger.info(f"Starting oracle update loop for {len(self.assets)} assets")

        while max_cycles is None or self.cycles < max_cycles:
            if await self._wait(next_tick - loop.time()):
                break

            updated = await self.run_cycle()
            self.cycles += 1
            logger.info(
                f"Cycle {self.cycles} done: {updated}/{len(self.assets)} assets updated"
            )
            if self.stopped:
                break

            next_tick += self.frequency_seconds
            now = loop.time()
            if next_tick < now and self.frequency_seconds > 0:
                missed = math.floor((now - next_tick) / self.frequency_seconds)
                next_tick += missed * self.frequency_seconds
                logger.warning(
                    f"Cycle {self.cycles} overran the {self.frequency_seconds}s interval "
                    f"({missed} ticks dropped)"
                )

        logger.info(f"Oracle update loop stopped after {self.cycles} cycles")

    async def close(self) -> None:
        """Release the quotation source's resources."""
        await self.monitor.source.aclose()
