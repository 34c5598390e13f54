"""Timer that fires digest generation at configured hours on configured weekdays.

The enabled flag and the key of the last fired slot are persisted so a
restart neither forgets the user's choice nor fires the same slot twice.
"""

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from ..config import ScheduleConfig, StorageConfig
from ..contracts import ScheduleState
from ..data import StateStore

logger = logging.getLogger(__name__)


class ScheduleStatus(Enum):
    IDLE = "idle"
    ARMED = "armed"


def weekday_index(moment: datetime) -> int:
    """Weekday with 0=Sunday ... 6=Saturday."""
    return moment.isoweekday() % 7


def run_key(moment: datetime) -> str:
    """Identifier of the (date, hour) slot, e.g. ``2026-10-19-8``."""
    return f"{moment.strftime('%Y-%m-%d')}-{moment.hour}"


def format_countdown(seconds: float) -> str:
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class DigestScheduler:
    """Fires ``fire_callback`` once per allowed (weekday, hour) slot while armed.

    Example:
        >>> scheduler = DigestScheduler(state, config.schedule, pipeline.generate)
        >>> scheduler.enable()
        >>> scheduler.start()  # polls every check_interval_seconds
    """

    def __init__(self,
                 state: StateStore,
                 config: Optional[ScheduleConfig] = None,
                 fire_callback: Optional[Callable[[], Any]] = None,
                 storage: Optional[StorageConfig] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.state = state
        self.config = config or ScheduleConfig()
        self.fire_callback = fire_callback
        storage = storage or StorageConfig()
        self.timer_key = storage.timer_key
        self.last_run_key = storage.last_run_key
        self.clock = clock

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -- persisted state -------------------------------------------------

    @property
    def enabled(self) -> bool:
        return bool(self.state.get(self.timer_key, False))

    @property
    def status(self) -> ScheduleStatus:
        return ScheduleStatus.ARMED if self.enabled else ScheduleStatus.IDLE

    def snapshot(self) -> ScheduleState:
        return ScheduleState(enabled=self.enabled, last_run_key=self.state.get(self.last_run_key))

    def enable(self) -> None:
        self.state.set(self.timer_key, True)
        logger.info(f"Digest schedule armed: hours {self.config.times}, weekdays {self.config.days}")

    def disable(self) -> None:
        self.state.set(self.timer_key, False)
        logger.info("Digest schedule disabled")

    # -- slot arithmetic ---------------------------------------------------

    def is_slot(self, now: datetime) -> bool:
        """True when ``now`` falls on the first minute of an allowed slot."""
        return (
            weekday_index(now) in self.config.days
            and now.hour in self.config.times
            and now.minute == 0
        )

    def next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Earliest allowed slot strictly after the current hour."""
        now = now or self.clock()
        hours = sorted(self.config.times)
        for offset in range(8):
            day = now + timedelta(days=offset)
            if weekday_index(day) not in self.config.days:
                continue
            candidates = hours if offset else [h for h in hours if h > now.hour]
            if candidates:
                return datetime(day.year, day.month, day.day, candidates[0])
        raise ValueError("Schedule has no allowed weekday")

    def countdown(self, now: Optional[datetime] = None) -> str:
        """Time until the next slot as ``HH:MM:SS`` (hours may exceed 24)."""
        now = now or self.clock()
        return format_countdown((self.next_run_time(now) - now).total_seconds())

    # -- polling -----------------------------------------------------------

    def poll(self, now: Optional[datetime] = None, background: bool = False) -> bool:
        """Check the clock once and fire if a new slot has started.

        Args:
            now: Time to evaluate (defaults to the clock).
            background: Run the callback on a worker thread instead of inline.

        Returns:
            True if generation was fired.
        """
        now = now or self.clock()
        with self._lock:
            if not self.enabled or not self.is_slot(now):
                return False
            key = run_key(now)
            if self.state.get(self.last_run_key) == key:
                return False
            self.state.set(self.last_run_key, key)

        logger.info(f"Scheduled digest slot {key} reached; firing generation")
        if background:
            worker = threading.Thread(target=self._fire, name=f"pulse-digest-{key}", daemon=True)
            worker.start()
        else:
            self._fire()
        return True

    def _fire(self) -> None:
        if self.fire_callback is None:
            logger.warning("Schedule fired but no generation callback is configured")
            return
        try:
            self.fire_callback()
        except Exception:
            logger.exception("Scheduled digest generation raised")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll(background=True)
            except Exception:
                logger.exception("Schedule poll failed")
            self._stop_event.wait(self.config.check_interval_seconds)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="pulse-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler polling every {self.config.check_interval_seconds:g}s")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
