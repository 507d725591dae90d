from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from shopdesk.application.streams import Stream
from shopdesk.application.triggers import (
    FOCUS,
    ONLINE,
    START,
    VISIBLE,
    IntervalSource,
    SignalSource,
    TriggerAggregator,
)
from shopdesk.domain.calculations import compute_totals
from shopdesk.domain.dates import DateRange, custom_range, end_of_day, last_n_days, start_of_day
from shopdesk.domain.errors import AppError, RequestFailedError, StaleResultError
from shopdesk.domain.models import AggregationState, Transaction, TransactionFilter, TransactionType

log = logging.getLogger("shopdesk.dashboard")

DEFAULT_PERIOD_MS = 20_000
DEFAULT_DEBOUNCE_MS = 120
FOREGROUND = "foreground"


class TransactionSource(Protocol):
    async def list_transactions(self, flt: TransactionFilter) -> list[Transaction]: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    FETCHING = "fetching"


class Period(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    CUSTOM = "custom"


class TypeFilter(str, Enum):
    ALL = "ALL"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


_PERIOD_DAYS = {Period.LAST_7_DAYS: 7, Period.LAST_30_DAYS: 30}


@dataclass(frozen=True)
class DashboardFilter:
    type: TypeFilter = TypeFilter.ALL
    period: Period = Period.LAST_7_DAYS
    custom: Optional[DateRange] = None

    def resolve(self, now: datetime) -> TransactionFilter:
        if self.period is Period.CUSTOM:
            rng = self.custom or last_n_days(_PERIOD_DAYS[Period.LAST_7_DAYS], now)
        else:
            rng = last_n_days(_PERIOD_DAYS[self.period], now)
        kind = None if self.type is TypeFilter.ALL else TransactionType(self.type.value)
        return TransactionFilter(type=kind, range=rng)


class LiveAggregationScheduler:
    """Keeps the dashboard transaction list and totals fresh.

    Triggers (start, timer, focus, visible, online) go through a debounced
    ``TriggerAggregator``. Only one trigger-driven fetch runs at a time; any
    triggers that arrive meanwhile collapse into a single follow-up fetch.
    Explicit fetches (filter change, manual refresh) may overlap with it, so
    every fetch carries a generation token and only results newer than the
    last applied one, and not older than the last filter change, are applied.
    """

    def __init__(
        self,
        port: TransactionSource,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.port = port
        self.debounce_ms = debounce_ms
        self.clock = clock

        self.focus = SignalSource(FOCUS)
        self.visible = SignalSource(VISIBLE)
        self.online = SignalSource(ONLINE)
        self.timer: Optional[IntervalSource] = None
        self.aggregator = TriggerAggregator(self._on_tick, debounce_ms / 1000)

        self.state: Stream[AggregationState] = Stream(AggregationState())
        self.loading: Stream[bool] = Stream(False)
        self.errors: Stream[AppError] = Stream(replay=False)

        self._filter = DashboardFilter()
        self._started = False
        self._active = False
        self._issued = 0
        self._applied = 0
        self._floor = 0
        self._in_flight = 0
        self._foreground_in_flight = 0
        self._pending = False
        self._tasks: set[asyncio.Task] = set()

    # ---------- introspection ----------
    @property
    def status(self) -> SchedulerState:
        if not self._active:
            return SchedulerState.IDLE
        return SchedulerState.FETCHING if self._in_flight else SchedulerState.WAITING

    @property
    def filter(self) -> DashboardFilter:
        return self._filter

    @property
    def tasks(self) -> tuple[asyncio.Task, ...]:
        return tuple(self._tasks)

    # ---------- lifecycle ----------
    def start(self, period_ms: int = DEFAULT_PERIOD_MS, initial_filter: Optional[DashboardFilter] = None) -> None:
        if self._started:
            self.stop()
        if initial_filter is not None:
            self._filter = initial_filter

        self.timer = IntervalSource(period_ms / 1000)
        self.aggregator = TriggerAggregator(self._on_tick, self.debounce_ms / 1000)
        for source in (self.focus, self.visible, self.online, self.timer):
            self.aggregator.register(source)

        self._started = True
        self._active = True
        self.aggregator.open()
        log.info("dashboard_started period_ms=%s filter=%s", period_ms, self._filter)
        self.aggregator.fire_now(START)

    def stop(self) -> None:
        self.aggregator.close()
        self._active = False
        self._started = False
        self._pending = False
        # anything still in flight belongs to a dead view
        self._floor = self._issued + 1
        log.info("dashboard_stopped")

    def enter_foreground(self) -> None:
        if not self._started or self._active:
            return
        self._active = True
        self.aggregator.open()
        log.info("dashboard_foreground")
        self.aggregator.fire_now(FOREGROUND)

    def enter_background(self) -> None:
        if not self._active:
            return
        self._active = False
        self._pending = False
        self.aggregator.close()
        log.info("dashboard_background")

    # ---------- filters ----------
    def set_filter(
        self,
        type_filter: Optional[TypeFilter | str] = None,
        period: Optional[Period | str] = None,
        custom: Optional[DateRange] = None,
    ) -> Optional[asyncio.Task]:
        new = self._filter
        if type_filter is not None:
            new = replace(new, type=TypeFilter(type_filter))
        if period is not None:
            new = replace(new, period=Period(period))
        if custom is not None:
            new = replace(new, custom=custom_range(custom.start, custom.end))
        if new.period is Period.CUSTOM and new.custom is None:
            new = replace(new, custom=new.resolve(self.clock()).range)
        return self._replace_filter(new)

    def set_custom_start(self, day: date | datetime) -> Optional[asyncio.Task]:
        start = start_of_day(day)
        current = self._filter.custom or last_n_days(7, self.clock())
        end = current.end if current.end >= start else end_of_day(start)
        new = replace(self._filter, custom=DateRange(start, end))
        if new.period is not Period.CUSTOM:
            self._filter = new
            return None
        return self._replace_filter(new)

    def set_custom_end(self, day: date | datetime) -> Optional[asyncio.Task]:
        end = end_of_day(day)
        current = self._filter.custom or last_n_days(7, self.clock())
        start = current.start if current.start <= end else start_of_day(end)
        new = replace(self._filter, custom=DateRange(start, end))
        if new.period is not Period.CUSTOM:
            self._filter = new
            return None
        return self._replace_filter(new)

    def _replace_filter(self, new: DashboardFilter) -> Optional[asyncio.Task]:
        self._filter = new
        # results of fetches issued for the old filter must not land
        self._floor = self._issued + 1
        self._pending = False
        log.info("dashboard_filter_changed filter=%s", new)
        if not self._active:
            return None
        return self.fetch(silent=False)

    # ---------- fetching ----------
    def refresh(self) -> Optional[asyncio.Task]:
        return self.fetch(silent=False)

    def fetch(self, silent: bool = False) -> Optional[asyncio.Task]:
        """Issue a fetch for the current filter; a stopped or backgrounded view issues none."""
        if not self._active:
            log.debug("dashboard_fetch_skipped inactive")
            return None
        self._issued += 1
        token = self._issued
        flt = self._filter.resolve(self.clock())
        self._in_flight += 1
        if not silent:
            self._foreground_in_flight += 1
            self.loading.push_if_changed(True)

        task = asyncio.get_running_loop().create_task(self._run(token, flt, silent))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_tick(self, sources: frozenset[str]) -> None:
        if not self._active:
            return
        if self._in_flight:
            self._pending = True
            log.debug("dashboard_trigger_coalesced sources=%s", ",".join(sorted(sources)))
            return
        log.debug("dashboard_trigger sources=%s", ",".join(sorted(sources)))
        self.fetch(silent=True)

    async def _run(self, token: int, flt: TransactionFilter, silent: bool) -> None:
        try:
            rows = await self.port.list_transactions(flt)
            self._check_fresh(token)
            self._apply(token, flt, rows)
        except StaleResultError:
            log.debug("dashboard_stale_result token=%s applied=%s floor=%s", token, self._applied, self._floor)
        except AppError as e:
            self._report(token, e)
        except Exception as e:
            log.exception("dashboard_fetch_crashed token=%s", token)
            self._report(token, RequestFailedError(str(e)))
        finally:
            self._finish(silent)

    def _check_fresh(self, token: int) -> None:
        if token <= self._applied or token < self._floor:
            raise StaleResultError(f"token {token} superseded")

    def _apply(self, token: int, flt: TransactionFilter, rows: list[Transaction]) -> None:
        ordered = tuple(sorted(rows, key=lambda t: t.date, reverse=True))
        new_state = AggregationState(
            transactions=ordered,
            totals=compute_totals(ordered),
            filter=flt,
            fetched_at=self.clock(),
        )
        self._applied = token
        self.state.push(new_state)
        log.info(
            "dashboard_refreshed token=%s count=%s income=%s expense=%s net=%s",
            token, len(ordered), new_state.totals.income, new_state.totals.expense, new_state.totals.net,
        )

    def _report(self, token: int, error: AppError) -> None:
        if token < self._floor:
            log.debug("dashboard_stale_failure token=%s error=%s", token, error)
            return
        log.warning("dashboard_fetch_failed token=%s error=%s", token, error)
        self.errors.push(error)

    def _finish(self, silent: bool) -> None:
        self._in_flight -= 1
        if not silent:
            self._foreground_in_flight -= 1
            if self._foreground_in_flight == 0:
                self.loading.push_if_changed(False)
        if self._in_flight == 0 and self._pending and self._active:
            self._pending = False
            self.fetch(silent=True)

    async def wait_idle(self) -> None:
        """Wait until no fetch (including follow-ups) is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
