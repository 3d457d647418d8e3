"""Periodic alert evaluation with throttled look-ahead fetching."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import timedelta

from chime.datetime_utils import from_epoch_ms, now_ms

from .ack_store import AcknowledgedAlertStore
from .config import SessionConfig
from .evaluator import get_pending_alerts
from .models import Calendar, CalendarEvent, PendingAlert
from .notifier import Notification, format_alert_message

LOGGER = logging.getLogger("chime.alerts.session")

PROACTIVE_LOOKBEHIND_MS = 10 * 60 * 1000
PROACTIVE_FETCH_TIMEOUT = 30.0

EventsProvider = Callable[[], Sequence[CalendarEvent]]
CalendarsProvider = Callable[[], Sequence[Calendar]]
RangeQuery = Callable[..., Awaitable[Sequence[CalendarEvent]]]
Dispatcher = Callable[[Notification], None]
MessageFormatter = Callable[[PendingAlert, int], tuple[str, str]]


class AlertSession:
    """Own the timers, look-ahead cache and dispatch bookkeeping for one consumer.

    Both the periodic timer and ``notify_events_changed`` funnel into
    ``check_alerts``. Every due alert is recorded in the acknowledgment store
    before it is dispatched, so a crash in between loses the notification
    instead of showing it twice.
    """

    def __init__(
        self,
        *,
        config: SessionConfig,
        visible_events: EventsProvider,
        calendars: CalendarsProvider,
        ack_store: AcknowledgedAlertStore,
        dispatcher: Dispatcher,
        query_events: RangeQuery | None = None,
        formatter: MessageFormatter = format_alert_message,
        is_authenticated: Callable[[], bool] | None = None,
        sound_player: Callable[[], None] | None = None,
        on_activate: Callable[[PendingAlert], None] | None = None,
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._visible_events = visible_events
        self._calendars = calendars
        self._ack_store = ack_store
        self._dispatcher = dispatcher
        self._query_events = query_events
        self._formatter = formatter
        self._is_authenticated = is_authenticated or (lambda: True)
        self._sound_player = sound_player
        self._on_activate = on_activate
        self._clock = clock
        self._logger = logger or LOGGER
        self._runner: asyncio.Task | None = None
        self._initial_check: asyncio.TimerHandle | None = None
        self._fetch_tasks: set[asyncio.Task] = set()
        self._stop_event = asyncio.Event()
        self._active = False
        self._proactive_events: list[CalendarEvent] = []
        self._last_proactive_fetch_ms = 0
        self._dispatched: dict[str, int] = {}

    @property
    def running(self) -> bool:
        return self._active

    @property
    def proactive_events(self) -> list[CalendarEvent]:
        return list(self._proactive_events)

    def _gate_open(self) -> bool:
        if not self._active or not self._config.enabled:
            return False
        try:
            return bool(self._is_authenticated())
        except Exception:  # pylint: disable=broad-except
            self._logger.exception("[alerts] Authentication gate failed")
            return False

    async def start(self) -> None:
        if not self._config.enabled:
            self._logger.info("[alerts] Calendar alerts disabled; session not started")
            return
        if self._runner:
            return
        self._stop_event.clear()
        self._active = True
        try:
            self._ack_store.cleanup_stale(self._clock())
        except Exception:  # pylint: disable=broad-except
            self._logger.exception("[alerts] Failed to prune acknowledged alerts")
        self._launch_proactive_fetch()
        loop = asyncio.get_running_loop()
        self._initial_check = loop.call_later(self._config.initial_check_delay_seconds, self.check_alerts)
        self._runner = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._active = False
        self._stop_event.set()
        if self._initial_check:
            self._initial_check.cancel()
            self._initial_check = None
        runner = self._runner
        self._runner = None
        if runner:
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        tasks = list(self._fetch_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fetch_tasks.clear()
        self._proactive_events = []
        self._last_proactive_fetch_ms = 0
        self._dispatched.clear()

    async def _run_loop(self) -> None:
        interval = self._config.check_interval_seconds
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                return
            except TimeoutError:
                pass
            self._launch_proactive_fetch()
            self.check_alerts()

    def notify_events_changed(self) -> list[PendingAlert]:
        """Re-evaluate after the visible event set changed."""
        return self.check_alerts()

    def check_alerts(self) -> list[PendingAlert]:
        """Dispatch every alert that is due now; return the ones dispatched.

        A failing dispatch is logged and skipped; the remaining due alerts in
        the same tick are still delivered.
        """
        if not self._gate_open():
            return []
        try:
            now = self._clock()
            self._prune_dispatched(now)
            events = [*self._visible_events(), *self._proactive_events]
            pending = get_pending_alerts(
                events,
                self._calendars(),
                self._ack_store.keys(),
                now,
                stale_window_ms=self._config.stale_window_ms,
            )
        except Exception:  # pylint: disable=broad-except
            self._logger.exception("[alerts] Calendar alert evaluation failed; skipping this tick")
            return []
        dispatched: list[PendingAlert] = []
        for alert in pending:
            key = alert.key
            if key in self._dispatched:
                continue
            self._dispatched[key] = alert.fire_time_ms
            try:
                self._ack_store.record(key, alert.fire_time_ms)
                self._play_sound()
                self._dispatch(alert, now)
            except Exception:  # pylint: disable=broad-except
                self._logger.exception("[alerts] Failed to dispatch calendar alert %s", key)
                continue
            dispatched.append(alert)
        if dispatched:
            self._logger.info("[alerts] Dispatched %d calendar alert(s)", len(dispatched))
        return dispatched

    def _dispatch(self, alert: PendingAlert, now: int) -> None:
        title, message = self._formatter(alert, now)
        on_activate = functools.partial(self._on_activate, alert) if self._on_activate else None
        self._dispatcher(
            Notification(
                title=title,
                message=message,
                duration_ms=self._config.notification_duration_ms,
                on_activate=on_activate,
                event_id=alert.event_id,
                alert_id=alert.alert_id,
                fire_time_ms=alert.fire_time_ms,
            )
        )

    def _play_sound(self) -> None:
        if not self._config.sound_enabled or not self._sound_player:
            return
        try:
            self._sound_player()
        except Exception:  # pylint: disable=broad-except
            self._logger.debug("[alerts] Notification sound failed", exc_info=True)

    def _prune_dispatched(self, now: int) -> None:
        cutoff = now - self._config.stale_window_ms
        for key, fire_time_ms in list(self._dispatched.items()):
            if fire_time_ms <= cutoff:
                self._dispatched.pop(key, None)

    def _launch_proactive_fetch(self) -> None:
        if not self._query_events or not self._gate_open():
            return
        if self._clock() - self._last_proactive_fetch_ms < self._config.proactive_throttle_ms:
            return
        task = asyncio.create_task(self.proactive_fetch())
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    async def proactive_fetch(self) -> None:
        """Refresh the look-ahead window; failures keep the last good window."""
        if not self._query_events or not self._gate_open():
            return
        now = self._clock()
        if now - self._last_proactive_fetch_ms < self._config.proactive_throttle_ms:
            return
        after = from_epoch_ms(now - PROACTIVE_LOOKBEHIND_MS)
        before = from_epoch_ms(now) + timedelta(milliseconds=self._config.lookahead_ms)
        try:
            fetched = await asyncio.wait_for(self._query_events(after, before), timeout=PROACTIVE_FETCH_TIMEOUT)
        except TimeoutError:
            self._logger.warning("[alerts] Proactive calendar fetch timed out")
            return
        except Exception:  # pylint: disable=broad-except
            self._logger.warning("[alerts] Proactive calendar fetch failed", exc_info=True)
            return
        if not self._active:
            return
        self._proactive_events = list(fetched)
        self._last_proactive_fetch_ms = self._clock()
        self._logger.debug("[alerts] Proactive window holds %d event(s)", len(self._proactive_events))
