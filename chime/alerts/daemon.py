"""Calendar alert daemon: feeds in, notifications out."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from collections.abc import Callable

from chime.audio import play_sound

from .ack_store import AcknowledgedAlertStore
from .config import AlertsConfig
from .ics_source import IcsEventSource
from .notifier import LogNotifier, MqttNotifier
from .session import AlertSession

LOGGER = logging.getLogger("chime.alerts.daemon")


def build_sound_player(config: AlertsConfig) -> Callable[[], None] | None:
    """Play the alert tone off the event loop so a tick never waits on audio."""
    if not config.session.sound_enabled:
        return None
    sound_file = config.sound_file

    def _play() -> None:
        loop = asyncio.get_running_loop()
        loop.run_in_executor(None, play_sound, sound_file)

    return _play


class AlertDaemon:
    def __init__(
        self,
        config: AlertsConfig,
        *,
        source: IcsEventSource | None = None,
        ack_store: AcknowledgedAlertStore | None = None,
        notifier: Callable | None = None,
    ) -> None:
        self.config = config
        self.source = source or IcsEventSource(config=config.calendar)
        self.ack_store = ack_store or AcknowledgedAlertStore(config.state_file)
        self._mqtt: MqttNotifier | None = None
        if notifier is None:
            if config.mqtt.host:
                self._mqtt = MqttNotifier(config.mqtt)
                notifier = self._mqtt
            else:
                notifier = LogNotifier()
        self.session = AlertSession(
            config=config.session,
            visible_events=self.source.visible_events,
            calendars=self.source.calendars,
            query_events=self.source.query_events,
            ack_store=self.ack_store,
            dispatcher=notifier,
            is_authenticated=lambda: bool(config.calendar.feeds),
            sound_player=build_sound_player(config),
        )

    async def refresh_visible(self) -> None:
        try:
            await self.source.refresh()
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("[calendar] Calendar refresh failed")
            return
        self.session.notify_events_changed()

    async def run(self, stop_event: asyncio.Event) -> None:
        refresh_seconds = max(1, self.config.calendar.refresh_minutes) * 60
        await self.source.start()
        if self._mqtt:
            self._mqtt.connect()
        try:
            await self.session.start()
            await self.refresh_visible()
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=refresh_seconds)
                except TimeoutError:
                    await self.refresh_visible()
        finally:
            await self.session.stop()
            await self.source.stop()
            if self._mqtt:
                self._mqtt.disconnect()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Chime calendar alert daemon")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AlertsConfig.from_env()
    if not config.calendar.feeds:
        LOGGER.warning("[calendar] CHIME_CALENDAR_ICS_URLS is empty; no alerts will fire")
    daemon = AlertDaemon(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    await daemon.run(stop_event)


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
