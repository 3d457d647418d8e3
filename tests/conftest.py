"""Shared test fixtures and configuration for the Chime test suite.

This module provides reusable fixtures for common test scenarios including:
- Calendar event / calendar / alert factories
- MQTT configuration and client mocking
- Async test utilities
"""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import Mock

import paho.mqtt.client as mqtt
import pytest
from chime.alerts.config import MqttConfig
from chime.alerts.models import AbsoluteTrigger, Alert, Calendar, CalendarEvent, OffsetTrigger

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing."""
    return Mock(spec=logging.Logger)


# ============================================================================
# Calendar Data Factories
# ============================================================================


def make_alert(offset: str = "-PT5M", **overrides: Any) -> Alert:
    """Display alert firing ``offset`` relative to the event start."""
    defaults: dict[str, Any] = {
        "trigger": OffsetTrigger(offset=offset, relative_to="start"),
        "action": "display",
        "acknowledged": None,
    }
    defaults.update(overrides)
    return Alert(**defaults)


def make_absolute_alert(when: str, **overrides: Any) -> Alert:
    return make_alert(trigger=AbsoluteTrigger(when=when), **overrides)


def make_event(**overrides: Any) -> CalendarEvent:
    defaults: dict[str, Any] = {
        "event_id": "evt-1",
        "calendar_ids": ("cal-1",),
        "title": "Test Event",
        "start": "2026-03-01T10:00:00",
        "utc_start": "2026-03-01T10:00:00Z",
        "utc_end": "2026-03-01T11:00:00Z",
        "duration": "PT1H",
        "show_without_time": False,
        "use_default_alerts": False,
        "alerts": None,
    }
    defaults.update(overrides)
    return CalendarEvent(**defaults)


def make_calendar(**overrides: Any) -> Calendar:
    defaults: dict[str, Any] = {
        "calendar_id": "cal-1",
        "name": "Work",
        "default_alerts_with_time": None,
        "default_alerts_without_time": None,
    }
    defaults.update(overrides)
    return Calendar(**defaults)


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def calendar_factory():
    return make_calendar


@pytest.fixture
def alert_factory():
    return make_alert


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Create a basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        topic_base="chime/test-device",
        username=None,
        password=None,
        tls_enabled=False,
        ca_cert=None,
        cert=None,
        key=None,
    )


@pytest.fixture
def mock_mqtt_client():
    """Create a mock paho MQTT client."""
    client = Mock(spec=mqtt.Client)
    client.connect = Mock()
    client.disconnect = Mock()

    message_info = Mock(spec=mqtt.MQTTMessageInfo)
    message_info.rc = mqtt.MQTT_ERR_SUCCESS
    message_info.mid = 1
    client.publish = Mock(return_value=message_info)

    client.loop_start = Mock()
    client.loop_stop = Mock()
    client.is_connected = Mock(return_value=True)
    return client
