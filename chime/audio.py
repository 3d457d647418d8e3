"""Reminder tone rendering and playback for calendar alerts."""

from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess  # nosec B404 - subprocess used for pw-play/aplay
import wave
from pathlib import Path

_LOGGER = logging.getLogger("chime.audio")
_REMINDER_FILENAME = "chime-reminder.wav"
_SAMPLE_RATE = 48_000
# Gentle chime-like tone
_REMINDER_FREQUENCY_HZ = 800
_REMINDER_MAX_AMPLITUDE = 25_000
_REMINDER_DURATION_SECONDS = 0.15
_REMINDER_DECAY_RATE = 5.0
_REMINDER_FADE_IN_SECONDS = 0.015
_PLAYERS = ("pw-play", "paplay", "aplay")


def _runtime_env() -> dict[str, str]:
    env = os.environ.copy()
    env.setdefault("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    return env


def _reminder_sample_path() -> Path:
    runtime_dir = Path(_runtime_env()["XDG_RUNTIME_DIR"])
    return runtime_dir / _REMINDER_FILENAME


def _write_reminder_beep(wav_file: wave.Wave_write) -> None:
    samples = max(1, int(_SAMPLE_RATE * _REMINDER_DURATION_SECONDS))
    fade_in_samples = max(1, int(_SAMPLE_RATE * _REMINDER_FADE_IN_SECONDS))
    frames = bytearray()
    for i in range(samples):
        t = i / _SAMPLE_RATE
        decay = math.exp(-_REMINDER_DECAY_RATE * t / _REMINDER_DURATION_SECONDS)
        fade_in = min(1.0, i / fade_in_samples)
        angle = 2 * math.pi * _REMINDER_FREQUENCY_HZ * t
        value = int(fade_in * decay * _REMINDER_MAX_AMPLITUDE * math.sin(angle))
        frames += value.to_bytes(2, byteorder="little", signed=True)
    wav_file.writeframes(bytes(frames))


def render_reminder_sample(destination: Path) -> Path | None:
    """Render the reminder tone to the provided path."""
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(destination), "wb") as wav_file:
            wav_file.setnchannels(1)
            wav_file.setsampwidth(2)
            wav_file.setframerate(_SAMPLE_RATE)
            _write_reminder_beep(wav_file)
        return destination
    except OSError as exc:
        _LOGGER.debug("[audio] Unable to create reminder sample at %s: %s", destination, exc)
        return None


def _ensure_reminder_sample() -> Path | None:
    path = _reminder_sample_path()
    if path.exists():
        return path
    return render_reminder_sample(path)


def _play_sample(sample_path: Path | None) -> None:
    """Play a sound sample using the first available audio player."""
    if not sample_path or not sample_path.exists():
        return
    player = next((candidate for candidate in _PLAYERS if shutil.which(candidate)), None)
    if not player:
        _LOGGER.debug("[audio] No audio player available")
        return
    try:
        subprocess.run(  # nosec B603 - hardcoded command array
            [player, str(sample_path)],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=_runtime_env(),
        )
    except OSError as exc:
        _LOGGER.debug("[audio] Failed to play sample: %s", exc)


def play_sound(sound_path: Path | None) -> None:
    """Play a custom sound file, falling back to the built-in reminder tone."""
    if sound_path and sound_path.exists():
        _play_sample(sound_path)
        return
    play_reminder_sound()


def play_reminder_sound() -> None:
    """Play the reminder tone used for calendar alerts."""
    _play_sample(_ensure_reminder_sample())
