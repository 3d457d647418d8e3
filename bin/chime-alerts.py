#!/usr/bin/env python3
"""Chime calendar alert daemon."""

from __future__ import annotations

from chime.alerts.daemon import cli

if __name__ == "__main__":
    cli()
