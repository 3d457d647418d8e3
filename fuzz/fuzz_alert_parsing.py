import sys

import atheris

with atheris.instrument_imports():
    from chime.alerts.durations import parse_offset
    from chime.alerts.models import AbsoluteTrigger, CalendarEvent, OffsetTrigger
    from chime.alerts.triggers import compute_fire_time
    from chime.datetime_utils import parse_instant_ms


def TestOneInput(data: bytes) -> None:
    """Fuzz offset and instant parsing; none of these may raise."""
    value = data.decode("utf-8", errors="ignore")

    parse_offset(value)
    parse_instant_ms(value)

    event = CalendarEvent(event_id="fuzz", calendar_ids=("cal",), start=value, end=value, duration=value)
    compute_fire_time(event, OffsetTrigger(offset=value, relative_to="start"))
    compute_fire_time(event, OffsetTrigger(offset="-PT5M", relative_to="end"))
    compute_fire_time(event, AbsoluteTrigger(when=value))


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
