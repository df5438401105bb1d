import pytest

from citysim.clock import END_OF_DAY, TICKS_PER_SECOND, Duration, Tick


def test_parse_format_round_trip():
    for text in ["00:00:00.0", "07:30:15.4", "23:59:59.9", "24:00:00.0", "100:05:00.0"]:
        tick = Tick.parse(text)
        assert tick is not None
        assert str(tick) == text
        assert Tick.parse(str(tick)) == tick


def test_parse_accepts_short_forms():
    assert Tick.parse("08:30") == Tick.from_seconds(8 * 3600 + 30 * 60)
    assert Tick.parse("08:30:05") == Tick.from_seconds(8 * 3600 + 30 * 60 + 5)
    assert Tick.parse(" 01:00:00.5 ") == Tick(36000 + 5)


def test_parse_fails_softly():
    for text in ["", "noon", "8h30", "12:60:00", "12:00:75", "-01:00:00", "01:00:00.25", None]:
        assert Tick.parse(text) is None


def test_equality_is_tick_count():
    assert Tick.from_seconds(30) == Tick(30 * TICKS_PER_SECOND)
    assert Tick.zero() == Tick(0)
    assert Tick.zero() < Tick(1)


def test_arithmetic_with_duration():
    start = Tick.parse("08:00:00")
    later = start + Duration.minutes(90)
    assert later == Tick.parse("09:30:00")
    assert later - start == Duration.minutes(90)
    assert later - Duration.minutes(30) == Tick.parse("09:00:00")
    assert Duration.seconds(60) == Duration.minutes(1)
    assert (Duration.seconds(10) - Duration.seconds(25)).ticks == -150


def test_arithmetic_never_wraps():
    with pytest.raises(ValueError):
        Tick.zero() - Duration.seconds(1)
    with pytest.raises(ValueError):
        Tick(-1)
    with pytest.raises(TypeError):
        Tick(1.5)


def test_end_of_day_and_filenames():
    assert END_OF_DAY == Tick.parse("24:00:00")
    assert END_OF_DAY.inner_seconds() == 86400
    assert Tick.parse("08:05:03.2").as_filename() == "08h05m03.2s"
    assert Tick.parse("01:00:00").is_multiple_of(Duration.minutes(30))
    assert not Tick.parse("01:10:00").is_multiple_of(Duration.minutes(30))
