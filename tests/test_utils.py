import pytest

from habit_engine.utils import (
    days_between,
    extract_json_payload,
    format_duration,
    generate_action_id,
    is_consecutive_day,
    load_prompt,
    minutes_to_hours_minutes,
    parse_time_input,
    previous_calendar_date,
)


def test_extract_json_from_fenced_block():
    text = 'Sure!\n```json\n[{"description": "walk", "estimatedTime": 10}]\n```\nEnjoy.'

    assert extract_json_payload(text) == [{"description": "walk", "estimatedTime": 10}]


def test_extract_json_skips_broken_fragments():
    text = 'Pick [one] of these: {"actions": [{"description": "read"}]} thanks'

    assert extract_json_payload(text) == {"actions": [{"description": "read"}]}


@pytest.mark.parametrize("text", ["", "plain words", "[unterminated"])
def test_extract_json_returns_none(text):
    assert extract_json_payload(text) is None


def test_calendar_helpers_cross_month_and_year():
    assert previous_calendar_date("2026-03-01") == "2026-02-28"
    assert previous_calendar_date("2024-03-01") == "2024-02-29"
    assert previous_calendar_date("2026-01-01") == "2025-12-31"
    assert days_between("2026-02-27", "2026-03-02") == 3
    assert is_consecutive_day("2025-12-31", "2026-01-01")
    assert not is_consecutive_day("2026-01-01", "2026-01-01")


def test_duration_formatting():
    assert format_duration(9) == "9s"
    assert format_duration(250) == "4m 10s"
    assert format_duration(3900) == "1h 5m"
    assert format_duration(-5) == "0s"
    assert minutes_to_hours_minutes(150) == "2h 30m"
    assert minutes_to_hours_minutes(120) == "2h"
    assert minutes_to_hours_minutes(45) == "45m"


@pytest.mark.parametrize("text, minutes", [
    ("2h 30m", 150),
    ("90m", 90),
    ("1.5h", 90),
    ("soon", 0),
])
def test_parse_time_input(text, minutes):
    assert parse_time_input(text) == minutes


def test_action_ids_are_unique_and_prefixed():
    first = generate_action_id("v_health")
    second = generate_action_id("v_health")

    assert first.startswith("action_v_health_")
    assert first != second
    assert generate_action_id(None).startswith("action_general_")


def test_load_prompt_substitutes_variables():
    prompt = load_prompt("daily_actions/user", {"visions": "- id: v1", "max_actions": 2})

    assert "- id: v1" in prompt
    assert "{visions}" not in prompt
    assert load_prompt("does/not/exist") == ""
