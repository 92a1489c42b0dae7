"""Tests for the command-line front end."""

import json

import pytest

from availability_engine.cli import Config, load_rules, main, parse_args

ENV_VARS = ("AVAILABILITY_TZ", "AVAILABILITY_WEEKS", "AVAILABILITY_BEST_EFFORT", "CALENDAR_NAME")

STORED = [
    {"rule_type": "available_pattern", "day_of_week": 1, "start_time": "18:00", "end_time": "22:00"},
    {
        "rule_type": "blocked_override",
        "specific_date": "2024-06-03",
        "start_time": "19:00",
        "end_time": "20:00",
    },
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(STORED))
    return path


def test_config_defaults():
    assert Config.from_env() == Config(
        tz="UTC", weeks=2, best_effort=False, calendar_name="Available Slots"
    )


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("AVAILABILITY_TZ", "Asia/Manila")
    monkeypatch.setenv("AVAILABILITY_WEEKS", "3")
    monkeypatch.setenv("AVAILABILITY_BEST_EFFORT", "yes")
    cfg = Config.from_env()
    assert (cfg.tz, cfg.weeks, cfg.best_effort) == ("Asia/Manila", 3, True)


def test_parse_args_defaults():
    args = parse_args(["rules.json"])
    assert args.output == "-"
    assert args.fmt == "ascii"
    assert args.best_effort is None


@pytest.mark.parametrize("alias, fmt", [("txt", "ascii"), ("TEXT", "ascii"), ("ical", "ics")])
def test_format_aliases(alias, fmt):
    assert parse_args(["rules.json", "-f", alias]).fmt == fmt


def test_unknown_format():
    with pytest.raises(SystemExit):
        parse_args(["rules.json", "-f", "pdf"])


def test_load_rules_accepts_wrapped_list(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"rules": STORED}))
    assert load_rules(str(path)) == STORED


def test_load_rules_normalizes_drafts(tmp_path):
    path = tmp_path / "drafts.json"
    path.write_text(
        json.dumps(
            [{"rule_type": "available_pattern", "day_of_week": 1, "start_time": "07:00", "end_time": "09:00"}]
        )
    )
    [rule] = load_rules(str(path), authoring_tz="Asia/Manila")
    assert (rule.day_of_week, rule.start_time, rule.crosses_midnight) == (0, "23:00", True)


def test_json_output(rules_file, tmp_path):
    out = tmp_path / "out.json"
    main([str(rules_file), str(out), "-s", "2024-06-03", "-e", "2024-06-04", "-f", "json"])
    assert json.loads(out.read_text()) == {
        "timezone": "UTC",
        "dates": {
            "2024-06-03": [{"start": "18:00", "end": "19:00"}, {"start": "20:00", "end": "22:00"}],
            "2024-06-04": [],
        },
    }


def test_display_timezone_from_env(rules_file, tmp_path, monkeypatch):
    monkeypatch.setenv("AVAILABILITY_TZ", "Europe/Berlin")
    out = tmp_path / "out.json"
    main([str(rules_file), str(out), "-s", "2024-06-03", "-e", "2024-06-03", "-f", "json"])
    data = json.loads(out.read_text())
    assert data["timezone"] == "Europe/Berlin"
    assert data["dates"]["2024-06-03"] == [
        {"start": "20:00", "end": "21:00"},
        {"start": "22:00", "end": "24:00"},
    ]


def test_drafts_in_authoring_timezone(tmp_path):
    path = tmp_path / "drafts.json"
    path.write_text(
        json.dumps(
            [{"rule_type": "available_pattern", "day_of_week": 1, "start_time": "07:00", "end_time": "09:00"}]
        )
    )
    out = tmp_path / "out.json"
    main(
        [
            str(path),
            str(out),
            "-s",
            "2024-06-03",
            "-e",
            "2024-06-03",
            "-z",
            "Asia/Manila",
            "-a",
            "Asia/Manila",
            "-f",
            "json",
        ]
    )
    assert json.loads(out.read_text())["dates"] == {"2024-06-03": [{"start": "07:00", "end": "09:00"}]}


def test_ics_output(rules_file, tmp_path, monkeypatch):
    monkeypatch.setenv("CALENDAR_NAME", "Office Hours")
    out = tmp_path / "free.ics"
    main([str(rules_file), str(out), "-s", "2024-06-03", "-e", "2024-06-03", "-f", "ics"])
    data = out.read_bytes()
    assert data.startswith(b"BEGIN:VCALENDAR")
    assert data.count(b"BEGIN:VEVENT") == 2
    assert b"Office Hours" in data


def test_ascii_output(rules_file, tmp_path):
    out = tmp_path / "free.txt"
    main([str(rules_file), str(out), "-s", "2024-06-03", "-e", "2024-06-03", "-t", "Free time"])
    text = out.read_text()
    assert "Free time" in text
    assert "18:00 - 19:00 (1.0h)" in text


def test_invalid_rule_is_a_usage_error(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"rule_type": "available_pattern", "start_time": "10:00", "end_time": "11:00"}]))
    with pytest.raises(SystemExit) as excinfo:
        main([str(path), str(tmp_path / "out.json"), "-s", "2024-06-03", "-e", "2024-06-03"])
    assert excinfo.value.code == 2


def test_best_effort_flag_skips_invalid_rules(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            [{"rule_type": "available_pattern", "start_time": "10:00", "end_time": "11:00"}, STORED[0]]
        )
    )
    out = tmp_path / "out.json"
    main([str(path), str(out), "-s", "2024-06-03", "-e", "2024-06-03", "-f", "json", "--best-effort"])
    assert json.loads(out.read_text())["dates"]["2024-06-03"] == [{"start": "18:00", "end": "22:00"}]


def test_unknown_timezone_is_a_usage_error(rules_file, tmp_path):
    with pytest.raises(SystemExit):
        main([str(rules_file), str(tmp_path / "o.txt"), "-s", "2024-06-03", "-z", "Nowhere/Town"])


def test_missing_input_file(tmp_path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "missing.json"), "-s", "2024-06-03", "-e", "2024-06-03"])
