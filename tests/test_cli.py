from __future__ import annotations

import json

import pytest

from hostping import cli
from hostping.config import COMMON_PORTS, DEFAULT_TIMEOUT
from hostping.prober import Prober


@pytest.fixture()
def recorded(monkeypatch):
    """Replace the network check, recording the config and target it was given."""
    calls = []
    state = {"up": True}

    def fake_check_host(self, target):
        calls.append((target, self.config))
        return state["up"]

    monkeypatch.setattr(Prober, "check_host", fake_check_host)
    return calls, state


def test_reports_up(recorded, capsys):
    calls, _ = recorded
    assert cli.main(["10.0.0.5"]) == 0
    assert capsys.readouterr().out == "10.0.0.5 is up!\n"
    target, config = calls[0]
    assert target == "10.0.0.5"
    assert config.ports == COMMON_PORTS
    assert config.timeout == DEFAULT_TIMEOUT


def test_reports_down(recorded, capsys):
    _, state = recorded
    state["up"] = False
    assert cli.main(["db.internal"]) == 0
    assert capsys.readouterr().out == "db.internal is down!\n"


@pytest.mark.parametrize("argv", [[], ["a.example", "b.example"]])
def test_wrong_argument_count_prints_usage(recorded, capsys, argv):
    calls, _ = recorded
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    assert excinfo.value.code == 2
    assert "usage:" in capsys.readouterr().err
    assert calls == []


def test_ports_and_timeout_flags(recorded):
    calls, _ = recorded
    cli.main(["host", "--ports", "22,8000-8001", "--timeout", "0.5"])
    _, config = calls[0]
    assert config.ports == (22, 8000, 8001)
    assert config.timeout == 0.5


def test_invalid_ports_flag_exits_before_probing(recorded, capsys):
    calls, _ = recorded
    with pytest.raises(SystemExit):
        cli.main(["host", "--ports", "70000"])
    assert "between" in capsys.readouterr().err
    assert calls == []


def test_config_file_with_flag_override(recorded, tmp_path):
    calls, _ = recorded
    path = tmp_path / "probe.json"
    path.write_text(json.dumps({"ports": [443, 8443], "timeout": 2}), encoding="utf-8")

    cli.main(["host", "--config", str(path), "--timeout", "0.25"])
    _, config = calls[0]
    assert config.ports == (443, 8443)
    assert config.timeout == 0.25


def test_invalid_ports_in_config_file(recorded, tmp_path, capsys):
    calls, _ = recorded
    path = tmp_path / "probe.json"
    path.write_text(json.dumps({"ports": [0]}), encoding="utf-8")
    with pytest.raises(SystemExit):
        cli.main(["host", "--config", str(path)])
    assert "Invalid probe configuration" in capsys.readouterr().err
    assert calls == []


def test_missing_config_file(recorded, tmp_path, capsys):
    with pytest.raises(SystemExit):
        cli.main(["host", "--config", str(tmp_path / "nope.json")])
    assert "Config file not found" in capsys.readouterr().err


def test_end_to_end_against_local_listener(listening_port, capsys):
    cli.main(["127.0.0.1", "--ports", str(listening_port), "--timeout", "1"])
    assert capsys.readouterr().out == "127.0.0.1 is up!\n"


def test_non_finite_timeout_flag_falls_back_to_default(recorded):
    calls, _ = recorded
    cli.main(["host", "--timeout", "nan"])
    _, config = calls[0]
    assert config.timeout == DEFAULT_TIMEOUT


def test_concurrency_flag_overrides_config_file(recorded, tmp_path):
    calls, _ = recorded
    path = tmp_path / "probe.json"
    path.write_text(json.dumps({"concurrency": 64}), encoding="utf-8")

    cli.main(["host", "--config", str(path)])
    assert calls[-1][1].concurrency == 64
    cli.main(["host", "--config", str(path), "--concurrency", "8"])
    assert calls[-1][1].concurrency == 8


def test_load_config_file_only_reads_the_file(tmp_path):
    path = tmp_path / "probe.json"
    path.write_text(json.dumps({"timeout": 3}), encoding="utf-8")
    parser_obj = cli.build_parser()
    args = parser_obj.parse_args(["host", "--config", str(path), "--timeout", "1"])
    assert cli._load_config_file(args, parser_obj) == {"timeout": 3}
