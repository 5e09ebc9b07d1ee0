import argparse
import json

import pytest

from betsense import main as cli
from betsense.config import Settings
from betsense.llm import ModelGateway
from betsense.pipeline import Analyzer


def _args(**kw):
    base = dict(sport="nba", home="Celtics", away="Knicks", league=None, date=None,
                odds_home=None, odds_draw=None, odds_away=None, odds_format="decimal",
                context=None, out=None)
    base.update(kw)
    return argparse.Namespace(**base)


def test_build_request_with_odds_and_context():
    req = cli.build_request(_args(odds_home=1.6, odds_away=2.4, context='{"rest_days": 2}'))
    assert req.home_team == "Celtics"
    assert req.odds.home == 1.6
    assert req.odds.draw is None
    assert req.context == {"rest_days": 2}


def test_build_request_without_odds():
    assert cli.build_request(_args()).odds is None


def test_build_request_rejects_same_team():
    with pytest.raises(ValueError):
        cli.build_request(_args(away="celtics"))


def test_run_analysis_dry_run_writes_report(tmp_path, monkeypatch, capsys):
    settings = Settings(api_key="", dry_run=True)
    monkeypatch.setattr(cli, "Analyzer",
                        lambda: Analyzer(gateway=ModelGateway(settings), settings=settings))
    out = tmp_path / "reports" / "nba.json"

    assert cli.run_analysis(_args(out=str(out))) is True

    report = json.loads(out.read_text())
    assert report["accepted"] is True
    assert set(report["result"]["outcomeProbabilities"]) == {"home", "away"}
    assert "✅ Analysis accepted" in capsys.readouterr().out


def test_atomic_write_json(tmp_path):
    path = tmp_path / "out.json"
    cli.atomic_write_json({"b": 1, "a": 2}, str(path))
    assert json.loads(path.read_text()) == {"a": 2, "b": 1}


def test_main_serve_exits_after_server_stops(monkeypatch):
    served = []
    monkeypatch.setattr(cli, "serve", lambda host, port: served.append((host, port)))
    monkeypatch.setattr("sys.argv", ["betsense", "--serve", "--host", "0.0.0.0", "--port", "9000"])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 0
    assert served == [("0.0.0.0", 9000)]


def test_main_lists_sports(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["betsense", "--sports"])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 0
    assert "basketball_nba" in capsys.readouterr().out
