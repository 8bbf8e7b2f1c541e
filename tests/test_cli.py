from prom2grafana import __main__ as cli
from prom2grafana import __version__


def test_version_flag(capsys):
    assert cli.main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"prom2grafana {__version__}"


def test_missing_api_key_exits_before_serving(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    started = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: started.append(a))
    assert cli.main([]) == 1
    assert started == []


def test_runs_uvicorn_with_settings(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "k")
    monkeypatch.setenv("PORT", "9999")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("HOST", raising=False)
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kw: calls.append(kw))
    assert cli.main(["--host", "127.0.0.1"]) == 0
    assert calls == [{"host": "127.0.0.1", "port": 9999, "log_level": "info"}]
