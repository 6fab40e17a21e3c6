import json

import httpx
from click.testing import CliRunner

from cli.onetask_cmd import cli

API_URL = "https://api.example.com/api"
CHAT_URL = "https://chat.example.com/api"

BACKEND = {
    "/api/health": {"status": "ok"},
    "/api/tasks": [{"id": "t1", "title": "Ship report", "priority": "high"}],
    "/api/habits": [],
    "/api/yearly-goals": [{"id": "y1", "title": "Run a marathon", "target_year": 2025}],
    "/api/quarterly-goals": [],
    "/api/weekly-goals": [],
    "/api/projects": [],
}


def _backend(request):
    if request.url.host == "chat.example.com":
        prompt = json.loads(request.content)["prompt"]
        return httpx.Response(200, text=f"Saw {prompt.count('Ship report')} task mention")
    return httpx.Response(200, json=BACKEND[request.url.path])


def _invoke(args, handler=_backend):
    runner = CliRunner()
    obj = {"transport": httpx.MockTransport(handler), "retry_delay": 0}
    return runner.invoke(cli, ["--base-url", API_URL, *args], obj=obj)


def test_context_with_sample_data():
    result = _invoke(["context", "--sample", "--timezone", "UTC"])

    assert result.exit_code == 0
    assert "TASKS (3 total):" in result.output
    assert "Review project proposals" in result.output
    assert "(UTC)" in result.output


def test_context_with_unknown_timezone_fails():
    result = _invoke(["context", "--sample", "--timezone", "Nowhere/Special"])
    assert result.exit_code == 1


def test_context_from_backend():
    result = _invoke(["context", "--timezone", "UTC"])

    assert result.exit_code == 0
    assert "TASKS (1 total):" in result.output
    assert "Run a marathon" in result.output


def test_health_ok():
    result = _invoke(["health"])

    assert result.exit_code == 0
    assert f"Backend reachable: {API_URL}" in result.output


def test_health_failure_exits_nonzero():
    result = _invoke(["health"], handler=lambda r: httpx.Response(503))

    assert result.exit_code == 1
    assert "Backend unavailable" in result.output


def test_sync_prints_counts():
    result = _invoke(["--user-id", "u1", "sync"])

    assert result.exit_code == 0
    assert "Synced data for u1" in result.output
    assert "Tasks:    1" in result.output
    assert "Goals:    1" in result.output


def test_chat_sends_context_and_prints_answer():
    result = _invoke(["chat", "What should I do?", "--chat-url", CHAT_URL])

    assert result.exit_code == 0
    assert "Saw 1 task mention" in result.output


def test_chat_network_failure_exits_nonzero():
    def handler(request):
        if request.url.host == "chat.example.com":
            raise httpx.ConnectError("refused", request=request)
        return _backend(request)

    result = _invoke(["chat", "hi", "--chat-url", CHAT_URL], handler=handler)

    assert result.exit_code == 1
    assert "Chat service unreachable" in result.output
