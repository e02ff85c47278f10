import json

import pytest

from conftest import PASSWORD, USERNAME
from labbcat.cli.main import build_parser, main


@pytest.fixture()
def env(monkeypatch, base_url):
    monkeypatch.setenv("LABBCAT_URL", base_url)
    monkeypatch.setenv("LABBCAT_USERNAME", USERNAME)
    monkeypatch.setenv("LABBCAT_PASSWORD", PASSWORD)
    monkeypatch.delenv("LABBCAT_LOG_LEVEL", raising=False)


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_call_prints_json_result(env, stub, capsys):
    stub.canned["api/store/getLayer"] = {"id": "orthography", "parentId": "word"}

    rc = main(["call", "get_layer", "orthography"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out == {"id": "orthography", "parentId": "word"}
    assert stub.calls("api/store/getLayer")[0].query == {"id": ["orthography"]}


def test_call_parses_json_arguments(env, stub, capsys):
    stub.canned["api/store/getMatchingParticipantIds"] = ["Mike"]

    rc = main(["--indent", "0", "call", "get-matching-participant-ids", "/M.*/.test(id)", "10", "0"])

    assert rc == 0
    assert capsys.readouterr().out.strip() == '["Mike"]'
    q = stub.calls("api/store/getMatchingParticipantIds")[0].query
    assert q["pageLength"] == ["10"]


def test_call_unknown_function(env, stub, capsys):
    rc = main(["call", "_store_query", "getId"])

    assert rc == 2
    assert "unknown function" in capsys.readouterr().err


def test_server_errors_exit_with_status_2(env, stub, capsys):
    rc = main(["task-status", "404"])

    assert rc == 2
    assert "Invalid task ID: 404" in capsys.readouterr().err


def test_missing_url(monkeypatch, capsys):
    monkeypatch.delenv("LABBCAT_URL", raising=False)

    rc = main(["tasks"])

    assert rc == 2
    assert "LABBCAT_URL" in capsys.readouterr().err


def test_search_command_builds_pattern_and_releases(env, stub, capsys):
    stub.search_polls = 0
    stub.matches = [
        {"MatchId": "g_1;n_1-n_2;#=ew_0_1", "Transcript": "AP511.eaf", "Text": "the"},
    ]

    rc = main(["search", "--match", "orthography=the,!pos=DT", "--match", "orthography=quick"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out[0]["Transcript"] == "AP511.eaf"
    pattern = json.loads(stub.calls("search")[0].query["searchJson"][0])
    assert pattern["columns"][0]["layers"] == {
        "orthography": {"pattern": "the"},
        "pos": {"not": True, "pattern": "DT"},
    }
    assert pattern["columns"][1]["layers"] == {"orthography": {"pattern": "quick"}}
    assert stub.tasks == {}


def test_wait_task_reports_finished_status(env, stub, capsys):
    stub.add_task("12")

    rc = main(["wait-task", "12"])

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["threadId"] == "12"


def test_tasks_cancel_and_release(env, stub, capsys):
    stub.add_task("12", polls=5)

    assert main(["cancel-task", "12"]) == 0
    assert main(["release-task", "12"]) == 0
    assert main(["tasks"]) == 0

    assert stub.tasks == {}
    assert json.loads(capsys.readouterr().out) == {}
