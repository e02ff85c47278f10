import pytest

from labbcat.models import (
    Corpus,
    Match,
    MatchId,
    RolePermission,
    TaskStatus,
    Upload,
    User,
)


def test_task_status_from_server_json_and_str():
    status = TaskStatus.from_json(
        {
            "threadId": 42,
            "threadName": "search",
            "running": True,
            "duration": 3,
            "percentComplete": 12.7,
            "status": "Searching",
            "refreshSeconds": 5,
        }
    )

    assert status.thread_id == "42"
    assert status.percent_complete == 12
    assert status.refresh_seconds == 5
    assert str(status) == "threadId: 42 (search) status: Searching (12% running...)"


def test_finished_task_status_str_includes_result_url():
    status = TaskStatus(
        thread_id="7",
        thread_name="upload",
        running=False,
        percent_complete=100,
        status="Done",
        result_url="http://server/results",
    )

    assert str(status) == "threadId: 7 (upload) status: Done (100% finished.) http://server/results"


def test_match_id_with_anchor_interval_and_target():
    m = MatchId.parse("g_6;em_12_20035;n_72700-n_72702;p_4;#=ew_0_12611;prefix=001-")

    assert m.graph_id == "g_6"
    assert m.utterance_id == "em_12_20035"
    assert m.start_anchor_id == "n_72700"
    assert m.end_anchor_id == "n_72702"
    assert m.start_offset is None
    assert m.target_id == "ew_0_12611"
    assert m.prefix == "001-"


def test_match_id_with_offset_interval():
    m = MatchId.parse("AP511_MikeThorpe.eaf;12.345-14.5;m_-1_23")

    assert m.graph_id == "AP511_MikeThorpe.eaf"
    assert m.start_offset == pytest.approx(12.345)
    assert m.end_offset == pytest.approx(14.5)
    assert m.utterance_id == "m_-1_23"


def test_match_id_without_interval_is_rejected():
    with pytest.raises(ValueError):
        MatchId.parse("g_6;em_12_20035")


def test_match_from_server_json_and_str():
    match = Match.from_json(
        {
            "MatchId": "g_6;em_12_20035;n_72700-n_72702;#=ew_0_12611;prefix=001-",
            "Transcript": "AP511.eaf",
            "Participant": "Mike",
            "Corpus": "UC",
            "Line": 10.5,
            "LineEnd": 12.25,
            "BeforeMatch": "the",
            "Text": "quick",
            "AfterMatch": "fox",
        }
    )

    assert match.transcript == "AP511.eaf"
    assert match.line == 10.5
    assert match.parsed_id().target_id == "ew_0_12611"
    assert str(match).endswith(": [the] quick [fox]")


def test_user_reset_password_is_int_on_the_wire():
    user = User.from_json({"user": "bob", "email": "b@x", "resetPassword": 1, "roles": ["view"]})

    assert user.reset_password is True
    assert user.to_json() == {"user": "bob", "email": "b@x", "resetPassword": 1, "roles": ["view"]}
    assert User(user="carol", reset_password=False).to_json()["resetPassword"] == 0


def test_corpus_uses_server_column_names():
    corpus = Corpus.from_json(
        {"corpus_id": 1, "corpus_name": "UC", "corpus_language": "en", "corpus_description": "x"}
    )

    assert corpus.name == "UC"
    assert Corpus(name="QB", language="en").to_json() == {
        "corpus_name": "QB",
        "corpus_language": "en",
    }


def test_role_permission_maps_attribute_name_to_layer_id():
    perm = RolePermission.from_json(
        {"role_id": "admin", "entity": "t", "attribute_name": "corpus", "value_pattern": "UC.*"}
    )

    assert perm.layer_id == "transcript_corpus"
    assert perm.to_json() == {
        "role_id": "admin",
        "entity": "t",
        "attribute_name": "corpus",
        "value_pattern": "UC.*",
    }


def test_upload_parameters_and_transcripts():
    upload = Upload.from_json(
        {
            "id": 99,
            "parameters": [
                {"name": "labbcat_corpus", "label": "Corpus", "type": "select", "value": "UC"},
                {"name": "labbcat_episode", "value": None},
            ],
            "transcripts": {"a.eaf": 123},
        }
    )

    assert upload.id == "99"
    assert upload.transcripts == {"a.eaf": "123"}
    assert upload.parameter("labbcat_corpus").label == "Corpus"
    assert upload.set_parameter_value("labbcat_episode", "ep1") is True
    assert upload.parameter("labbcat_episode").value == "ep1"
    assert upload.set_parameter_value("no_such_parameter", "x") is False
