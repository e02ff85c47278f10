import pytest

from labbcat.client.http import HttpResponse
from labbcat.errors import ResponseException
from labbcat.response import Response


def test_response_parses_envelope_fields():
    r = Response(
        '{"title":"LaBB-CAT","version":"20230224.1731","code":0,'
        '"errors":[],"messages":["ok"],"model":{"threadId":"42"}}'
    )

    assert r.title == "LaBB-CAT"
    assert r.version == "20230224.1731"
    assert r.code == 0
    assert r.messages == ["ok"]
    assert r.model == {"threadId": "42"}
    assert not r.is_model_null()
    assert r.check_for_errors() is r


def test_empty_body_is_reported_as_error():
    r = Response("")

    assert r.errors == ["Empty response from server."]
    with pytest.raises(ResponseException) as e:
        r.check_for_errors()
    assert str(e.value) == "Empty response from server."


def test_non_json_body_is_reported_with_raw_text():
    r = Response("<html>Internal error</html>")

    assert r.errors == ["Response not JSON: <html>Internal error</html>"]
    assert r.raw == "<html>Internal error</html>"
    assert r.is_model_null()


def test_json_that_is_not_an_object_is_not_an_envelope():
    r = Response("[1, 2, 3]")

    assert r.errors and r.errors[0].startswith("Response not JSON")


def test_errors_are_joined_in_exception_message():
    r = Response('{"code":0,"errors":["first","second"],"model":null}')

    with pytest.raises(ResponseException) as e:
        r.check_for_errors()
    assert str(e.value) == "first\nsecond"
    assert e.value.response is r


def test_positive_code_without_errors_fails_with_code_message():
    r = Response('{"code":3,"errors":[],"model":null}')

    with pytest.raises(ResponseException, match="Response code 3"):
        r.check_for_errors()


def test_http_status_other_than_200_fails():
    http = HttpResponse(status=500, headers={}, body_bytes=b'{"code":0,"errors":[],"model":null}')
    r = Response.from_http(http)

    assert r.http_status == 500
    with pytest.raises(ResponseException, match="HTTP status 500"):
        r.check_for_errors()


def test_ok_http_response_with_null_model():
    http = HttpResponse(status=200, headers={}, body_bytes=b'{"code":0,"errors":[],"model":null}')
    r = Response.from_http(http).check_for_errors()

    assert r.is_model_null()
