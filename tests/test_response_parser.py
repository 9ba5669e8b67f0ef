import json

import pytest

from AttioConnect.exceptions import (
    InvalidResponseError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
)
from AttioConnect.models import HTTPResponse, ListResponse
from AttioConnect.response_parser import ResponseParser, parse_pagination

CONTEXT = {
    'url': "https://api.attio.com/v2/objects/people/records/123",
    'method': "GET",
    'params': None,
    'headers': {'Authorization': "[REDACTED]"},
}


def make_response(status=200, body="", headers=None):
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    return HTTPResponse(status_code=status, headers=headers or {}, body=body)


@pytest.mark.parametrize("body", ["", "   \n"])
def test_empty_body_parses_to_none(body):
    assert ResponseParser.parse(make_response(204, body)) is None


def test_json_payload_is_returned_as_is():
    payload = {'data': {'id': {'record_id': "123"}, 'values': {}}}
    assert ResponseParser.parse(make_response(200, payload)) == payload
    assert ResponseParser.parse(make_response(200, [1, 2])) == [1, 2]


def test_pagination_envelope_becomes_list_response():
    payload = {
        'data': [{'id': 1}, {'id': 2}],
        'pagination': {'has_next_page': True, 'next_cursor': "c2", 'total_count': None, 'extra': "x"},
    }
    result = ResponseParser.parse(make_response(200, payload))

    assert isinstance(result, ListResponse)
    assert result.data == payload['data']
    assert result.pagination == {'has_next_page': True, 'next_cursor': "c2"}
    assert result.has_next_page
    assert result.next_cursor == "c2"
    assert [item['id'] for item in result] == [1, 2]
    assert result.raw == payload


def test_data_without_pagination_is_plain_payload():
    payload = {'data': [{'id': 1}]}
    assert ResponseParser.parse(make_response(200, payload)) == payload


def test_parse_pagination_ignores_non_mappings():
    assert parse_pagination(None) == {}
    assert parse_pagination(["has_next_page"]) == {}
    assert parse_pagination({'page_size': 0, 'has_previous_page': False}) == {
        'page_size': 0, 'has_previous_page': False,
    }


def test_invalid_json_raises_invalid_response_error():
    with pytest.raises(InvalidResponseError) as excinfo:
        ResponseParser.parse(make_response(200, "<html>oops</html>"), CONTEXT)

    error = excinfo.value
    assert error.message.startswith("Invalid JSON response:")
    assert error.http_status == 200
    assert error.http_body == "<html>oops</html>"
    assert error.request_url == CONTEXT['url']
    assert isinstance(error.__cause__, ValueError)


def test_not_found_is_raised_with_context():
    response = make_response(404, {'error': "Not Found"}, {'X-Request-Id': "req_404"})

    with pytest.raises(NotFoundError) as excinfo:
        ResponseParser.parse(response, CONTEXT)

    error = excinfo.value
    assert error.http_status == 404
    assert error.message.endswith("Not Found")
    assert error.request_id == "req_404"
    assert error.request_method == "GET"
    assert error.to_dict()['request']['url'] == CONTEXT['url']


def test_rate_limit_carries_retry_after():
    response = make_response(429, {'error': "Too many requests"}, {'Retry-After': "5"})

    with pytest.raises(RateLimitError) as excinfo:
        ResponseParser.parse(response)
    assert excinfo.value.retry_after == 5


@pytest.mark.parametrize("headers", [{}, {'Retry-After': "later"}])
def test_rate_limit_without_usable_retry_after(headers):
    with pytest.raises(RateLimitError) as excinfo:
        ResponseParser.parse(make_response(429, "", headers))
    assert excinfo.value.retry_after is None


def test_service_unavailable_carries_retry_after():
    with pytest.raises(ServiceUnavailableError) as excinfo:
        ResponseParser.parse(make_response(503, "", {'retry-after': "12"}))
    assert excinfo.value.retry_after == 12


@pytest.mark.parametrize("header", ["X-Request-Id", "Request-Id", "X-Attio-Request-Id"])
def test_invalid_json_error_reads_every_request_id_header(header):
    with pytest.raises(InvalidResponseError) as excinfo:
        ResponseParser.parse(make_response(200, "not json", {header: "req_abc"}))
    assert excinfo.value.request_id == "req_abc"
