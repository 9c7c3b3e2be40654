"""Tests for the IAM token exchange client."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from iam_auth.errors import ErrorCategory, TokenExchangeError
from iam_auth.exchange import TokenExchangeClient, build_request_body
from iam_auth.models import CredentialIdentity

ENDPOINT = "https://iam.example.com"
API_KEY = "test-api-key-0123456789"


def make_response(status_code=200, body=None, content_type="application/json"):
    """Build a mock requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = {"Content-Type": content_type} if content_type else {}
    if isinstance(body, (dict, list)):
        text = json.dumps(body)
    else:
        text = body or ""
    response.text = text

    def _json():
        return json.loads(text)

    response.json.side_effect = _json
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def identity():
    return CredentialIdentity(ENDPOINT, API_KEY)


@pytest.fixture
def client(session):
    return TokenExchangeClient(session=session, timeout=5.0, clock=lambda: 1000.0)


class TestBuildRequestBody:
    """Tests for build_request_body."""

    def test_fixed_fields_and_key(self):
        body = build_request_body("abc")

        assert body == (
            b"grant_type=urn%3Aibm%3Aparams%3Aoauth%3Agrant-type%3Aapikey"
            b"&response_type=cloud_iam&apikey=abc"
        )

    def test_api_key_is_url_encoded(self):
        body = build_request_body("a b&c=d")
        assert body.endswith(b"apikey=a+b%26c%3Dd")


class TestTokenExchangeClient:
    """Tests for TokenExchangeClient.exchange."""

    def test_success_returns_record(self, client, session, identity):
        session.post.return_value = make_response(
            200, {"access_token": "tok-1", "expires_in": 3600, "token_type": "Bearer"}
        )

        record = client.exchange(identity, 0.85)

        assert record.access_token == "tok-1"
        assert record.issued_lifetime_seconds == 3600
        assert record.refresh_deadline == 1000.0 + 3060

    def test_request_shape(self, client, session, identity):
        session.post.return_value = make_response(
            200, {"access_token": "tok", "expires_in": 3600}
        )

        client.exchange(identity)

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == "https://iam.example.com/identity/token"
        assert kwargs["data"] == build_request_body(API_KEY)
        assert kwargs["timeout"] == 5.0
        headers = kwargs["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["charset"] == "utf-8"
        assert headers["Accept"] == "application/json"
        assert headers["Content-Length"] == str(len(kwargs["data"]))

    def test_trailing_slash_endpoint(self, client, session):
        session.post.return_value = make_response(
            200, {"access_token": "tok", "expires_in": 3600}
        )

        client.exchange(CredentialIdentity(ENDPOINT + "/", API_KEY))

        assert session.post.call_args[0][0] == "https://iam.example.com/identity/token"

    def test_non_200_raises_with_details(self, client, session, identity):
        session.post.return_value = make_response(
            400,
            {"errorCode": "BXNIM0415E", "errorMessage": "Provided API key could not be found"},
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        error = exc_info.value
        assert error.status_code == 400
        assert error.content_type == "application/json"
        assert error.endpoint == "https://iam.example.com/identity/token"
        assert "BXNIM0415E" in error.response_body
        assert "400" in str(error)
        assert error.category == ErrorCategory.PERMANENT
        assert session.post.call_count == 1

    @pytest.mark.parametrize(
        "status,category",
        [
            (401, ErrorCategory.AUTH),
            (403, ErrorCategory.AUTH),
            (429, ErrorCategory.TRANSIENT),
            (500, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
        ],
    )
    def test_status_categories(self, client, session, identity, status, category):
        session.post.return_value = make_response(status, "error", "text/plain")

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        assert exc_info.value.category == category

    def test_non_200_without_content_type(self, client, session, identity):
        session.post.return_value = make_response(502, "", None)

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        assert exc_info.value.status_code == 502
        assert exc_info.value.content_type is None

    def test_error_body_never_contains_api_key(self, client, session, identity):
        session.post.return_value = make_response(
            400, f"bad request for apikey {API_KEY}", "text/plain"
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        assert API_KEY not in exc_info.value.response_body
        assert API_KEY not in str(exc_info.value)

    def test_transport_error_wrapped(self, client, session, identity):
        session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        error = exc_info.value
        assert error.status_code is None
        assert isinstance(error.cause, requests.ConnectionError)
        assert error.is_retryable

    def test_timeout_wrapped(self, client, session, identity):
        session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(TokenExchangeError):
            client.exchange(identity)

    def test_undecodable_body(self, client, session, identity):
        session.post.return_value = make_response(200, "<html>oops</html>", "text/html")

        with pytest.raises(TokenExchangeError) as exc_info:
            client.exchange(identity)

        assert exc_info.value.status_code == 200
        assert exc_info.value.cause is not None

    def test_missing_access_token(self, client, session, identity):
        session.post.return_value = make_response(200, {"expires_in": 3600})

        with pytest.raises(TokenExchangeError):
            client.exchange(identity)

    def test_supplied_session_not_closed(self, session):
        with TokenExchangeClient(session=session):
            pass

        session.close.assert_not_called()
