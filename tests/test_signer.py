import pytest
from botocore.credentials import Credentials

from sigloop import ConfigurationError, Request, Signer, SigningConfig
from sigloop.signer import scope_from_url


def _req(url="https://kinesis.us-east-1.amazonaws.com/"):
    return Request(
        "post",
        url,
        {"X-Amz-Target": "Kinesis_20131202.PutRecord", "Content-Type": "application/x-amz-json-1.1"},
        b'{"StreamName": "foo"}',
    )


def test_sign_adds_auth_headers_and_keeps_original():
    s = Signer(Credentials("AKIDEXAMPLE", "SECRET"), SigningConfig(region="us-east-1", service="kinesis"))
    unsigned = _req()
    signed = s.sign(unsigned)
    auth = signed.header("authorization")
    assert auth.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/us-east-1/kinesis/aws4_request" in auth
    assert "x-amz-target" in auth  # target header is part of the signature
    assert signed.header("X-Amz-Date")
    assert signed.header("x-amz-target") == "Kinesis_20131202.PutRecord"
    assert signed.body == unsigned.body
    assert signed.method == "POST"
    # the unsigned request is untouched
    assert unsigned.header("Authorization") is None


def test_session_token_is_sent():
    s = Signer(access_key="AKID", secret_key="SECRET", session_token="TOKEN")
    signed = s.sign(_req())
    assert signed.header("X-Amz-Security-Token") == "TOKEN"


def test_scope_from_url():
    assert scope_from_url("https://kinesis.us-east-1.amazonaws.com") == ("kinesis", "us-east-1")
    assert scope_from_url("https://dynamodb.eu-west-1.amazonaws.com/x") == ("dynamodb", "eu-west-1")
    assert scope_from_url("http://127.0.0.1:4566") == (None, None)


def test_unknown_scope_is_configuration_error():
    s = Signer(access_key="AKID", secret_key="SECRET")
    with pytest.raises(ConfigurationError) as ei:
        s.sign(_req("http://localhost:4566/"))
    assert ei.value.kind == "InvalidSigningScope"


@pytest.mark.parametrize(
    "creds, kind",
    [
        (None, "NoCredentials"),
        (Credentials("", "SECRET"), "InvalidCredentials"),
        (Credentials("AKID", ""), "InvalidCredentials"),
    ],
)
def test_bad_credentials(creds, kind):
    s = Signer(creds, region="us-east-1", service="kinesis")
    with pytest.raises(ConfigurationError) as ei:
        s.sign(_req())
    assert ei.value.kind == kind


def test_from_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIDENV")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "SECRETENV")
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
    monkeypatch.delenv("AWS_SECURITY_TOKEN", raising=False)
    s = Signer.from_env(region="us-east-1", service="kinesis")
    assert "Credential=AKIDENV/" in s.sign(_req()).header("Authorization")
