import base64
import datetime
import hashlib
import hmac

from exchange.credentials import CredentialSet
from exchange.signer import build_headers, iso_timestamp, sign

TS = "2024-05-01T12:00:00.123Z"


def test_sign_is_deterministic():
    a = sign("secret", TS, "GET", "/api/v5/account/positions?instId=BTC-USDT-SWAP")
    b = sign("secret", TS, "GET", "/api/v5/account/positions?instId=BTC-USDT-SWAP")
    assert a == b


def test_sign_matches_reference_hmac():
    path = "/api/v5/market/ticker?instId=BTC-USDT"
    expected = base64.b64encode(
        hmac.new(b"s3cr3t", f"{TS}GET{path}".encode(), hashlib.sha256).digest()
    ).decode()
    assert sign("s3cr3t", TS, "get", path) == expected


def test_changing_any_input_changes_signature():
    base = sign("secret", TS, "GET", "/p", "")
    assert sign("other", TS, "GET", "/p", "") != base
    assert sign("secret", "2024-05-01T12:00:00.124Z", "GET", "/p", "") != base
    assert sign("secret", TS, "POST", "/p", "") != base
    assert sign("secret", TS, "GET", "/q", "") != base
    assert sign("secret", TS, "GET", "/p", "{}") != base


def test_iso_timestamp_has_millis_and_z():
    now = datetime.datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=datetime.timezone.utc)
    assert iso_timestamp(now) == "2024-01-02T03:04:05.678Z"


def test_build_headers_sets_okx_fields():
    cred = CredentialSet("key-1", "secret-1", "pass-1")
    headers = build_headers(cred, TS, "GET", "/p")
    assert headers["OK-ACCESS-KEY"] == "key-1"
    assert headers["OK-ACCESS-PASSPHRASE"] == "pass-1"
    assert headers["OK-ACCESS-TIMESTAMP"] == TS
    assert headers["OK-ACCESS-SIGN"] == sign("secret-1", TS, "GET", "/p")
    assert "x-simulated-trading" not in headers


def test_build_headers_simulated_flag():
    cred = CredentialSet("k", "s", "p")
    assert build_headers(cred, TS, "GET", "/p", simulated=True)["x-simulated-trading"] == "1"
