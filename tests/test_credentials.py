from types import SimpleNamespace

from exchange.credentials import CredentialSet, load_credentials, split_csv


def _settings(**kw):
    base = dict(
        OKX_API_KEY="",
        OKX_SECRET_KEY="",
        OKX_PASSPHRASE="",
        OKX_API_KEYS="",
        OKX_SECRET_KEYS="",
        OKX_PASSPHRASES="",
    )
    base.update(kw)
    return SimpleNamespace(**base)


def test_split_csv_drops_blanks():
    assert split_csv(" a, ,b,") == ["a", "b"]
    assert split_csv(None) == []


def test_multi_sets_keep_order():
    creds = load_credentials(
        _settings(OKX_API_KEYS="k0,k1", OKX_SECRET_KEYS="s0,s1", OKX_PASSPHRASES="p0,p1")
    )
    assert [c.key for c in creds] == ["k0", "k1"]
    assert all(c.complete for c in creds)


def test_mismatched_lists_fall_back_to_single_set():
    creds = load_credentials(
        _settings(
            OKX_API_KEYS="k0,k1",
            OKX_SECRET_KEYS="s0",
            OKX_PASSPHRASES="p0,p1",
            OKX_API_KEY="single",
            OKX_SECRET_KEY="sec",
            OKX_PASSPHRASE="pass",
        )
    )
    assert creds == [CredentialSet("single", "sec", "pass")]


def test_missing_single_set_is_incomplete():
    creds = load_credentials(_settings(OKX_API_KEY="only-key"))
    assert len(creds) == 1
    assert creds[0].complete is False


def test_repr_hides_secret():
    text = repr(CredentialSet("abcdefgh", "very-secret", "phrase"))
    assert "very-secret" not in text
    assert "phrase" not in text
