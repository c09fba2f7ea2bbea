import pytest

from bioren_backend.app.auth.bearer import parse_bearer
from bioren_backend.app.core.errors import MalformedAuthorization, Unauthorized


def test_strips_prefix_and_whitespace():
    assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"
    assert parse_bearer("Bearer    abc.def.ghi  ") == "abc.def.ghi"


@pytest.mark.parametrize("header", [None, "", "abc.def.ghi", "bearer abc", "BEARER abc", "Basic dXNlcjpwdw=="])
def test_rejects_missing_or_wrong_prefix(header):
    with pytest.raises(MalformedAuthorization):
        parse_bearer(header)


@pytest.mark.parametrize("header", ["Bearer ", "Bearer    ", "Bearer"])
def test_rejects_empty_token(header):
    with pytest.raises(MalformedAuthorization):
        parse_bearer(header)


def test_malformed_header_is_unauthorized():
    assert issubclass(MalformedAuthorization, Unauthorized)
