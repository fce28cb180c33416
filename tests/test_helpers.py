"""Tests for keycloak_session/utils/helpers.py."""

import pytest

from keycloak_session.utils import format_duration, mask_token


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0s"),
        (59, "59s"),
        (65, "1m 5s"),
        (3605, "1h 0m 5s"),
        (90061, "1d 1h 1m 1s"),
        (299.9, "4m 59s"),
        (-30, "-30s"),
        (None, "unknown"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_mask_token():
    assert mask_token(None) == "<none>"
    assert mask_token("short") == "***"
    assert mask_token("eyJhbGciOiJIUzI1NiJ9.payload.sig") == "***.sig"
