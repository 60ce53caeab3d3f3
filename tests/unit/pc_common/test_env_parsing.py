import pytest

from pc_common.config import parse_bool_env, parse_float_env, parse_int_env, parse_list_env


pytestmark = pytest.mark.unit_common


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("TRUE", True), (" yes ", True), ("on", True), ("0", False), ("no", False), (None, None)],
)
def test_parse_bool_env(value, expected):
    assert parse_bool_env(value) is expected


def test_parse_numbers():
    assert parse_int_env("3") == 3
    assert parse_int_env("3.5") is None
    assert parse_int_env(None) is None
    assert parse_float_env("2.5") == 2.5
    assert parse_float_env("fast") is None


def test_parse_list_env():
    assert parse_list_env("Critical, Important,,") == ["Critical", "Important"]
    assert parse_list_env("") == []
    assert parse_list_env(None) is None
