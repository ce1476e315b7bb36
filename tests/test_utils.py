"""Tests for sshfleet.utils helpers."""

from unittest.mock import patch

from sshfleet.utils import (
    env_key_escape,
    exit_code_from_returncode,
    hostname_align,
    local_shell,
    shell_escape,
    signal_name,
)


def test_shell_escape_always_quotes():
    assert shell_escape("abc") == "'abc'"
    assert shell_escape("") == "''"
    assert shell_escape("it's") == "'it'\"'\"'s'"


def test_env_key_escape():
    assert env_key_escape("prod-eu.1") == "prod_eu_1"


def test_hostname_align():
    names = ["a", "abc"]
    assert hostname_align("a", names) == "   "
    assert hostname_align("abc", names) == " "
    assert hostname_align("a", [], "-") == "-"


def test_exit_code_from_returncode():
    assert exit_code_from_returncode(0) == 0
    assert exit_code_from_returncode(3) == 3
    assert exit_code_from_returncode(-9) == 137


def test_signal_name():
    assert signal_name(-15) == "SIGTERM"
    assert signal_name(1) is None


@patch("sshfleet.utils.is_windows", return_value=True)
def test_local_shell_windows(mock_win):
    assert local_shell() == ("cmd", "/C")


@patch("sshfleet.utils.is_windows", return_value=False)
def test_local_shell_posix(mock_win):
    assert local_shell() == ("bash", "-c")
