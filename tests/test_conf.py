import re
import socket

import pytest

from nscang.conf import (
    MAX_VALUE_LENGTH,
    Config,
    ConfigError,
    load_config,
    parse_config,
)


def test_defaults():
    config = Config()
    assert config.password == "change-me"
    assert config.port == "5668"
    assert config.server == "localhost"
    assert config.timeout == 15
    assert config.delay == 0
    assert config.identity is None
    assert config.tls_ciphers == (
        "PSK-AES256-CBC-SHA:PSK-AES128-CBC-SHA:"
        "PSK-3DES-EDE-CBC-SHA:PSK-RC4-SHA"
    )


def test_empty_and_comment_lines_keep_defaults():
    text = "\n# a comment\n   \n\t# another\n"
    assert parse_config(text) == Config()


def test_string_values():
    config = parse_config("server = monitor.example.com\nport = 5669\n")
    assert config.server == "monitor.example.com"
    assert config.port == "5669"


def test_integer_values():
    config = parse_config("timeout = 42\ndelay=7\n")
    assert config.timeout == 42
    assert config.delay == 7


@pytest.mark.parametrize("text, expected", [("0x1f", 31), ("010", 8)])
def test_integer_bases(text, expected):
    assert parse_config(f"timeout = {text}\n").timeout == expected


@pytest.mark.parametrize("quote", ['"', "'"])
def test_quoted_value_keeps_spaces_and_hashes(quote):
    value = "web front # 1"
    config = parse_config(f"identity = {quote}{value}{quote} # note\n")
    assert config.identity == value


def test_backslash_escapes_space():
    config = parse_config("identity = web\\ front\n")
    assert config.identity == "web front"


def test_trailing_comment_after_value():
    config = parse_config("port = 5669 # comment\n")
    assert config.port == "5669"


def test_line_continuation():
    parts = ("monitor.", "example.com")
    text = f"server = {parts[0]}\\\n{parts[1]}\n"
    assert parse_config(text).server == "".join(parts)


def test_crlf_line_endings():
    config = parse_config("server = host.example.com\r\nport = 1\r\n")
    assert config.server == "host.example.com"
    assert config.port == "1"


def test_last_line_without_newline():
    assert parse_config("server = last.example.com").server == (
        "last.example.com"
    )


@pytest.mark.parametrize(
    "text, message",
    [
        ("bogus = 1\n", "Unknown variable name `bogus'"),
        ("port 5669\n", "Expected `=' after `port'"),
        ("port =\n", "No value assigned to `port'"),
        ("port = # nothing\n", "No value assigned to `port'"),
        ("port = 1 2\n", "Unexpected stuff after `1'"),
        ("timeout = abc\n", "Nonnumeric value assigned to `timeout'"),
        ("timeout = 0x\n", "Nonnumeric value assigned to `timeout'"),
        ("= value\n", "Cannot parse line"),
    ],
)
def test_errors(text, message):
    with pytest.raises(ConfigError, match=re.escape(message)):
        parse_config(text, "test.cfg")


def test_error_reports_path_and_line_number():
    lines = ["", "# comment", "bogus = 1"]
    number = lines.index("bogus = 1") + 1
    with pytest.raises(ConfigError) as info:
        parse_config("\n".join(lines) + "\n", "test.cfg")
    assert str(info.value).startswith(f"test.cfg:{number}:")


def test_value_length_limit():
    longest = "x" * MAX_VALUE_LENGTH
    assert parse_config(f"identity = {longest}\n").identity == longest
    with pytest.raises(ConfigError, match="too long"):
        parse_config(f"identity = {longest}x\n")


def test_load_config_defaults_identity_to_host_name(tmp_path):
    path = tmp_path / "send_nsca.cfg"
    path.write_text("server = monitor.example.com\n")
    config = load_config(path)
    assert config.server == "monitor.example.com"
    assert config.identity == socket.gethostname()


def test_load_config_keeps_configured_identity(tmp_path):
    path = tmp_path / "send_nsca.cfg"
    path.write_text("identity = probe\n")
    assert load_config(path).identity == "probe"


def test_load_config_missing_file(tmp_path):
    missing = tmp_path / "absent.cfg"
    with pytest.raises(ConfigError, match="Cannot open"):
        load_config(missing)