import io
from unittest.mock import patch

import pytest

from nscang.parse import InputFormatError
from nscang.session import ClientMode, ServerError, Session, read_chunks


class FakeConnection:
    def __init__(self, replies):
        self.replies = list(replies)
        self.written = []
        self.closed = False

    def write(self, data):
        self.written.append(data)

    def read_line(self):
        return self.replies.pop(0)

    def close(self):
        self.closed = True


def test_read_chunks_splits_on_separator():
    stream = io.StringIO("a\x17b\x17c")
    assert list(read_chunks(stream, "\x17")) == ["a", "b", "c"]


def test_read_chunks_trailing_separator_gives_no_empty_tail():
    stream = io.StringIO("one\ntwo\n")
    assert list(read_chunks(stream, "\n")) == ["one", "two"]


def test_read_chunks_long_record_spanning_blocks():
    record = "x" * 1000
    stream = io.StringIO(record + "\x17" + record)
    assert list(read_chunks(stream, "\x17")) == [record, record]


def test_read_chunks_empty_stream():
    assert list(read_chunks(io.StringIO(""), "\x17")) == []


def test_host_check_result_dialogue():
    conn = FakeConnection(["MOIN 1", "OKAY", "OKAY", "OKAY"])
    session = Session(conn, ClientMode.CHECK_RESULT, "\t", "\x17")
    with patch("nscang.parse.time.time", return_value=1000):
        session.run(io.StringIO("host\t0\tOK\x17"))
    command = b"[1000] PROCESS_HOST_CHECK_RESULT;host;0;OK\n"
    assert conn.written[0].startswith(b"MOIN 1 ")
    assert len(conn.written[0]) == len(b"MOIN 1 ") + 8 + 1
    assert conn.written[1] == b"PUSH %d\n" % len(command)
    assert conn.written[2] == command
    assert conn.written[3] == b"QUIT\n"
    assert conn.closed


def test_service_check_result_dialogue():
    conn = FakeConnection(["MOIN 1", "OKAY", "OKAY", "OKAY"])
    session = Session(conn)
    with patch("nscang.parse.time.time", return_value=1000):
        session.run(io.StringIO("h\tsvc\t2\tbad\n"))
    assert conn.written[2] == (
        b"[1000] PROCESS_SERVICE_CHECK_RESULT;h;svc;2;bad\n"
    )


def test_command_mode_uses_newline_separator():
    conn = FakeConnection(["moin 1", "okay", "okay", "okay", "okay", "okay"])
    session = Session(conn, ClientMode.COMMAND, "\t", "\x17")
    assert session.separator == "\n"
    session.run(io.StringIO("[123] FIRST\n[456] SECOND\n"))
    assert conn.written[2] == b"[123] FIRST\n"
    assert conn.written[4] == b"[456] SECOND\n"
    assert conn.written[-1] == b"QUIT\n"


def test_empty_records_are_skipped():
    conn = FakeConnection(["MOIN 1", "OKAY"])
    Session(conn).run(io.StringIO("\x17\n\x17"))
    assert len(conn.written) == 2
    assert conn.written[1] == b"QUIT\n"


def test_fail_on_handshake_raises_server_error():
    conn = FakeConnection(["FAIL go away"])
    with pytest.raises(ServerError, match="Server said: FAIL go away"):
        Session(conn).run(io.StringIO(""))
    assert conn.closed
    assert len(conn.written) == 1


def test_unexpected_moin_response_bails():
    conn = FakeConnection(["HELLO"])
    with pytest.raises(ServerError, match="unexpected MOIN response"):
        Session(conn).run(io.StringIO(""))
    assert conn.written[-1] == b"BAIL Received unexpected MOIN response\n"


def test_unsupported_protocol_version_bails():
    conn = FakeConnection(["MOIN 2"])
    with pytest.raises(ServerError, match="Protocol version 2 not supported"):
        Session(conn).run(io.StringIO(""))
    assert conn.closed


def test_moin_without_version_bails():
    conn = FakeConnection(["MOIN"])
    with pytest.raises(ServerError, match="Cannot parse MOIN response"):
        Session(conn).run(io.StringIO(""))


def test_unexpected_push_response_bails():
    conn = FakeConnection(["MOIN 1", "WHAT"])
    with pytest.raises(ServerError, match="unexpected PUSH response"):
        Session(conn).run(io.StringIO("h\t0\tOK"))
    assert conn.written[-1] == b"BAIL Received unexpected PUSH response\n"


def test_bail_after_command_raises():
    conn = FakeConnection(["MOIN 1", "OKAY", "BAIL nope"])
    with pytest.raises(ServerError, match="BAIL nope"):
        Session(conn).run(io.StringIO("h\t0\tOK"))
    assert conn.closed


def test_malformed_check_result_raises():
    conn = FakeConnection(["MOIN 1"])
    with pytest.raises(InputFormatError):
        Session(conn).run(io.StringIO("only-one-field"))
    assert conn.closed