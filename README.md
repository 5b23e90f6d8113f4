# nscang

`nscang` submits passive check results and raw monitoring commands to a
monitoring server. It speaks a small line-based protocol (`MOIN`, `PUSH`,
`QUIT`, answered with `OKAY`, `FAIL` or `BAIL`) over TLS with a pre-shared
key (PSK).

It provides two things:

* the `send_nsca` command, which reads check results from standard input and
  sends them to the server;
* the `Notifier` class, for sending host and service results from Python code.

## Installation

```
pip install .
```

Python 3.13 or later is required, because the PSK handshake uses
`ssl.SSLContext.set_psk_client_callback`. The package has no third-party
dependencies. The tests use pytest (`pip install .[test]`).

## The `send_nsca` command

`send_nsca` reads records from standard input. Each record is one check
result, and its fields are separated by a delimiter (a tab by default):

```
<host>	<status>	<output>                  host check result
<host>	<service>	<status>	<output>       service check result
```

Records are separated by the ETB character (`\x17`) by default. A trailing
newline is removed from each record, then backslashes and newlines in it are
escaped before it is sent. Empty records are skipped. A record with the wrong
number of fields ends the run with an error.

```
printf 'web01\thttp\t0\tHTTP OK\n' | send_nsca -c send_nsca.cfg
```

With `-C`, each input line is sent as a raw monitoring command instead.
Records are then separated by newlines, and a line that does not start with
`[` gets the current time stamp put in front of it.

Options:

```
 -C               Accept `raw' monitoring commands.
 -c <file>        Use the specified configuration <file>.
 -D <delay>       Sleep up to <delay> seconds on startup.
 -d <delimiter>   Expect <delimiter> to separate input fields.
 -e <separator>   Expect <separator> to separate check results.
 -H <server>      Connect and talk to the specified <server>.
 -h               Print this usage information and exit.
 -o <timeout>     Use the specified connection <timeout>.
 -p <port>        Connect to the specified <port> on the server.
 -S               Write messages to the standard error output.
 -s               Write messages to syslog.
 -t               Ignore this option for backward compatibility.
 -V               Print version information and exit.
 -v [-v [-v]]     Increase the verbosity level.
```

`--help` and `--version`, given as the only argument, do the same as `-h`
and `-V`.

The delimiter and separator accept a single character, a backslash escape
such as `\t` or `\n`, or a character code up to 127 written as octal with a
leading zero (`0101`), hexadecimal with `0x` (`0x41`), or a numeric escape
(`\101`, `\x17`). The delimiter may not be ETB, a newline, NUL or a
backslash, and it may not be the same as the separator.

By default only warnings and errors are written, to standard error. Each
`-v` raises the level: notices, then the protocol dialogue, then debugging
output. `-S` and `-s` choose standard error and/or syslog.

The command exits with status 0 on success and 1 if the command line, the
configuration, the input, the connection or the server's reply was not
accepted.

### Configuration file

Without `-c`, the configuration is read from `/etc/send_nsca.cfg`. The file
holds `key = value` lines. Values may be quoted with single or double quotes;
an unquoted value ends at a blank or `#`. A backslash escapes the next
character, `#` starts a comment, and a backslash at the end of a line
continues it on the next one. `delay` and `timeout` take integers, which may
be written in decimal, octal (leading zero) or hexadecimal (`0x`).

```
server   = "monitor.example.com"
port     = 5668
identity = "web01"
password = "secret"
timeout  = 15
delay    = 0
tls_ciphers = "PSK-AES256-CBC-SHA:PSK-AES128-CBC-SHA"
```

Known keys are `delay`, `encryption_method`, `identity`, `password`, `port`,
`server`, `timeout` and `tls_ciphers`; any other key is an error.
`encryption_method` is accepted but not used. Unless set, `server` is
`localhost`, `port` is `5668`, `timeout` is 15 seconds (0 means no
timeout), `delay` is 0, and `identity` is the local host name. `-H`, `-p`,
`-D` and `-o` override the file.

Configuration can also be read from Python with `load_config(path)` or
`parse_config(text, path)` from `nscang.conf`, which return a `Config`
dataclass; problems are reported as `ConfigError`.

## Sending results from Python

```python
from nscang.notifier import Notifier

notifier = Notifier("monitor.example.com", 5668, "web01", "secret", None)

notifier.host_result("web01", 0, "Host is up", 5)
notifier.svc_result("web01", "http", 2, "Connection refused", 5)
```

`host_result` and `svc_result` open the connection and do the protocol
handshake as needed; the timeout defaults to 5 seconds. If a submission
fails, the connection is reset and the submission is tried once more; if that
fails too, an `NscaError` is raised that says what went wrong (a timeout, a
`FAIL` or `BAIL` from the server, a protocol mismatch, and so on). A
`Notifier` can be used as a context manager, which closes the connection on
exit. Its `host` and `port` are readable.

The lower-level `nscang.protocol.Client` offers `send_moin`, `send_push`,
`send_quit`, `disconnect` and `close` for callers who want to manage the
conversation themselves; it too is a context manager, and failures are
raised as `NscaError`. `classify_response(line)` and
`format_push_command(host, service, status, message, now)` in the same
module expose the reply classification and command formatting.

## Building blocks

* `nscang.parse`: `parse_check_result(data, delimiter, now)` and
  `parse_command(line, now)` turn input records into monitoring commands
  such as `[1700000000] PROCESS_SERVICE_CHECK_RESULT;web01;http;0;OK`;
  malformed input raises `InputFormatError`. `escape(text)` does the
  backslash and newline escaping.
* `nscang.session`: `Session` runs one client conversation over any
  connection object with `write`, `read_line` and `close`, and
  `read_chunks(stream, separator)` splits input into records. A refused
  request raises `ServerError`.
* `nscang.auth`: `make_psk_callback(identity, password)` builds the PSK
  callback for an `ssl.SSLContext`.
* `nscang.cli`: `parse_options(argv)`, `parse_backslash_escape(sequence)` and
  `main(argv)` behind the `send_nsca` command.

## What this package does not do

This package is a client only. It contains no server that accepts check
results and hands them to a monitoring system; it needs such a server to
talk to.