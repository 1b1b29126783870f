import pytest

from respite import error, resp


@pytest.mark.parametrize(
    ("wire", "expected"),
    [
        (b":42\r\n", 42),
        (b":-7\r\n", -7),
        (b":9223372036854775807\r\n", 2**63 - 1),
        (b"$5\r\nhello\r\n", b"hello"),
        (b"$0\r\n\r\n", b""),
        (b"$-1\r\n", None),
        (b"*2\r\n$1\r\na\r\n$1\r\nb\r\n", [b"a", b"b"]),
        (b"*3\r\n$1\r\na\r\n$-1\r\n$1\r\nc\r\n", [b"a", None, b"c"]),
        (b"*0\r\n", []),
        (b"*-1\r\n", None),
        (b"*2\r\n*1\r\n:1\r\n+OK\r\n", [[1], "OK"]),
    ],
)
def test_decode(make_transport, wire, expected):
    transport = make_transport(wire)

    assert resp.read_reply(transport) == expected
    assert transport.remaining() == b""


def test_status_is_marked(make_transport):
    reply = resp.read_reply(make_transport(b"+OK\r\n"))

    assert isinstance(reply, resp.Status)
    assert reply == "OK"


def test_bulk_is_binary_safe(make_transport):
    payload = b"\r\n\x00$3\r\n"
    wire = b"$%i\r\n%s\r\n" % (len(payload), payload)

    assert resp.read_reply(make_transport(wire)) == payload


def test_error(make_transport):
    with pytest.raises(error.ServerError) as exc_info:
        resp.read_reply(make_transport(b"-ERR wrong type\r\n"))

    assert exc_info.value.message == "ERR wrong type"
    assert exc_info.value.code == "ERR"
    assert str(exc_info.value) == "ERR wrong type"


def test_nested_error_is_raised_after_the_array_is_consumed(make_transport):
    transport = make_transport(b"*3\r\n+OK\r\n-WRONGTYPE not a list\r\n:1\r\n+NEXT\r\n")

    with pytest.raises(error.ServerError, match="WRONGTYPE"):
        resp.read_reply(transport)

    assert transport.remaining() == b"+NEXT\r\n"


@pytest.mark.parametrize(
    "wire",
    [b"?what\r\n", b"\r\n", b":abc\r\n", b"$x\r\n", b"$-2\r\n", b"*many\r\n"],
)
def test_protocol_errors(make_transport, wire):
    with pytest.raises(error.ProtocolError):
        resp.read_reply(make_transport(wire))


def test_stream_factory_receives_count(make_transport):
    transport = make_transport(b"*2\r\n$1\r\na\r\n$1\r\nb\r\n")
    seen = []

    def factory(tr, count):
        seen.append((tr, count))
        return "cursor"

    assert resp.read_reply(transport, stream_factory=factory) == "cursor"
    assert seen == [(transport, 2)]
    assert transport.remaining() == b"$1\r\na\r\n$1\r\nb\r\n"


@pytest.mark.parametrize("wire", [b"*0\r\n", b"*-1\r\n", b"$1\r\na\r\n"])
def test_stream_factory_not_used_for_empty_or_scalar_replies(make_transport, wire):
    def factory(_tr, _count):
        pytest.fail("factory should not be called")

    resp.read_reply(make_transport(wire), stream_factory=factory)


@pytest.mark.parametrize(
    "wire",
    [
        b"+OK\r\n",
        b"-ERR no\r\n",
        b":1\r\n",
        b"$3\r\nabc\r\n",
        b"$-1\r\n",
        b"*2\r\n$1\r\na\r\n*1\r\n-ERR nested\r\n",
        b"*-1\r\n",
    ],
)
def test_discard_reply(make_transport, wire):
    transport = make_transport(wire + b"+NEXT\r\n")
    resp.discard_reply(transport)

    assert transport.remaining() == b"+NEXT\r\n"
