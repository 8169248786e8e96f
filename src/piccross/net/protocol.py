"""
Line protocol spoken between game clients and the piccross server.

    on connect      server -> client   <id>
    request         client -> server   <id>#P<opcode>#<payload...>
    reply           server -> client   <id>#<response>

Opcodes:
    0  end session        payload 0          connection closes
    1  submit config      config string      0
    2  submit name        name               0
    3  submit result      time#score         0
    4  request config     0                  shared config, or 0 when none is saved
"""
from enum import IntEnum
from typing import Tuple

import msgspec

FIELD_SEPARATOR = "#"
OPCODE_PREFIX = "P"
EMPTY_PAYLOAD = "0"
CLOSING_ACK = "Closing Connection"
LINE_TERMINATOR = "\n"
ENCODING = "utf-8"


class MalformedMessage(ValueError):
    pass


class Opcode(IntEnum):
    END = 0
    SUBMIT_CONFIG = 1
    SUBMIT_NAME = 2
    SUBMIT_RESULT = 3
    REQUEST_CONFIG = 4


PAYLOAD_FIELDS = {
    Opcode.END: 1,
    Opcode.SUBMIT_CONFIG: 1,
    Opcode.SUBMIT_NAME: 1,
    Opcode.SUBMIT_RESULT: 2,
    Opcode.REQUEST_CONFIG: 1,
}


class Message(msgspec.Struct, frozen=True):
    session_id: int
    opcode: Opcode
    fields: Tuple[str, ...]

    @property
    def payload(self) -> str:
        return FIELD_SEPARATOR.join(self.fields)


UNSAFE_FIELD_CHARS = (FIELD_SEPARATOR, LINE_TERMINATOR, "\r")


def _is_digits(text: str) -> bool:
    # str.isdigit also accepts characters such as "²" that int() rejects
    return text.isascii() and text.isdecimal()


def _is_int(text: str) -> bool:
    return _is_digits(text.removeprefix("-"))


def check_field(field: str) -> str:
    """Reject payload text that would split into extra fields or lines on the wire."""
    if any(char in field for char in UNSAFE_FIELD_CHARS):
        raise MalformedMessage(f"Field {field!r} may not contain '{FIELD_SEPARATOR}' or line breaks")
    return field


def encode_greeting(session_id: int) -> str:
    return str(session_id)


def encode_message(session_id: int, opcode: Opcode, *fields) -> str:
    if not fields:
        fields = (EMPTY_PAYLOAD,)
    tag = f"{OPCODE_PREFIX}{int(opcode)}"
    return FIELD_SEPARATOR.join([str(session_id), tag, *(check_field(str(field)) for field in fields)])


def encode_response(session_id: int, payload: str) -> str:
    return f"{session_id}{FIELD_SEPARATOR}{payload}"


def decode_message(line: str) -> Message:
    parts = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(parts) < 2:
        raise MalformedMessage(f"Expected at least 2 fields in {line!r}")

    session_id, tag, *fields = parts
    if not _is_digits(session_id):
        raise MalformedMessage(f"Session id {session_id!r} is not numeric")
    if not tag.startswith(OPCODE_PREFIX) or not _is_digits(tag[len(OPCODE_PREFIX):]):
        raise MalformedMessage(f"Opcode field {tag!r} is not of the form P<n>")

    try:
        opcode = Opcode(int(tag[len(OPCODE_PREFIX):]))
    except ValueError:
        raise MalformedMessage(f"Unknown opcode {tag!r}") from None

    expected = PAYLOAD_FIELDS[opcode]
    if len(fields) != expected:
        raise MalformedMessage(
            f"Opcode {opcode.name} takes {expected} payload field(s), got {len(fields)}"
        )
    if opcode is Opcode.SUBMIT_RESULT and not all(_is_int(field) for field in fields):
        raise MalformedMessage(f"Result fields must be integers: {fields!r}")

    return Message(session_id=int(session_id), opcode=opcode, fields=tuple(fields))


def decode_response(line: str) -> Tuple[int, str]:
    session_id, sep, payload = line.rstrip("\r\n").partition(FIELD_SEPARATOR)
    if not sep:
        raise MalformedMessage(f"Response {line!r} has no separator")
    if not _is_digits(session_id):
        raise MalformedMessage(f"Session id {session_id!r} is not numeric")
    return int(session_id), payload
