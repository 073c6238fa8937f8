"""Thrift message layout of the Hive metastore calls used by the client.

Encoding primitives come from the `thrift` library (`TBinaryProtocol`); this
module only declares which fields each call and struct carries, mirroring
the `ThriftHiveMetastore` service definition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from thrift.protocol.TBinaryProtocol import TBinaryProtocol
from thrift.Thrift import TApplicationException, TMessageType, TType
from thrift.transport.TTransport import TMemoryBuffer

from hmsops.core.errors import FaultKind, RemoteFault
from hmsops.core.models import Database, PrincipalType

FAULT_KINDS = {
    "NoSuchObjectException": FaultKind.NOT_FOUND,
    "UnknownDBException": FaultKind.NOT_FOUND,
    "AlreadyExistsException": FaultKind.ALREADY_EXISTS,
    "InvalidObjectException": FaultKind.INVALID_INPUT,
    "InvalidOperationException": FaultKind.INVALID_INPUT,
    "MetaException": FaultKind.GENERIC,
}

_PRINCIPAL_TO_WIRE = {
    PrincipalType.USER: 1,
    PrincipalType.ROLE: 2,
    PrincipalType.GROUP: 3,
}
_PRINCIPAL_FROM_WIRE = {v: k for k, v in _PRINCIPAL_TO_WIRE.items()}


class ReplyMismatch(ValueError):
    """A reply does not answer the call it was read for."""


@dataclass(frozen=True)
class Arg:
    """One argument field of a call."""

    fid: int
    name: str
    ttype: int
    write: Callable[[TBinaryProtocol, Any], None]


@dataclass(frozen=True)
class Method:
    """
    Layout of one service method.

    Attributes:
        name: Thrift method name.
        args: Argument fields in declaration order.
        success: (ttype, reader) of the result field 0, None for void methods.
        faults: Result exception fields: field id -> exception struct name.
    """

    name: str
    args: tuple[Arg, ...]
    success: tuple[int, Callable[[TBinaryProtocol], Any]] | None
    faults: dict[int, str]


@dataclass(frozen=True)
class Reply:
    """Decoded result of a call: either `value` or `fault`."""

    value: Any = None
    fault: RemoteFault | None = None


def write_string(proto: TBinaryProtocol, value: str) -> None:
    proto.writeString(value)


def write_bool(proto: TBinaryProtocol, value: bool) -> None:
    proto.writeBool(value)


def read_string_list(proto: TBinaryProtocol) -> list[str]:
    _etype, size = proto.readListBegin()
    items = [proto.readString() for _ in range(size)]
    proto.readListEnd()
    return items


def write_string_list(proto: TBinaryProtocol, items: list[str]) -> None:
    proto.writeListBegin(TType.STRING, len(items))
    for item in items:
        proto.writeString(item)
    proto.writeListEnd()


def _read_string_map(proto: TBinaryProtocol) -> dict[str, str]:
    _ktype, _vtype, size = proto.readMapBegin()
    out = {}
    for _ in range(size):
        key = proto.readString()
        out[key] = proto.readString()
    proto.readMapEnd()
    return out


def write_database(proto: TBinaryProtocol, db: Database) -> None:
    """Write a `Database` struct."""
    proto.writeStructBegin("Database")
    _write_field(proto, "name", TType.STRING, 1, proto.writeString, db.name)
    _write_field(proto, "description", TType.STRING, 2, proto.writeString, db.description)
    _write_field(proto, "locationUri", TType.STRING, 3, proto.writeString, db.location_uri)

    proto.writeFieldBegin("parameters", TType.MAP, 4)
    proto.writeMapBegin(TType.STRING, TType.STRING, len(db.parameters))
    for key, value in db.parameters.items():
        proto.writeString(key)
        proto.writeString(value)
    proto.writeMapEnd()
    proto.writeFieldEnd()

    _write_field(proto, "ownerName", TType.STRING, 6, proto.writeString, db.owner_name)
    if db.owner_type is not None:
        _write_field(
            proto, "ownerType", TType.I32, 7, proto.writeI32,
            _PRINCIPAL_TO_WIRE[db.owner_type],
        )
    _write_field(proto, "catalogName", TType.STRING, 8, proto.writeString, db.catalog_name)
    proto.writeFieldStop()
    proto.writeStructEnd()


def read_database(proto: TBinaryProtocol) -> Database:
    """Read a `Database` struct, skipping fields the client does not model."""
    values: dict[str, Any] = {}
    readers = {
        1: ("name", TType.STRING, proto.readString),
        2: ("description", TType.STRING, proto.readString),
        3: ("location_uri", TType.STRING, proto.readString),
        4: ("parameters", TType.MAP, lambda: _read_string_map(proto)),
        6: ("owner_name", TType.STRING, proto.readString),
        7: ("owner_type", TType.I32, proto.readI32),
        8: ("catalog_name", TType.STRING, proto.readString),
    }
    proto.readStructBegin()
    while True:
        _fname, ftype, fid = proto.readFieldBegin()
        if ftype == TType.STOP:
            break
        field = readers.get(fid)
        if field is None or field[1] != ftype:
            proto.skip(ftype)
        else:
            values[field[0]] = field[2]()
        proto.readFieldEnd()
    proto.readStructEnd()

    if "name" not in values:
        raise ValueError("Database struct without a name")
    if "owner_type" in values:
        values["owner_type"] = _PRINCIPAL_FROM_WIRE.get(values["owner_type"])
    return Database(**values)


def _write_field(proto, name, ttype, fid, write, value) -> None:
    if value is None:
        return
    proto.writeFieldBegin(name, ttype, fid)
    write(value)
    proto.writeFieldEnd()


def read_exception_message(proto: TBinaryProtocol) -> str:
    """Read a metastore exception struct and return its `message` field."""
    message = ""
    proto.readStructBegin()
    while True:
        _fname, ftype, fid = proto.readFieldBegin()
        if ftype == TType.STOP:
            break
        if fid == 1 and ftype == TType.STRING:
            message = proto.readString()
        else:
            proto.skip(ftype)
        proto.readFieldEnd()
    proto.readStructEnd()
    return message


def write_exception(proto: TBinaryProtocol, type_name: str, message: str) -> None:
    """Write a metastore exception struct (used by in-memory metastores)."""
    proto.writeStructBegin(type_name)
    proto.writeFieldBegin("message", TType.STRING, 1)
    proto.writeString(message)
    proto.writeFieldEnd()
    proto.writeFieldStop()
    proto.writeStructEnd()


GET_ALL_DATABASES = Method(
    name="get_all_databases",
    args=(),
    success=(TType.LIST, read_string_list),
    faults={1: "MetaException"},
)

GET_DATABASE = Method(
    name="get_database",
    args=(Arg(1, "name", TType.STRING, write_string),),
    success=(TType.STRUCT, read_database),
    faults={1: "NoSuchObjectException", 2: "MetaException"},
)

CREATE_DATABASE = Method(
    name="create_database",
    args=(Arg(1, "database", TType.STRUCT, write_database),),
    success=None,
    faults={
        1: "AlreadyExistsException",
        2: "InvalidObjectException",
        3: "MetaException",
    },
)

DROP_DATABASE = Method(
    name="drop_database",
    args=(
        Arg(1, "name", TType.STRING, write_string),
        Arg(2, "deleteData", TType.BOOL, write_bool),
        Arg(3, "cascade", TType.BOOL, write_bool),
    ),
    success=None,
    faults={
        1: "NoSuchObjectException",
        2: "InvalidOperationException",
        3: "MetaException",
    },
)

GET_ALL_TABLES = Method(
    name="get_all_tables",
    args=(Arg(1, "db_name", TType.STRING, write_string),),
    success=(TType.LIST, read_string_list),
    faults={1: "MetaException"},
)

METHODS = {
    m.name: m
    for m in (GET_ALL_DATABASES, GET_DATABASE, CREATE_DATABASE, DROP_DATABASE, GET_ALL_TABLES)
}


def encode_call(method: Method, seqid: int, *values: Any) -> bytes:
    """Serialize one call message."""
    if len(values) != len(method.args):
        raise TypeError(f"{method.name} takes {len(method.args)} arguments")
    buf = TMemoryBuffer()
    proto = TBinaryProtocol(buf)
    proto.writeMessageBegin(method.name, TMessageType.CALL, seqid)
    proto.writeStructBegin(f"{method.name}_args")
    for arg, value in zip(method.args, values):
        proto.writeFieldBegin(arg.name, arg.ttype, arg.fid)
        arg.write(proto, value)
        proto.writeFieldEnd()
    proto.writeFieldStop()
    proto.writeStructEnd()
    proto.writeMessageEnd()
    return buf.getvalue()


def decode_reply(method: Method, seqid: int, data: bytes) -> Reply:
    """
    Deserialize the reply to a call.

    Returns:
        A Reply holding the success value (None for void methods) or the
        remote fault declared by the method.

    Raises:
        TApplicationException: The server answered with a Thrift exception.
        ReplyMismatch: The reply belongs to another call.
        Exception: Any thrift/struct decoding error for malformed bytes.
    """
    proto = TBinaryProtocol(TMemoryBuffer(data))
    name, mtype, rseqid = proto.readMessageBegin()
    if mtype == TMessageType.EXCEPTION:
        exc = TApplicationException()
        exc.read(proto)
        proto.readMessageEnd()
        raise exc
    if mtype != TMessageType.REPLY:
        raise ReplyMismatch(f"unexpected message type {mtype}")
    if name != method.name:
        raise ReplyMismatch(f"reply for '{name}' while waiting for '{method.name}'")
    if rseqid != seqid:
        raise ReplyMismatch(f"sequence id {rseqid} does not match {seqid}")

    reply = Reply()
    proto.readStructBegin()
    while True:
        _fname, ftype, fid = proto.readFieldBegin()
        if ftype == TType.STOP:
            break
        if fid == 0 and method.success is not None and ftype == method.success[0]:
            reply = Reply(value=method.success[1](proto))
        elif fid in method.faults and ftype == TType.STRUCT:
            type_name = method.faults[fid]
            message = read_exception_message(proto)
            reply = Reply(fault=RemoteFault(FAULT_KINDS[type_name], message, type_name))
        else:
            proto.skip(ftype)
        proto.readFieldEnd()
    proto.readStructEnd()
    proto.readMessageEnd()

    if reply.fault is None and reply.value is None and method.success is not None:
        raise ReplyMismatch(f"{method.name} returned no result")
    return reply
