"""Convert between bytestreams and higher-level AMQP types.

Only the pieces a channel needs to put a content header on the
wire are here: the field table codec and the basic property list.
"""
# Copyright (C) 2007 Barry Pederson <bp@barryp.org>
#
# This library is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License as published by the Free Software Foundation; either
# version 2.1 of the License, or (at your option) any later version.
#
# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this library; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA  02110-1301
import calendar
from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO
from struct import pack, unpack_from
from typing import (
    Any, Callable, Dict, List, Mapping, MutableMapping, Sequence, Tuple,
)
from .exceptions import FrameSyntaxError

__all__ = [
    'dumps_table', 'loads_table',
    'encode_properties', 'decode_properties', 'BASIC_PROPERTIES',
]

WriterT = Callable[[bytes], Any]

ILLEGAL_TABLE_TYPE = """\
    Table type {0!r} not handled by amqp.
"""

ILLEGAL_TABLE_TYPE_WITH_KEY = """\
Table type {0!r} for key {1!r} not handled by amqp. [value: {2!r}]
"""

#: Basic class property list, in wire order.
#: The first property owns bit 15 of the flags word.
BASIC_PROPERTIES: Sequence[Tuple[str, str]] = [
    ('content_type', 's'),
    ('content_encoding', 's'),
    ('headers', 'F'),
    ('delivery_mode', 'o'),
    ('priority', 'o'),
    ('correlation_id', 's'),
    ('reply_to', 's'),
    ('expiration', 's'),
    ('message_id', 's'),
    ('timestamp', 'T'),
    ('type', 's'),
    ('user_id', 's'),
    ('app_id', 's'),
    ('cluster_id', 's'),
]


def _encode_str(s: Any) -> bytes:
    if isinstance(s, str):
        return s.encode('utf-8', 'surrogatepass')
    return bytes(s)


def _write_shortstr(s: Any, write: WriterT) -> None:
    s = _encode_str(s)
    if len(s) > 255:
        raise FrameSyntaxError(
            'Short string too long: {0} > 255 bytes'.format(len(s)))
    write(pack('B', len(s)))
    write(s)


def _write_timestamp(v: Any, write: WriterT) -> None:
    if isinstance(v, datetime):
        v = calendar.timegm(v.utctimetuple())
    write(pack('>Q', v))


def _write_table(d: Mapping, write: WriterT) -> None:
    out = BytesIO()
    twrite = out.write
    for k, v in d.items():
        _write_shortstr(k, twrite)
        try:
            _write_item(v, twrite)
        except ValueError:
            raise FrameSyntaxError(
                ILLEGAL_TABLE_TYPE_WITH_KEY.format(type(v), k, v))
    table_data = out.getvalue()
    write(pack('>I', len(table_data)))
    write(table_data)


def _write_array(seq: Sequence, write: WriterT) -> None:
    out = BytesIO()
    awrite = out.write
    for v in seq:
        try:
            _write_item(v, awrite)
        except ValueError:
            raise FrameSyntaxError(ILLEGAL_TABLE_TYPE.format(type(v)))
    array_data = out.getvalue()
    write(pack('>I', len(array_data)))
    write(array_data)


def _write_item(v: Any, write: WriterT) -> None:
    if isinstance(v, (str, bytes, bytearray)):
        v = _encode_str(v)
        write(pack('>cI', b'S', len(v)))
        write(v)
    elif isinstance(v, bool):
        write(pack('>cB', b't', int(v)))
    elif isinstance(v, float):
        write(pack('>cd', b'd', v))
    elif isinstance(v, int):
        if v > 2147483647 or v < -2147483647:
            write(pack('>cq', b'L', v))
        else:
            write(pack('>ci', b'I', v))
    elif isinstance(v, Decimal):
        sign, digits, exponent = v.as_tuple()
        v = 0
        for d in digits:
            v = (v * 10) + d
        if sign:
            v = -v
        write(pack('>cBi', b'D', -exponent, v))
    elif isinstance(v, datetime):
        write(b'T')
        _write_timestamp(v, write)
    elif isinstance(v, dict):
        write(b'F')
        _write_table(v, write)
    elif isinstance(v, (list, tuple)):
        write(b'A')
        _write_array(v, write)
    elif v is None:
        write(b'V')
    else:
        raise ValueError()


def _read_shortstr(buf: bytes, offset: int) -> Tuple[str, int]:
    slen, = unpack_from('B', buf, offset)
    offset += 1
    val = bytes(buf[offset:offset + slen]).decode('utf-8', 'surrogatepass')
    return val, offset + slen


def _read_item(buf: bytes, offset: int = 0) -> Tuple[Any, int]:
    ftype = chr(buf[offset])
    offset += 1
    if ftype == 'S':
        slen, = unpack_from('>I', buf, offset)
        offset += 4
        val = bytes(buf[offset:offset + slen])
        try:
            val = val.decode('utf-8', 'surrogatepass')
        except UnicodeDecodeError:
            pass
        offset += slen
    elif ftype == 's':
        val, offset = _read_shortstr(buf, offset)
    elif ftype == 't':
        val = bool(buf[offset])
        offset += 1
    elif ftype == 'b':
        val, = unpack_from('>b', buf, offset)
        offset += 1
    elif ftype == 'B':
        val, = unpack_from('>B', buf, offset)
        offset += 1
    elif ftype == 'U':
        val, = unpack_from('>h', buf, offset)
        offset += 2
    elif ftype == 'u':
        val, = unpack_from('>H', buf, offset)
        offset += 2
    elif ftype == 'I':
        val, = unpack_from('>i', buf, offset)
        offset += 4
    elif ftype == 'i':
        val, = unpack_from('>I', buf, offset)
        offset += 4
    elif ftype == 'L':
        val, = unpack_from('>q', buf, offset)
        offset += 8
    elif ftype == 'l':
        val, = unpack_from('>Q', buf, offset)
        offset += 8
    elif ftype == 'f':
        val, = unpack_from('>f', buf, offset)
        offset += 4
    elif ftype == 'd':
        val, = unpack_from('>d', buf, offset)
        offset += 8
    elif ftype == 'D':
        d, n = unpack_from('>Bi', buf, offset)
        offset += 5
        val = Decimal(n) / Decimal(10 ** d)
    elif ftype == 'T':
        val, = unpack_from('>Q', buf, offset)
        offset += 8
        val = datetime.fromtimestamp(val, timezone.utc)
    elif ftype == 'F':
        val, offset = loads_table(buf, offset)
    elif ftype == 'A':
        alen, = unpack_from('>I', buf, offset)
        offset += 4
        limit = offset + alen
        val = []
        while offset < limit:
            v, offset = _read_item(buf, offset)
            val.append(v)
    elif ftype == 'V':
        val = None
    else:
        raise FrameSyntaxError(
            'Unknown value in table: {0!r} ({1!r})'.format(
                ftype, type(ftype)))
    return val, offset


def dumps_table(d: Mapping) -> bytes:
    """Serialize mapping as a length-prefixed AMQP field table."""
    out = BytesIO()
    _write_table(d, out.write)
    return out.getvalue()


def loads_table(buf: bytes, offset: int = 0) -> Tuple[Dict[str, Any], int]:
    """Deserialize field table at ``offset``, return ``(table, offset)``."""
    tlen, = unpack_from('>I', buf, offset)
    offset += 4
    limit = offset + tlen
    table: Dict[str, Any] = {}
    while offset < limit:
        key, offset = _read_shortstr(buf, offset)
        table[key], offset = _read_item(buf, offset)
    return table, offset


def encode_properties(properties: Mapping[str, Any], write: WriterT,
                      spec: Sequence[Tuple[str, str]] = BASIC_PROPERTIES,
                      pack: Callable = pack) -> None:
    """Write the property flags and property list for ``properties``.

    A property is present on the wire when its key is in ``properties``
    and the value is not :const:`None`.
    """
    shift = 15
    flag_bits = 0
    flags: List[int] = []
    present: List[Tuple[str, Any]] = []
    for key, proptype in spec:
        if shift == 0:
            # continuation bit, more flags follow
            flags.append(flag_bits | 1)
            flag_bits = 0
            shift = 15
        val = properties.get(key)
        if val is not None:
            flag_bits |= (1 << shift)
            present.append((proptype, val))
        shift -= 1
    flags.append(flag_bits)
    for bits in flags:
        write(pack('>H', bits))

    for proptype, val in present:
        if proptype == 's':
            _write_shortstr(val, write)
        elif proptype == 'F':
            _write_table(val, write)
        elif proptype == 'o':
            write(pack('B', val))
        elif proptype == 'T':
            _write_timestamp(val, write)
        else:
            raise FrameSyntaxError(ILLEGAL_TABLE_TYPE.format(proptype))


def decode_properties(
        buf: bytes, offset: int = 0,
        spec: Sequence[Tuple[str, str]] = BASIC_PROPERTIES,
        unpack_from: Callable = unpack_from,
) -> Tuple[MutableMapping[str, Any], int]:
    """Read property flags and property list, return ``(props, offset)``.

    Only the properties flagged as present are in the returned mapping.
    """
    flags: List[int] = []
    while True:
        flag_bits, = unpack_from('>H', buf, offset)
        offset += 2
        flags.append(flag_bits)
        if flag_bits & 1 == 0:
            break
    shift = 0
    d: MutableMapping[str, Any] = {}
    for key, proptype in spec:
        if shift == 0:
            if not flags:
                break
            flag_bits, flags = flags[0], flags[1:]
            shift = 15
        if flag_bits & (1 << shift):
            if proptype == 's':
                d[key], offset = _read_shortstr(buf, offset)
            elif proptype == 'F':
                d[key], offset = loads_table(buf, offset)
            elif proptype == 'o':
                d[key], = unpack_from('B', buf, offset)
                offset += 1
            elif proptype == 'T':
                d[key], = unpack_from('>Q', buf, offset)
                offset += 8
        shift -= 1
    return d, offset
