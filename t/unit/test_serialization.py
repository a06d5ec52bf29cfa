from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO
from string import printable
from struct import pack

import pytest
from hypothesis import given, strategies as st

from amqp_channel.exceptions import FrameSyntaxError
from amqp_channel.serialization import (
    BASIC_PROPERTIES, _read_item, decode_properties, dumps_table,
    encode_properties, loads_table,
)


base_types_strategy = (
    st.integers(min_value=-9223372036854775807,
                max_value=9223372036854775807) |  # noqa: W503
    st.booleans() |  # noqa: W503
    st.text() |  # noqa: W503
    st.builds(
        lambda d: d.replace(microsecond=0, tzinfo=timezone.utc),
        st.datetimes(
            min_value=datetime(2000, 1, 1),
            max_value=datetime(2300, 1, 1)
        )
    ) |  # noqa: W503
    st.decimals(
        min_value=Decimal('-21474836.47'),
        max_value=Decimal('21474836.47'),
        places=2,
    ) |  # noqa: W503
    st.floats(allow_nan=False) |  # noqa: W503
    st.none()
)

arrays_strategy = st.recursive(
    st.deferred(lambda: base_types_strategy),
    st.lists
).filter(lambda x: isinstance(x, list))

tables_strategy = st.recursive(
    st.deferred(lambda: base_types_strategy | arrays_strategy),
    lambda y: st.dictionaries(st.text(printable, max_size=255), y)
).filter(lambda x: isinstance(x, dict))


@given(tables_strategy)
def test_table_roundtrip(table):
    data = dumps_table(table)
    assert loads_table(data) == (table, len(data))


class test_serialization:

    @pytest.mark.parametrize('descr,frame,expected', [
        ('S', b'S\x00\x00\x00\x08thequick', 'thequick'),
        ('S binary', b'S\x00\x00\x00\x03\xff\xfe\x00', b'\xff\xfe\x00'),
        ('s', b's\x08thequick', 'thequick'),
        ('b', b'b' + pack('>b', -12), -12),
        ('B', b'B' + pack('>B', 123), 123),
        ('U', b'U' + pack('>h', -321), -321),
        ('u', b'u' + pack('>H', 321), 321),
        ('i', b'i' + pack('>I', 1234), 1234),
        ('L', b'L' + pack('>q', -32451), -32451),
        ('l', b'l' + pack('>Q', 32451), 32451),
        ('f', b'f' + pack('>f', 33.25), 33.25),
        ('t', b't\x01', True),
        ('V', b'V', None),
    ])
    def test_read_item(self, descr, frame, expected):
        assert _read_item(frame)[0] == expected

    def test_read_item__offset(self):
        frame = b'XXI' + pack('>i', -5)
        assert _read_item(frame, 2) == (-5, 7)

    def test_read_item__unknown_type(self):
        with pytest.raises(FrameSyntaxError):
            _read_item(b'?')

    def test_table_binary_value(self):
        table, _ = loads_table(dumps_table({'k': b'\x00\xff\x80'}))
        assert table == {'k': b'\x00\xff\x80'}

    def test_table_decimal(self):
        table, _ = loads_table(dumps_table({'d': Decimal('3.14')}))
        assert table['d'] == Decimal('3.14')

    def test_table_timestamp(self):
        ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        table, _ = loads_table(dumps_table({'ts': ts}))
        assert table['ts'] == ts

    def test_table_nested(self):
        table = {'a': {'b': [1, 'two', None, {'c': True}]}}
        assert loads_table(dumps_table(table))[0] == table

    def test_table_at_offset(self):
        data = b'\xaa\xbb' + dumps_table({'k': 1})
        table, offset = loads_table(data, 2)
        assert table == {'k': 1}
        assert offset == len(data)

    def test_table_unsupported_type(self):
        with pytest.raises(FrameSyntaxError):
            dumps_table({'k': object()})

    def test_table_unsupported_type_in_array(self):
        with pytest.raises(FrameSyntaxError):
            dumps_table({'k': [object()]})

    def test_table_key_too_long(self):
        with pytest.raises(FrameSyntaxError):
            dumps_table({'k' * 256: 1})


class test_properties:

    def encode(self, properties, spec=BASIC_PROPERTIES):
        out = BytesIO()
        encode_properties(properties, out.write, spec)
        return out.getvalue()

    def test_encode_flags(self):
        data = self.encode({
            'content_type': 'text/plain',
            'delivery_mode': 2,
        })
        assert data == b'\x90\x00' + b'\x0atext/plain' + b'\x02'

    def test_encode_nothing(self):
        assert self.encode({}) == b'\x00\x00'

    def test_encode_skips_none(self):
        assert self.encode({'content_type': None, 'priority': 3}) == (
            b'\x08\x00\x03')

    def test_encode_last_property(self):
        assert self.encode({'cluster_id': 'c'}) == b'\x00\x04\x01c'

    def test_encode_timestamp(self):
        data = self.encode({'timestamp': 1700000000})
        assert data == b'\x00\x40' + pack('>Q', 1700000000)
        ts = datetime.fromtimestamp(1700000000, timezone.utc)
        assert self.encode({'timestamp': ts}) == data

    def test_encode_shortstr_too_long(self):
        with pytest.raises(FrameSyntaxError):
            self.encode({'content_type': 'x' * 256})

    def test_encode_shortstr_limit(self):
        data = self.encode({'message_id': 'x' * 255})
        assert data[2] == 255
        assert len(data) == 2 + 1 + 255

    def test_encode_unknown_property_type(self):
        with pytest.raises(FrameSyntaxError):
            self.encode({'x': 1}, spec=[('x', '?')])

    def test_encode_continuation_flags(self):
        spec = [('p{0}'.format(i), 'o') for i in range(17)]
        data = self.encode({'p0': 1, 'p15': 2, 'p16': 3}, spec)
        assert data[:4] == b'\x80\x01\xc0\x00'
        assert decode_properties(data, 0, spec) == (
            {'p0': 1, 'p15': 2, 'p16': 3}, len(data))

    def test_decode(self):
        properties = {
            'content_type': 'application/json',
            'headers': {'x-retry': 3},
            'delivery_mode': 2,
            'priority': 9,
            'correlation_id': 'abc',
            'timestamp': 1700000000,
            'app_id': 'test',
        }
        data = self.encode(properties)
        assert decode_properties(b'\x00' + data, 1) == (
            properties, len(data) + 1)

    def test_decode_only_present(self):
        data = self.encode({'reply_to': 'amq.rabbitmq.reply-to'})
        decoded, _ = decode_properties(data)
        assert decoded == {'reply_to': 'amq.rabbitmq.reply-to'}
