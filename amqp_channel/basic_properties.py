"""Messages properties for AMQP."""
# Copyright (C) 2007-2008 Barry Pederson <bp@barryp.org>
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
from enum import IntEnum
from io import BytesIO
from typing import Any, Mapping, MutableMapping, Optional
from .serialization import BASIC_PROPERTIES, decode_properties, \
    encode_properties

__all__ = ['BasicProperties', 'DeliveryMode']


class DeliveryMode(IntEnum):
    """Values of the ``delivery_mode`` property."""

    TRANSIENT = 1
    PERSISTENT = 2


#: Default value of every basic property.
DEFAULTS: Mapping[str, Any] = {
    'content_type': 'application/octet-stream',
    'content_encoding': '',
    'headers': {},
    'delivery_mode': DeliveryMode.TRANSIENT,
    'priority': 0,
    'correlation_id': '',
    'reply_to': '',
    'expiration': '',
    'message_id': '',
    'timestamp': 0,
    'type': '',
    'user_id': '',
    'app_id': '',
    'cluster_id': '',
}

#: Properties put on the wire even when they hold their default.
ALWAYS_SENT = frozenset({'content_type', 'delivery_mode'})


class BasicProperties:
    """Property bundle of a single published message.

    Keyword Arguments:
        content_type (str): MIME content type,
            default ``application/octet-stream``.
        content_encoding (str): MIME content encoding.
        headers (Dict): Message header field table.
        delivery_mode (DeliveryMode): transient (1) or persistent (2).
        persistent (bool): Shortcut for ``delivery_mode``.
        priority (int): Message priority, 0 to 9.
        correlation_id (str): Application correlation identifier.
        reply_to (str): Destination to reply to.
        expiration (str): Message expiration specification.
        message_id (str): Application message identifier.
        timestamp (int): Message timestamp (seconds since epoch).
        type (str): Message type name.
        user_id (str): Creating user id.
        app_id (str): Creating application id.
        cluster_id (str): Intra-cluster routing identifier.

    The bundle lives for one publish: :meth:`encode` fills a transient
    buffer and :meth:`release` (or leaving the ``with`` block) drops it.
    """

    PROPERTIES = BASIC_PROPERTIES

    def __init__(self, *, persistent: Optional[bool] = None,
                 **properties: Any) -> None:
        unknown = set(properties) - set(DEFAULTS)
        if unknown:
            raise TypeError(
                'Unknown message properties: {0}'.format(
                    ', '.join(sorted(unknown))))
        self.properties: MutableMapping[str, Any] = dict(DEFAULTS)
        self.properties.update(properties)
        self.properties['headers'] = dict(self.properties['headers'])
        if persistent is not None:
            self.properties['delivery_mode'] = (
                DeliveryMode.PERSISTENT if persistent
                else DeliveryMode.TRANSIENT)
        self.properties['delivery_mode'] = DeliveryMode(
            self.properties['delivery_mode'])
        priority = self.properties['priority']
        if not 0 <= priority <= 9:
            raise ValueError(
                'priority must be between 0 and 9, not {0!r}'.format(
                    priority))
        self._buffer: Optional[BytesIO] = None

    def __getattr__(self, name: str) -> Any:
        # Look for additional properties in the 'properties' dictionary.
        if name in DEFAULTS:
            return self.__dict__['properties'][name]
        raise AttributeError(name)

    def __enter__(self) -> 'BasicProperties':
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    @property
    def persistent(self) -> bool:
        return self.properties['delivery_mode'] == DeliveryMode.PERSISTENT

    def wire_properties(self) -> Mapping[str, Any]:
        """Properties that are flagged as present in the content header."""
        return {
            key: value for key, value in self.properties.items()
            if key in ALWAYS_SENT or value != DEFAULTS[key]
        }

    def encode(self) -> bytes:
        """Serialize property flags and list into the transient buffer."""
        self.release()
        self._buffer = BytesIO()
        encode_properties(self.wire_properties(), self._buffer.write,
                          self.PROPERTIES)
        return self._buffer.getvalue()

    def release(self) -> None:
        """Drop the encoding buffer; safe to call more than once."""
        buf, self._buffer = self._buffer, None
        if buf is not None:
            buf.close()

    @classmethod
    def decode(cls, buf: bytes, offset: int = 0) -> 'BasicProperties':
        """Rebuild a bundle from the wire, filling absent properties
        with their defaults."""
        properties, _ = decode_properties(buf, offset, cls.PROPERTIES)
        return cls(**properties)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, BasicProperties):
            return self.properties == other.properties
        return NotImplemented

    def __repr__(self) -> str:
        return '<{name}: {props!r}>'.format(
            name=type(self).__name__, props=self.properties)
