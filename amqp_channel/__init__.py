"""Channel layer of an AMQP 0-9-1 client."""
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
import re
from typing import NamedTuple

__version__ = '1.0.0'
__author__ = 'amqp-channel developers'
__maintainer__ = 'amqp-channel developers'
__docformat__ = 'restructuredtext'

# -eof meta-

from .basic_properties import BasicProperties, DeliveryMode  # noqa: F401
from .channel import Channel        # noqa: F401
from .connection import Connection  # noqa: F401
from .exceptions import (           # noqa: F401
    AMQPError,
    ConnectionError,
    RecoverableConnectionError,
    IrrecoverableConnectionError,
    ChannelError,
    RecoverableChannelError,
    IrrecoverableChannelError,
    ContentTooLarge,
    NoConsumers,
    ConnectionForced,
    InvalidPath,
    AccessRefused,
    NotFound,
    ResourceLocked,
    PreconditionFailed,
    FrameError,
    FrameSyntaxError,
    InvalidCommand,
    ChannelNotOpen,
    UnexpectedFrame,
    ResourceError,
    NotAllowed,
    AMQPNotImplementedError,
    InternalError,
    ChannelAllocationError,
    TransportError,
    ChannelMisuseError,
    ChannelReleased,
    RPCAlreadyOutstanding,
    error_for_code,
)
from .protocol import message_t, response_t  # noqa: F401
from .types import ChannelT, ConnectionT  # noqa: F401

__all__ = [
    'Connection',
    'ConnectionT',
    'Channel',
    'ChannelT',
    'BasicProperties',
    'DeliveryMode',
    'message_t',
    'response_t',
    'AMQPError',
    'ConnectionError',
    'RecoverableConnectionError',
    'IrrecoverableConnectionError',
    'ChannelError',
    'RecoverableChannelError',
    'IrrecoverableChannelError',
    'ContentTooLarge',
    'NoConsumers',
    'ConnectionForced',
    'InvalidPath',
    'AccessRefused',
    'NotFound',
    'ResourceLocked',
    'PreconditionFailed',
    'FrameError',
    'FrameSyntaxError',
    'InvalidCommand',
    'ChannelNotOpen',
    'UnexpectedFrame',
    'ResourceError',
    'NotAllowed',
    'AMQPNotImplementedError',
    'InternalError',
    'ChannelAllocationError',
    'TransportError',
    'ChannelMisuseError',
    'ChannelReleased',
    'RPCAlreadyOutstanding',
    'error_for_code',
    'version_info_t',
]


class version_info_t(NamedTuple):
    major: int
    minor: int
    micro: int
    releaselevel: str
    serial: str


# bumpversion can only search for {current_version}
# so we have to parse the version here.
_temp = re.match(
    r'(\d+)\.(\d+).(\d+)(.+)?', __version__).groups()
VERSION = version_info = version_info_t(
    int(_temp[0]), int(_temp[1]), int(_temp[2]), _temp[3] or '', '')
del(_temp)
del(re)
