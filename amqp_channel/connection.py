"""AMQP Connections.

:class:`Connection` is the part of a connection every channel relies
on: the channel id allocation table, waiting for responses, event
registration and the event loop.  Putting bytes on a socket is left
to subclasses, which implement :meth:`~Connection.send_request`,
:meth:`~Connection.send_publish` and :meth:`~Connection.drain_events`
and feed every inbound method to :meth:`~Connection.on_inbound_method`.
"""
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
import abc
import threading
from array import array
from collections import defaultdict
from typing import (
    Any, List, Mapping, MutableMapping, Optional, Sequence, Tuple,
)

from vine import promise

from . import spec
from .channel import Channel
from .exceptions import (
    AMQPError, ChannelAllocationError, ChannelError, ConnectionError,
    RPCAlreadyOutstanding, error_for_code,
)
from .protocol import message_t, no_fields_t, response_t
from .spec import method_sig_t
from .types import ChannelT, ConnectionT, EventHandlerT, EventT
from .utils import get_logger

__all__ = ['Connection']

logger = get_logger('amqp_channel')

PendingKeyT = Tuple[int, method_sig_t]


class Connection(ConnectionT):
    """AMQP Connection base.

    Keyword Arguments:
        channel_max (int): Highest channel id that may be allocated,
            defaults to :attr:`channel_max` (65535).
    """

    #: Channel class created by :meth:`channel`.
    Channel: type = Channel

    #: Default highest channel id.
    channel_max: int = 65535

    def __init__(self, channel_max: Optional[int] = None) -> None:
        self.channel_max = channel_max or self.channel_max
        self._channel_lock = threading.Lock()
        self._avail_channel_ids: array = array(
            'H', range(self.channel_max, 0, -1))
        self._pending: MutableMapping[PendingKeyT, promise] = {}
        self._events: MutableMapping[
            PendingKeyT, List[EventHandlerT]] = defaultdict(list)
        self._channel_errors: MutableMapping[int, AMQPError] = {}
        self._loop_broken = False

    def channel(self, channel_id: Optional[int] = None) -> ChannelT:
        """Create new channel.

        Allocates ``channel_id``, or the lowest free id if not given.
        """
        channel_id = self.allocate_channel(channel_id)
        return self.Channel(self, channel_id, pre_allocated=True)

    def allocate_channel(self, channel_id: Optional[int] = None) -> int:
        with self._channel_lock:
            if channel_id is None:
                channel_id = self._get_free_channel_id()
            else:
                self._claim_channel_id(channel_id)
        logger.debug('Allocated channel id %r', channel_id)
        return channel_id

    def _get_free_channel_id(self) -> int:
        try:
            return self._avail_channel_ids.pop()
        except IndexError:
            raise ChannelAllocationError(
                'No free channel ids, channel_max={0}'.format(
                    self.channel_max))

    def _claim_channel_id(self, channel_id: int) -> None:
        if not 0 < channel_id <= self.channel_max:
            raise ChannelAllocationError(
                'Channel id {0!r} out of range 1..{1}'.format(
                    channel_id, self.channel_max), channel_id)
        try:
            self._avail_channel_ids.remove(channel_id)
        except ValueError:
            raise ChannelAllocationError(
                'Channel {0!r} already open'.format(channel_id), channel_id)

    def release_channel(self, channel_id: int) -> None:
        with self._channel_lock:
            if not 0 < channel_id <= self.channel_max:
                logger.warning(
                    'Channel id %r released but is out of range 1..%r',
                    channel_id, self.channel_max)
                return
            if channel_id in self._avail_channel_ids:
                logger.warning(
                    'Channel id %r released but was not allocated',
                    channel_id)
                return
            self._avail_channel_ids.append(channel_id)
            self._channel_errors.pop(channel_id, None)
            for key in [k for k in self._events if k[0] == channel_id]:
                del self._events[key]

    def is_allocated(self, channel_id: int) -> bool:
        with self._channel_lock:
            return (0 < channel_id <= self.channel_max and
                    channel_id not in self._avail_channel_ids)

    @abc.abstractmethod
    def send_request(self, channel_id: int, method_sig: method_sig_t,
                     fields: tuple) -> None:
        ...

    @abc.abstractmethod
    def send_publish(self, channel_id: int, fields: tuple,
                     properties: bytes, body: bytes) -> None:
        ...

    @abc.abstractmethod
    def drain_events(self, timeout: Optional[float] = None) -> None:
        """Read one inbound method and pass it to
        :meth:`on_inbound_method`."""
        ...

    def fetch_response(self, channel_id: int,
                       expected: Sequence[method_sig_t],
                       timeout: Optional[float] = None) -> response_t:
        p = promise()
        pending = self._pending
        keys = [(channel_id, method_sig) for method_sig in expected]
        for key in keys:
            if key in pending:
                raise RPCAlreadyOutstanding(
                    'Channel {0!r} is already waiting for {1}'.format(
                        channel_id, spec.method_name(key[1])))
        for key in keys:
            pending[key] = p
        try:
            while not (p.ready or p.failed):
                self.drain_events(timeout=timeout)
            if p.failed:
                raise p.reason
            args, _ = p.value
            return args[0]
        finally:
            for key in keys:
                if pending.get(key) is p:
                    del pending[key]

    def on_inbound_method(self,
                          channel_id: int,
                          method_sig: method_sig_t,
                          fields: Optional[Mapping[str, Any]] = None,
                          message: Optional[message_t] = None) -> None:
        """Dispatch decoded method received on ``channel_id``.

        A waiting :meth:`fetch_response` gets it first, registered
        event handlers otherwise.

        ``Connection.Close`` is raised as the broker's error right
        away.  ``Channel.Close`` fails the call waiting on that
        channel, or is kept until the channel's next call (see
        :meth:`pop_channel_error`) when nothing is waiting on it.
        """
        method_sig = method_sig_t(*method_sig)
        fields = fields or {}
        response = response_t(method_sig, fields, message)
        if method_sig == spec.Connection.Close:
            raise self._on_close(0, fields, spec.Connection.CloseOk,
                                 ConnectionError)
        if method_sig == spec.Channel.Close:
            exc = self._on_close(channel_id, fields, spec.Channel.CloseOk,
                                 ChannelError)
            if not self._fail_pending(channel_id, exc):
                self._channel_errors[channel_id] = exc
            self._dispatch_event(channel_id, response)
            return

        p = self._pending.pop((channel_id, method_sig), None)
        if p is not None:
            p(response)
            return
        self._dispatch_event(channel_id, response)

    def _dispatch_event(self, channel_id: int, response: response_t) -> None:
        key = (channel_id, response.method_sig)
        handlers = list(self._events.get(key, ()))
        if not handlers:
            logger.debug('Channel %r: no receiver for %s',
                         channel_id, response.method_name)
        for handler in handlers:
            handler(response)

    def _fail_pending(self, channel_id: int, exc: AMQPError) -> bool:
        waiting = [k for k in self._pending if k[0] == channel_id]
        failed = set()
        for key in waiting:
            p = self._pending.pop(key)
            if id(p) not in failed:
                failed.add(id(p))
                p.throw(exc, propagate=False)
        return bool(waiting)

    def _on_close(self, channel_id: int, fields: Mapping[str, Any],
                  close_ok: method_sig_t, default: type) -> AMQPError:
        reply_code = fields.get('reply_code', 0)
        reply_text = fields.get('reply_text', '')
        failed = (fields.get('class_id', 0), fields.get('method_id', 0))
        logger.debug('Channel %r closed by broker: (%r) %s',
                     channel_id, reply_code, reply_text)
        self.send_request(channel_id, close_ok, no_fields_t())
        return error_for_code(reply_code, reply_text, failed, default)

    def pop_channel_error(self, channel_id: int) -> Optional[AMQPError]:
        """Take the error of a broker close nobody was waiting for."""
        return self._channel_errors.pop(channel_id, None)

    def register_event(self, channel_id: int, event: EventT,
                       handler: EventHandlerT) -> None:
        self._events[(channel_id, spec.method_sig_for(event))].append(
            handler)

    def run_loop(self, timeout: Optional[float] = None) -> None:
        """Process inbound events until :meth:`break_loop` is called."""
        self._loop_broken = False
        while not self._loop_broken:
            self.drain_events(timeout=timeout)

    def break_loop(self) -> None:
        self._loop_broken = True

    def __repr__(self) -> str:
        return '<{name}: channel_max={0.channel_max}>'.format(
            self, name=type(self).__name__)
