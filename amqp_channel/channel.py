"""AMQP Channels."""
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
import socket
import threading
import weakref
from contextlib import contextmanager
from typing import Any, AnyStr, Iterator, Optional, Union

from . import spec
from .basic_properties import BasicProperties
from .exceptions import (
    ChannelAllocationError, ChannelReleased,
    RPCAlreadyOutstanding, TransportError,
)
from .protocol import (
    basic_ack_t, basic_cancel_t, basic_consume_t, basic_get_t,
    basic_nack_t, basic_publish_t, basic_qos_t, basic_reject_t,
    exchange_bind_t, exchange_declare_t, exchange_delete_t,
    exchange_unbind_t, no_fields_t, queue_bind_t, queue_declare_t,
    queue_delete_t, queue_purge_t, queue_unbind_t, response_t,
)
from .spec import ResponseSpecT, method_sig_t
from .types import ChannelT, ConnectionT, EventHandlerT, EventT
from .utils import get_logger, want_bytes

__all__ = ['Channel']

logger = get_logger('amqp_channel')

PUBLISH_OPERATION = 'publishing a message'

RPCResultT = Union[response_t, bool]


def _release_channel_id(connection: ConnectionT, channel_id: int) -> None:
    # Must not reference the channel object, or it would never
    # become unreachable.
    logger.debug('Releasing channel id %r', channel_id)
    connection.release_channel(channel_id)


class Channel(ChannelT):
    """AMQP Channel.

    Work with channels.

    The channel class provides methods for a client to establish a
    virtual connection - a channel - to a server and for both peers to
    operate the virtual connection thereafter.

    Create a channel bound to a connection and using the specified
    numeric channel_id.  The id is reserved in the connection's
    allocation table unless ``pre_allocated`` says the connection
    already did so.

    The id is given back with :meth:`release`.  A channel that is
    dropped without being released has its id reclaimed once it is
    garbage collected, but code that wants to reuse an id must call
    :meth:`release` explicitly.

    Only one synchronous call may be outstanding on a channel: issuing
    a second one before the first got its response raises
    :exc:`~amqp_channel.exceptions.RPCAlreadyOutstanding`.  Responses
    are matched by channel id and method only, so callers sharing a
    channel between threads must serialize their calls.
    """

    #: Property bundle class used by :meth:`basic_publish`.
    Properties: type = BasicProperties

    #: Errors from the connection primitives that are reported
    #: as :exc:`~amqp_channel.exceptions.TransportError`.
    #: :exc:`socket.timeout` is an :exc:`OSError` too but is re-raised
    #: unchanged, see :meth:`_reporting_transport_errors`.
    transport_errors = (OSError,)

    def __init__(self,
                 connection: ConnectionT,
                 channel_id: Optional[int] = None,
                 pre_allocated: bool = False) -> None:
        if not pre_allocated:
            channel_id = connection.allocate_channel(channel_id)
        elif channel_id is None:
            raise ChannelAllocationError(
                'Pre-allocated channel requires a channel id')
        self.connection = connection
        self.channel_id: int = channel_id
        self._rpc_lock = threading.Lock()

        # bound to (connection, channel_id) only, see _release_channel_id.
        self._reclaim = weakref.finalize(
            self, _release_channel_id, connection, channel_id)
        self._reclaim.atexit = False
        logger.debug('Channel %r allocated', channel_id)

    def __enter__(self) -> 'Channel':
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def release(self) -> 'Channel':
        """Release the channel id to be reallocated to another channel.

        Safe to call more than once, the connection is only told
        about the first call.

        Returns:
            Channel: self.
        """
        self._reclaim()
        return self

    @property
    def is_released(self) -> bool:
        return not self._reclaim.alive

    def on(self, event: EventT, handler: EventHandlerT) -> EventHandlerT:
        """Register handler for events (e.g. ``'basic_deliver'``)
        received on this channel."""
        self._ensure_not_released('registering an event handler')
        self.connection.register_event(self.channel_id, event, handler)
        return handler

    def run_loop(self, *args: Any, **kwargs: Any) -> None:
        """Run the connection's event loop until :meth:`break_loop`."""
        self.connection.run_loop(*args, **kwargs)

    def break_loop(self) -> None:
        self.connection.break_loop()

    def _ensure_not_released(self, operation: str) -> None:
        if self.is_released:
            raise ChannelReleased(
                'Channel {0!r} is released: cannot do {1}'.format(
                    self.channel_id, operation))

    def _ensure_usable(self, operation: str) -> None:
        self._ensure_not_released(operation)
        exc = self.connection.pop_channel_error(self.channel_id)
        if exc is not None:
            # broker closed the channel while nobody was waiting on it
            raise exc

    @contextmanager
    def _reporting_transport_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except socket.timeout:
            raise
        except self.transport_errors as exc:
            raise TransportError(operation, exc) from exc

    def rpc(self,
            method_sig: method_sig_t,
            fields: tuple,
            expected: ResponseSpecT = None,
            timeout: Optional[float] = None) -> RPCResultT:
        """Send method and wait for its response.

        Arguments:
            method_sig (method_sig_t): Request method.
            fields (NamedTuple): Request field table.
            expected (method_sig_t | Sequence[method_sig_t]):
                Methods accepted as response.  Defaults to what the
                request is paired with in
                :data:`~amqp_channel.spec.RPC_RESPONSES`; an empty
                sequence means no response is awaited.
            timeout (float): Passed on to the connection when waiting,
                :const:`None` blocks until the response arrives.

        Returns:
            response_t: the response, or :const:`True` for
                methods without a response.
        """
        if expected is None:
            expected = spec.responses_for(method_sig)
        expected = spec.as_response_set(expected)
        operation = spec.method_name(method_sig) or repr(method_sig)
        self._ensure_usable(operation)

        if not expected:
            with self._reporting_transport_errors(operation):
                self.connection.send_request(
                    self.channel_id, method_sig, fields)
            return True

        if not self._rpc_lock.acquire(blocking=False):
            raise RPCAlreadyOutstanding(
                'Channel {0!r}: {1} issued while another call is '
                'waiting for its response'.format(
                    self.channel_id, operation))
        try:
            logger.debug('Channel %r: sending %s', self.channel_id, operation)
            with self._reporting_transport_errors(operation):
                self.connection.send_request(
                    self.channel_id, method_sig, fields)
                response = self.connection.fetch_response(
                    self.channel_id, expected, timeout=timeout)
            logger.debug('Channel %r: received %s',
                         self.channel_id, spec.method_name(
                             response.method_sig))
            return response
        finally:
            self._rpc_lock.release()

    #############
    #
    #  Exchange
    #
    #
    # Work with exchanges.
    #
    # Exchanges match and distribute messages across queues.
    # Exchanges can be configured in the server or created at runtime.
    #
    # GRAMMAR::
    #
    #     exchange            = C:DECLARE  S:DECLARE-OK
    #                         / C:DELETE   S:DELETE-OK
    #                         / C:BIND     S:BIND-OK
    #                         / C:UNBIND   S:UNBIND-OK
    #

    def exchange_declare(self, exchange: str, type: str,
                         **options: Any) -> RPCResultT:
        """Declare exchange, create if needed.

        This method creates an exchange if it does not already exist,
        and if the exchange exists, verifies that it is of the correct
        and expected class.

        PARAMETERS:
            exchange: shortstr

                Exchange names starting with "amq." are reserved for
                predeclared and standardised exchanges.

            type: shortstr

                exchange type, e.g. ``direct``, ``fanout``, ``topic``.

            passive: boolean (default False)

                If set, the server will not create the exchange.  The
                client can use this to check whether an exchange
                exists without modifying the server state.

            durable: boolean (default False)

                If set when creating a new exchange, the exchange will
                be marked as durable.  Durable exchanges remain active
                when a server restarts.

            auto_delete: boolean (default False)

                If set, the exchange is deleted when all queues have
                finished using it.

            internal: boolean (default False)

                Internal exchanges cannot be published to directly.

            arguments: table (default {})

                A set of arguments for the declaration.
        """
        return self.rpc(
            spec.Exchange.Declare,
            exchange_declare_t(exchange, type, **options),
        )

    def exchange_delete(self, exchange: str, **options: Any) -> RPCResultT:
        """Delete an exchange.

        ``if_unused`` (default False): only delete the exchange if it
        has no queue bindings.
        """
        return self.rpc(
            spec.Exchange.Delete,
            exchange_delete_t(exchange, **options),
        )

    def exchange_bind(self, source: str, destination: str,
                      **options: Any) -> RPCResultT:
        """Bind an exchange to an exchange.

        Messages routed by ``source`` with a matching ``routing_key``
        (default ``''``) are forwarded to ``destination``.
        """
        return self.rpc(
            spec.Exchange.Bind,
            exchange_bind_t(source, destination, **options),
        )

    def exchange_unbind(self, source: str, destination: str,
                        **options: Any) -> RPCResultT:
        """Unbind an exchange from an exchange."""
        return self.rpc(
            spec.Exchange.Unbind,
            exchange_unbind_t(source, destination, **options),
        )

    #############
    #
    #  Queue
    #
    #
    # Work with queues.
    #
    # Queues store and forward messages.  Queues can be configured in
    # the server or created at runtime.  Queues must be attached to at
    # least one exchange in order to receive messages from publishers.
    #
    # GRAMMAR::
    #
    #     queue               = C:DECLARE  S:DECLARE-OK
    #                         / C:BIND     S:BIND-OK
    #                         / C:UNBIND   S:UNBIND-OK
    #                         / C:PURGE    S:PURGE-OK
    #                         / C:DELETE   S:DELETE-OK
    #

    def queue_declare(self, queue: str = '', **options: Any) -> RPCResultT:
        """Declare queue, create if needed.

        This method creates or checks a queue.  When creating a new
        queue the client can specify various properties that control
        the durability of the queue and its contents, and the level of
        sharing for the queue.

        PARAMETERS:
            queue: shortstr

                The queue name.  If empty the server picks one, it is
                returned in the ``queue`` field of the response.

            passive: boolean (default False)

                If set, the server will not create the queue.

            durable: boolean (default False)

                Durable queues remain active when a server restarts.

            exclusive: boolean (default False)

                Exclusive queues may only be consumed from by the
                current connection.

            auto_delete: boolean (default False)

                If set, the queue is deleted when all consumers have
                finished using it.

            arguments: table (default {})

                A set of arguments for the declaration.

        Returns:
            response_t: ``Queue.declare_ok`` carrying ``queue``,
                ``message_count`` and ``consumer_count``.
        """
        return self.rpc(
            spec.Queue.Declare,
            queue_declare_t(queue, **options),
        )

    def queue_bind(self, queue: str, exchange: str,
                   **options: Any) -> RPCResultT:
        """Bind queue to an exchange.

        ``routing_key`` defaults to ``''`` and ``arguments`` to ``{}``.
        """
        return self.rpc(
            spec.Queue.Bind,
            queue_bind_t(queue, exchange, **options),
        )

    def queue_unbind(self, queue: str, exchange: str,
                     **options: Any) -> RPCResultT:
        """Unbind a queue from an exchange."""
        return self.rpc(
            spec.Queue.Unbind,
            queue_unbind_t(queue, exchange, **options),
        )

    def queue_purge(self, queue: str) -> RPCResultT:
        """Purge a queue.

        Removes all messages from a queue which are not awaiting
        acknowledgment.
        """
        return self.rpc(spec.Queue.Purge, queue_purge_t(queue))

    def queue_delete(self, queue: str, **options: Any) -> RPCResultT:
        """Delete a queue.

        ``if_unused`` and ``if_empty`` (both default False) make the
        deletion conditional.
        """
        return self.rpc(
            spec.Queue.Delete,
            queue_delete_t(queue, **options),
        )

    #############
    #
    #  Basic
    #
    #
    # Work with basic content.
    #
    # GRAMMAR::
    #
    #     basic               = C:QOS S:QOS-OK
    #                         / C:CONSUME S:CONSUME-OK
    #                         / C:CANCEL S:CANCEL-OK
    #                         / C:PUBLISH content
    #                         / S:RETURN content
    #                         / S:DELIVER content
    #                         / C:GET ( S:GET-OK content / S:GET-EMPTY )
    #                         / C:ACK
    #                         / C:NACK
    #                         / C:REJECT
    #

    def basic_qos(self, **options: Any) -> RPCResultT:
        """Specify quality of service.

        ``prefetch_count`` and ``prefetch_size`` default to 0 (no
        limit); ``global_`` (default False) applies the limit to the
        whole connection instead of each consumer.
        """
        return self.rpc(spec.Basic.Qos, basic_qos_t(**options))

    def basic_consume(self, queue: str = '', consumer_tag: str = '',
                      **options: Any) -> RPCResultT:
        """Start a queue consumer.

        Deliveries are dispatched to handlers registered with
        ``channel.on('basic_deliver', handler)``.

        ``no_local``, ``no_ack`` and ``exclusive`` default to False,
        ``arguments`` to ``{}``.
        """
        return self.rpc(
            spec.Basic.Consume,
            basic_consume_t(queue, consumer_tag, **options),
        )

    def basic_cancel(self, consumer_tag: str) -> RPCResultT:
        """End a queue consumer."""
        return self.rpc(spec.Basic.Cancel, basic_cancel_t(consumer_tag))

    def basic_get(self, queue: str = '', **options: Any) -> RPCResultT:
        """Direct access to a queue.

        This method provides a direct access to the messages in a
        queue using a synchronous dialogue that is designed for
        specific types of application where synchronous functionality
        is more important than performance.

        PARAMETERS:
            queue: shortstr

                Specifies the name of the queue to consume from.

            no_ack: boolean (default False)

                If set the server does not expect acknowledgments for
                the message.

        Returns:
            response_t: either ``Basic.get_ok`` with the message in
                ``response.message``, or ``Basic.get_empty`` when the
                queue had nothing to give.  Compare
                ``response.method_sig`` with
                :attr:`spec.Basic.GetOk <amqp_channel.spec.Basic.GetOk>`.
        """
        return self.rpc(spec.Basic.Get, basic_get_t(queue, **options))

    def basic_ack(self, delivery_tag: int, **options: Any) -> RPCResultT:
        """Acknowledge one or more messages.

        With ``multiple=True`` every message up to and including
        ``delivery_tag`` is acknowledged.
        """
        return self.rpc(spec.Basic.Ack, basic_ack_t(delivery_tag, **options))

    def basic_nack(self, delivery_tag: int, **options: Any) -> RPCResultT:
        """Reject one or more incoming messages.

        ``requeue`` defaults to True, ``multiple`` to False.
        """
        return self.rpc(
            spec.Basic.Nack, basic_nack_t(delivery_tag, **options))

    def basic_reject(self, delivery_tag: int,
                     **options: Any) -> RPCResultT:
        """Reject an incoming message (``requeue`` defaults to True)."""
        return self.rpc(
            spec.Basic.Reject, basic_reject_t(delivery_tag, **options))

    def basic_publish(self, body: AnyStr,
                      exchange: AnyStr = '',
                      routing_key: AnyStr = '',
                      mandatory: bool = False,
                      immediate: bool = False,
                      **properties: Any) -> bool:
        """Publish a message.

        This method publishes a message to a specific exchange.  The
        message will be routed to queues as defined by the exchange
        configuration and distributed to any active consumers when the
        transaction, if any, is committed.

        ``body``, ``exchange`` and ``routing_key`` may be :class:`str`
        (encoded as UTF-8) or :class:`bytes`, which are sent unchanged.
        The remaining keyword arguments are message properties, see
        :class:`~amqp_channel.basic_properties.BasicProperties`.

        The broker does not answer a publish: unroutable mandatory
        messages come back later as a ``basic_return`` event.

        Raises:
            ~amqp_channel.exceptions.TransportError: the write failed,
                ``operation`` is ``'publishing a message'``.
        """
        self._ensure_usable(PUBLISH_OPERATION)
        fields = basic_publish_t(
            want_bytes(exchange), want_bytes(routing_key),
            mandatory, immediate,
        )
        with self.Properties(**properties) as props:
            with self._reporting_transport_errors(PUBLISH_OPERATION):
                self.connection.send_publish(
                    self.channel_id, fields, props.encode(),
                    want_bytes(body),
                )
        return True

    #############
    #
    #  Tx
    #
    #
    # Work with standard transactions.
    #
    # GRAMMAR::
    #
    #     tx                  = C:SELECT S:SELECT-OK
    #                         / C:COMMIT S:COMMIT-OK
    #                         / C:ROLLBACK S:ROLLBACK-OK
    #

    def tx_select(self) -> RPCResultT:
        """Select standard transaction mode for this channel."""
        return self.rpc(spec.Tx.Select, no_fields_t())

    def tx_commit(self) -> RPCResultT:
        """Commit the current transaction."""
        return self.rpc(spec.Tx.Commit, no_fields_t())

    def tx_rollback(self) -> RPCResultT:
        """Abandon the current transaction."""
        return self.rpc(spec.Tx.Rollback, no_fields_t())

    def __repr__(self) -> str:
        return '<{name}: {0.channel_id}{state}>'.format(
            self, name=type(self).__name__,
            state=' (released)' if self.is_released else '')
