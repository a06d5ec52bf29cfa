import itertools
import socket
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Set, Tuple

from amqp_channel import spec
from amqp_channel.basic_properties import BasicProperties
from amqp_channel.connection import Connection
from amqp_channel.protocol import message_t


class MemoryConnection(Connection):
    """Connection to a tiny in-process broker.

    Requests are answered by queueing the response, which
    :meth:`drain_events` hands to :meth:`on_inbound_method`
    one at a time, the way a frame reader would.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.inbound: Deque[Tuple] = deque()
        self.sent: List[Tuple] = []
        self.published: List[Tuple] = []
        self.acked: List[Tuple] = []
        self.exchanges: Dict[str, str] = {'': 'direct'}
        self.bindings: Dict[str, Set[Tuple[str, str]]] = defaultdict(set)
        self.queues: Dict[str, Deque[Tuple]] = {}
        self.consumers: Dict[str, Tuple[int, str]] = {}
        self._delivery_tags = itertools.count(1)
        self._names = itertools.count(1)
        self._handlers = {
            spec.Exchange.Declare: self._exchange_declare,
            spec.Exchange.Delete: self._exchange_delete,
            spec.Exchange.Bind: self._ok(spec.Exchange.BindOk),
            spec.Exchange.Unbind: self._ok(spec.Exchange.UnbindOk),
            spec.Queue.Declare: self._queue_declare,
            spec.Queue.Bind: self._queue_bind,
            spec.Queue.Unbind: self._queue_unbind,
            spec.Queue.Purge: self._queue_purge,
            spec.Queue.Delete: self._queue_delete,
            spec.Basic.Qos: self._ok(spec.Basic.QosOk),
            spec.Basic.Consume: self._basic_consume,
            spec.Basic.Cancel: self._basic_cancel,
            spec.Basic.Get: self._basic_get,
            spec.Basic.Ack: self._settle,
            spec.Basic.Nack: self._settle,
            spec.Basic.Reject: self._settle,
            spec.Tx.Select: self._ok(spec.Tx.SelectOk),
            spec.Tx.Commit: self._ok(spec.Tx.CommitOk),
            spec.Tx.Rollback: self._ok(spec.Tx.RollbackOk),
        }

    def reply(self, channel_id: int, method_sig: spec.method_sig_t,
              message: message_t = None, **fields: Any) -> None:
        self.inbound.append((channel_id, method_sig, fields, message))

    def send_request(self, channel_id, method_sig, fields):
        self.sent.append((channel_id, method_sig, fields))
        handler = self._handlers.get(method_sig)
        if handler is not None:
            handler(channel_id, method_sig, fields._asdict())

    def send_publish(self, channel_id, fields, properties, body):
        self.published.append((channel_id, fields, properties, body))
        props = BasicProperties.decode(properties)
        exchange = fields.exchange.decode()
        routing_key = fields.routing_key.decode()
        message = message_t(body, props.properties)
        if exchange == '':
            targets = [routing_key] if routing_key in self.queues else []
        else:
            targets = [queue for queue, key in self.bindings[exchange]
                       if key == routing_key]
        for queue in targets:
            self._enqueue(queue, exchange, routing_key, message)

    def drain_events(self, timeout=None):
        if not self.inbound:
            raise socket.timeout('no frames from broker')
        self.on_inbound_method(*self.inbound.popleft())

    def _enqueue(self, queue, exchange, routing_key, message):
        for tag, (channel_id, consumed) in self.consumers.items():
            if consumed == queue:
                self.reply(
                    channel_id, spec.Basic.Deliver, message,
                    consumer_tag=tag,
                    delivery_tag=next(self._delivery_tags),
                    redelivered=False,
                    exchange=exchange, routing_key=routing_key,
                )
                return
        self.queues[queue].append((exchange, routing_key, message))

    def _close_channel(self, channel_id, method_sig, reply_code, text):
        self.reply(
            channel_id, spec.Channel.Close,
            reply_code=reply_code, reply_text=text,
            class_id=method_sig[0], method_id=method_sig[1],
        )

    def _ok(self, response):
        def handler(channel_id, method_sig, fields):
            self.reply(channel_id, response)
        return handler

    def _exchange_declare(self, channel_id, method_sig, fields):
        name = fields['exchange']
        if name not in self.exchanges:
            if fields['passive']:
                return self._close_channel(
                    channel_id, method_sig, 404,
                    "NOT_FOUND - no exchange '{0}'".format(name))
            self.exchanges[name] = fields['type']
        elif self.exchanges[name] != fields['type']:
            return self._close_channel(
                channel_id, method_sig, 406,
                "PRECONDITION_FAILED - inequivalent arg 'type'")
        self.reply(channel_id, spec.Exchange.DeclareOk)

    def _exchange_delete(self, channel_id, method_sig, fields):
        self.exchanges.pop(fields['exchange'], None)
        self.bindings.pop(fields['exchange'], None)
        self.reply(channel_id, spec.Exchange.DeleteOk)

    def _queue_declare(self, channel_id, method_sig, fields):
        name = fields['queue'] or 'amq.gen-{0}'.format(next(self._names))
        if name not in self.queues:
            if fields['passive']:
                return self._close_channel(
                    channel_id, method_sig, 404,
                    "NOT_FOUND - no queue '{0}'".format(name))
            self.queues[name] = deque()
        consumers = sum(1 for _, queue in self.consumers.values()
                        if queue == name)
        self.reply(
            channel_id, spec.Queue.DeclareOk, queue=name,
            message_count=len(self.queues[name]),
            consumer_count=consumers,
        )

    def _queue_bind(self, channel_id, method_sig, fields):
        if fields['exchange'] not in self.exchanges:
            return self._close_channel(
                channel_id, method_sig, 404,
                "NOT_FOUND - no exchange '{0}'".format(fields['exchange']))
        self.bindings[fields['exchange']].add(
            (fields['queue'], fields['routing_key']))
        self.reply(channel_id, spec.Queue.BindOk)

    def _queue_unbind(self, channel_id, method_sig, fields):
        self.bindings[fields['exchange']].discard(
            (fields['queue'], fields['routing_key']))
        self.reply(channel_id, spec.Queue.UnbindOk)

    def _queue_purge(self, channel_id, method_sig, fields):
        queue = self.queues[fields['queue']]
        count = len(queue)
        queue.clear()
        self.reply(channel_id, spec.Queue.PurgeOk, message_count=count)

    def _queue_delete(self, channel_id, method_sig, fields):
        queue = self.queues.pop(fields['queue'], ())
        self.reply(channel_id, spec.Queue.DeleteOk, message_count=len(queue))

    def _basic_consume(self, channel_id, method_sig, fields):
        tag = fields['consumer_tag'] or 'amq.ctag-{0}'.format(
            next(self._names))
        self.consumers[tag] = (channel_id, fields['queue'])
        self.reply(channel_id, spec.Basic.ConsumeOk, consumer_tag=tag)

    def _basic_cancel(self, channel_id, method_sig, fields):
        self.consumers.pop(fields['consumer_tag'], None)
        self.reply(channel_id, spec.Basic.CancelOk,
                   consumer_tag=fields['consumer_tag'])

    def _basic_get(self, channel_id, method_sig, fields):
        queue = self.queues[fields['queue']]
        if not queue:
            return self.reply(channel_id, spec.Basic.GetEmpty,
                              cluster_id='')
        exchange, routing_key, message = queue.popleft()
        self.reply(
            channel_id, spec.Basic.GetOk, message,
            delivery_tag=next(self._delivery_tags), redelivered=False,
            exchange=exchange, routing_key=routing_key,
            message_count=len(queue),
        )

    def _settle(self, channel_id, method_sig, fields):
        self.acked.append((channel_id, method_sig, fields))
