import gc
import socket

import pytest

from amqp_channel import spec
from amqp_channel.basic_properties import DeliveryMode
from amqp_channel.exceptions import (
    ChannelAllocationError, ChannelReleased, NotFound, PreconditionFailed,
)
from amqp_channel.protocol import basic_qos_t

from t.mocks import MemoryConnection


class test_channel_against_broker:

    @pytest.fixture(autouse=True)
    def setup_conn(self):
        self.conn = MemoryConnection()
        self.ch = self.conn.channel()

    def test_exchange_declare(self):
        response = self.ch.exchange_declare('e1', 'direct', durable=True)
        assert response.method_name == 'Exchange.declare_ok'
        assert self.conn.exchanges['e1'] == 'direct'

    def test_exchange_declare__passive_missing(self):
        with pytest.raises(NotFound) as excinfo:
            self.ch.exchange_declare('missing', 'direct', passive=True)
        assert excinfo.value.reply_code == 404
        assert excinfo.value.method_sig == spec.Exchange.Declare
        assert self.conn.sent[-1][1] == spec.Channel.CloseOk

    def test_exchange_declare__type_mismatch(self):
        self.ch.exchange_declare('e1', 'direct')
        with pytest.raises(PreconditionFailed):
            self.ch.exchange_declare('e1', 'fanout')

    def test_queue_declare_and_bind(self):
        self.ch.exchange_declare('e1', 'direct', durable=True)
        response = self.ch.queue_declare('q1', durable=True)
        assert response.method_sig == spec.Queue.DeclareOk
        assert response.queue == 'q1'
        assert response.message_count == 0
        assert response.consumer_count == 0
        response = self.ch.queue_bind('q1', 'e1', routing_key='rk')
        assert response.method_sig == spec.Queue.BindOk
        assert ('q1', 'rk') in self.conn.bindings['e1']

    def test_queue_declare__server_named(self):
        response = self.ch.queue_declare()
        assert response.queue.startswith('amq.gen-')
        assert response.queue in self.conn.queues

    def test_queue_declare__passive_missing(self):
        with pytest.raises(NotFound):
            self.ch.queue_declare('nope', passive=True)
        # the failed call does not leave the channel waiting
        assert self.ch.queue_declare('q1').queue == 'q1'

    def test_publish_and_get(self):
        body = b'\x00\xff\xfe binary \x00 payload \x80'
        self.ch.exchange_declare('e1', 'direct')
        self.ch.queue_declare('q1')
        self.ch.queue_bind('q1', 'e1', routing_key='rk')
        assert self.ch.basic_publish(
            body, 'e1', 'rk', persistent=True,
            headers={'x-trace': 'abc'}, content_type='application/x-raw',
        ) is True

        response = self.ch.basic_get('q1')
        assert response.method_sig == spec.Basic.GetOk
        assert response.routing_key == 'rk'
        assert response.message_count == 0
        message = response.message
        assert message.body == body
        assert message.properties['delivery_mode'] == DeliveryMode.PERSISTENT
        assert message.properties['headers'] == {'x-trace': 'abc'}
        assert message.properties['content_type'] == 'application/x-raw'

    def test_publish__default_exchange(self):
        self.ch.queue_declare('q1')
        self.ch.basic_publish('text body', routing_key='q1')
        response = self.ch.basic_get('q1')
        assert response.message.body == b'text body'
        assert response.message.properties['delivery_mode'] == (
            DeliveryMode.TRANSIENT)

    def test_get__empty(self):
        self.ch.queue_declare('q1')
        response = self.ch.basic_get('q1')
        assert response.method_sig == spec.Basic.GetEmpty
        assert response.method_name == 'Basic.get_empty'
        assert response.message is None

    def test_consume_deliver_ack(self):
        delivered = []

        def on_deliver(response):
            delivered.append(response)
            self.ch.basic_ack(response.delivery_tag)
            self.ch.break_loop()

        self.ch.queue_declare('q1')
        self.ch.on('basic_deliver', on_deliver)
        response = self.ch.basic_consume('q1')
        tag = response.consumer_tag
        assert tag.startswith('amq.ctag-')

        self.ch.basic_publish(b'hello', routing_key='q1')
        self.ch.run_loop(timeout=1)

        assert len(delivered) == 1
        assert delivered[0].message.body == b'hello'
        assert delivered[0].consumer_tag == tag
        assert self.conn.acked == [(
            self.ch.channel_id, spec.Basic.Ack,
            {'delivery_tag': delivered[0].delivery_tag, 'multiple': False},
        )]

        response = self.ch.basic_cancel(tag)
        assert response.consumer_tag == tag
        assert tag not in self.conn.consumers

    def test_purge_and_delete(self):
        self.ch.queue_declare('q1')
        for i in range(3):
            self.ch.basic_publish(str(i), routing_key='q1')
        assert self.ch.queue_purge('q1').message_count == 3
        self.ch.basic_publish(b'x', routing_key='q1')
        assert self.ch.queue_delete('q1').message_count == 1
        assert 'q1' not in self.conn.queues

    def test_qos_and_tx(self):
        assert self.ch.basic_qos(prefetch_count=10).method_sig == (
            spec.Basic.QosOk)
        assert self.ch.tx_select().method_sig == spec.Tx.SelectOk
        assert self.ch.tx_commit().method_sig == spec.Tx.CommitOk
        assert self.ch.tx_rollback().method_sig == spec.Tx.RollbackOk

    def test_nack_and_reject_need_no_response(self):
        assert self.ch.basic_nack(1) is True
        assert self.ch.basic_reject(2, requeue=False) is True
        assert not self.conn.inbound
        assert [m for _, m, _ in self.conn.acked] == [
            spec.Basic.Nack, spec.Basic.Reject]

    def test_unexpected_response_is_not_the_answer(self):
        with pytest.raises(socket.timeout):
            self.ch.rpc(spec.Basic.Qos, basic_qos_t(), spec.Basic.ConsumeOk,
                        timeout=1)
        assert self.ch.tx_select().method_sig == spec.Tx.SelectOk


class test_channel_ids_against_broker:

    @pytest.fixture(autouse=True)
    def setup_conn(self):
        self.conn = MemoryConnection(channel_max=8)

    def test_reuse_after_release(self):
        ch = self.conn.channel(5)
        with pytest.raises(ChannelAllocationError):
            self.conn.channel(5)
        ch.release()
        with pytest.raises(ChannelReleased):
            ch.queue_declare('q1')
        again = self.conn.channel(5)
        assert again.channel_id == 5
        assert again.queue_declare('q1').queue == 'q1'

    def test_reuse_after_with_block(self):
        with self.conn.channel(5) as ch:
            ch.queue_declare('q1')
        assert not self.conn.is_allocated(5)
        assert self.conn.channel(5).channel_id == 5

    def test_reclaimed_when_dropped(self):
        self.conn.channel(5)
        gc.collect()
        assert not self.conn.is_allocated(5)
        assert self.conn.channel(5).channel_id == 5

    def test_channels_are_independent(self):
        first = self.conn.channel()
        second = self.conn.channel()
        assert first.channel_id != second.channel_id
        first.queue_declare('q1')
        second.queue_declare('q2')
        with pytest.raises(NotFound):
            first.queue_declare('q3', passive=True)
        assert second.queue_declare('q2', passive=True).queue == 'q2'

    def test_close_reaches_the_closed_channel(self):
        one, two = self.conn.channel(), self.conn.channel()
        self.conn.reply(
            two.channel_id, spec.Channel.Close, reply_code=404,
            reply_text="NOT_FOUND - no exchange 'e9'",
            class_id=60, method_id=40,
        )
        response = one.tx_select()
        assert response.method_sig == spec.Tx.SelectOk
        assert not self.conn.inbound

        sent = len(self.conn.sent)
        with pytest.raises(NotFound) as excinfo:
            two.queue_declare('q1')
        assert excinfo.value.method_name == 'Basic.publish'
        assert len(self.conn.sent) == sent
        # the error is reported once
        assert two.queue_declare('q1').queue == 'q1'

    def test_close_while_waiting_on_other_channel_in_handler(self):
        one, two = self.conn.channel(), self.conn.channel()
        seen = []
        two.on('channel_close', seen.append)
        self.conn.reply(two.channel_id, spec.Channel.Close,
                        reply_code=406, reply_text='PRECONDITION_FAILED')
        one.queue_declare('q1')
        assert [r.reply_code for r in seen] == [406]
        with pytest.raises(PreconditionFailed):
            two.basic_publish(b'x', routing_key='q1')
        assert not self.conn.published
