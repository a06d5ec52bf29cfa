"""AMQP Spec."""
from typing import Mapping, NamedTuple, Tuple, Union

method_sig_t = NamedTuple('method_sig_t', [
    ('major', int),
    ('minor', int),
])

ResponseSpecT = Union[method_sig_t, Tuple[method_sig_t, ...], None]


class Connection:
    """AMQ Connection class."""

    CLASS_ID = 10

    Close = method_sig_t(CLASS_ID, 50)
    CloseOk = method_sig_t(CLASS_ID, 51)


class Channel:
    """AMQ Channel class."""

    CLASS_ID = 20

    Close = method_sig_t(CLASS_ID, 40)
    CloseOk = method_sig_t(CLASS_ID, 41)


class Exchange:
    """AMQ Exchange class."""

    CLASS_ID = 40

    Declare = method_sig_t(CLASS_ID, 10)
    DeclareOk = method_sig_t(CLASS_ID, 11)
    Delete = method_sig_t(CLASS_ID, 20)
    DeleteOk = method_sig_t(CLASS_ID, 21)
    Bind = method_sig_t(CLASS_ID, 30)
    BindOk = method_sig_t(CLASS_ID, 31)
    Unbind = method_sig_t(CLASS_ID, 40)
    UnbindOk = method_sig_t(CLASS_ID, 51)


class Queue:
    """AMQ Queue class."""

    CLASS_ID = 50

    Declare = method_sig_t(CLASS_ID, 10)
    DeclareOk = method_sig_t(CLASS_ID, 11)
    Bind = method_sig_t(CLASS_ID, 20)
    BindOk = method_sig_t(CLASS_ID, 21)
    Purge = method_sig_t(CLASS_ID, 30)
    PurgeOk = method_sig_t(CLASS_ID, 31)
    Delete = method_sig_t(CLASS_ID, 40)
    DeleteOk = method_sig_t(CLASS_ID, 41)
    Unbind = method_sig_t(CLASS_ID, 50)
    UnbindOk = method_sig_t(CLASS_ID, 51)


class Basic:
    """AMQ Basic class."""

    CLASS_ID = 60

    Qos = method_sig_t(CLASS_ID, 10)
    QosOk = method_sig_t(CLASS_ID, 11)
    Consume = method_sig_t(CLASS_ID, 20)
    ConsumeOk = method_sig_t(CLASS_ID, 21)
    Cancel = method_sig_t(CLASS_ID, 30)
    CancelOk = method_sig_t(CLASS_ID, 31)
    Publish = method_sig_t(CLASS_ID, 40)
    Return = method_sig_t(CLASS_ID, 50)
    Deliver = method_sig_t(CLASS_ID, 60)
    Get = method_sig_t(CLASS_ID, 70)
    GetOk = method_sig_t(CLASS_ID, 71)
    GetEmpty = method_sig_t(CLASS_ID, 72)
    Ack = method_sig_t(CLASS_ID, 80)
    Reject = method_sig_t(CLASS_ID, 90)
    Nack = method_sig_t(CLASS_ID, 120)


class Tx:
    """AMQ Tx class."""

    CLASS_ID = 90

    Select = method_sig_t(CLASS_ID, 10)
    SelectOk = method_sig_t(CLASS_ID, 11)
    Commit = method_sig_t(CLASS_ID, 20)
    CommitOk = method_sig_t(CLASS_ID, 21)
    Rollback = method_sig_t(CLASS_ID, 30)
    RollbackOk = method_sig_t(CLASS_ID, 31)


#: Request verb -> accepted response verbs.
#: An empty tuple marks a fire-and-forget verb.
RPC_RESPONSES: Mapping[method_sig_t, Tuple[method_sig_t, ...]] = {
    Exchange.Declare: (Exchange.DeclareOk,),
    Exchange.Delete: (Exchange.DeleteOk,),
    Exchange.Bind: (Exchange.BindOk,),
    Exchange.Unbind: (Exchange.UnbindOk,),
    Queue.Declare: (Queue.DeclareOk,),
    Queue.Bind: (Queue.BindOk,),
    Queue.Unbind: (Queue.UnbindOk,),
    Queue.Purge: (Queue.PurgeOk,),
    Queue.Delete: (Queue.DeleteOk,),
    Basic.Qos: (Basic.QosOk,),
    Basic.Consume: (Basic.ConsumeOk,),
    Basic.Cancel: (Basic.CancelOk,),
    Basic.Get: (Basic.GetOk, Basic.GetEmpty),
    Basic.Ack: (),
    Basic.Nack: (),
    Basic.Reject: (),
    Basic.Publish: (),
    Tx.Select: (Tx.SelectOk,),
    Tx.Commit: (Tx.CommitOk,),
    Tx.Rollback: (Tx.RollbackOk,),
}


def responses_for(method_sig: method_sig_t) -> Tuple[method_sig_t, ...]:
    """Return the response verbs the broker may answer ``method_sig`` with."""
    return RPC_RESPONSES[method_sig]


def as_response_set(expected: ResponseSpecT) -> Tuple[method_sig_t, ...]:
    if not expected:
        return ()
    if isinstance(expected[0], int):
        # a single (class_id, method_id) pair
        return (method_sig_t(*expected),)
    return tuple(method_sig_t(*sig) for sig in expected)


METHOD_NAME_MAP: Mapping[method_sig_t, str] = {
    Connection.Close: 'Connection.close',
    Connection.CloseOk: 'Connection.close_ok',
    Channel.Close: 'Channel.close',
    Channel.CloseOk: 'Channel.close_ok',
    Exchange.Declare: 'Exchange.declare',
    Exchange.DeclareOk: 'Exchange.declare_ok',
    Exchange.Delete: 'Exchange.delete',
    Exchange.DeleteOk: 'Exchange.delete_ok',
    Exchange.Bind: 'Exchange.bind',
    Exchange.BindOk: 'Exchange.bind_ok',
    Exchange.Unbind: 'Exchange.unbind',
    Exchange.UnbindOk: 'Exchange.unbind_ok',
    Queue.Declare: 'Queue.declare',
    Queue.DeclareOk: 'Queue.declare_ok',
    Queue.Bind: 'Queue.bind',
    Queue.BindOk: 'Queue.bind_ok',
    Queue.Purge: 'Queue.purge',
    Queue.PurgeOk: 'Queue.purge_ok',
    Queue.Delete: 'Queue.delete',
    Queue.DeleteOk: 'Queue.delete_ok',
    Queue.Unbind: 'Queue.unbind',
    Queue.UnbindOk: 'Queue.unbind_ok',
    Basic.Qos: 'Basic.qos',
    Basic.QosOk: 'Basic.qos_ok',
    Basic.Consume: 'Basic.consume',
    Basic.ConsumeOk: 'Basic.consume_ok',
    Basic.Cancel: 'Basic.cancel',
    Basic.CancelOk: 'Basic.cancel_ok',
    Basic.Publish: 'Basic.publish',
    Basic.Return: 'Basic.return',
    Basic.Deliver: 'Basic.deliver',
    Basic.Get: 'Basic.get',
    Basic.GetOk: 'Basic.get_ok',
    Basic.GetEmpty: 'Basic.get_empty',
    Basic.Ack: 'Basic.ack',
    Basic.Nack: 'Basic.nack',
    Basic.Reject: 'Basic.reject',
    Tx.Select: 'Tx.select',
    Tx.SelectOk: 'Tx.select_ok',
    Tx.Commit: 'Tx.commit',
    Tx.CommitOk: 'Tx.commit_ok',
    Tx.Rollback: 'Tx.rollback',
    Tx.RollbackOk: 'Tx.rollback_ok',
}


def method_name(method_sig: method_sig_t) -> str:
    return METHOD_NAME_MAP.get(method_sig, '')


#: ``'basic_deliver'`` style names, as used for event registration.
EVENT_NAME_MAP: Mapping[str, method_sig_t] = {
    name.lower().replace('.', '_'): sig
    for sig, name in METHOD_NAME_MAP.items()
}


def method_sig_for(event: Union[str, Tuple[int, int]]) -> method_sig_t:
    """Normalize an event given by name or verb to its verb."""
    if isinstance(event, str):
        try:
            return EVENT_NAME_MAP[event]
        except KeyError:
            raise KeyError('Unknown AMQP method name: {0!r}'.format(event))
    return method_sig_t(*event)
