"""Protocol data.

Each request verb has a field table type here, with the defaults
the broker documents for every optional field.  Channel methods
build these from keyword arguments, so a misspelled option is a
:exc:`TypeError` rather than a silently ignored key.
"""
from typing import Any, Mapping, NamedTuple, Optional
from . import spec
from .spec import method_sig_t

__all__ = [
    'exchange_declare_t', 'exchange_delete_t',
    'exchange_bind_t', 'exchange_unbind_t',
    'queue_declare_t', 'queue_bind_t', 'queue_unbind_t',
    'queue_purge_t', 'queue_delete_t',
    'basic_qos_t', 'basic_consume_t', 'basic_cancel_t',
    'basic_get_t', 'basic_ack_t', 'basic_nack_t', 'basic_reject_t',
    'basic_publish_t', 'no_fields_t',
    'message_t', 'response_t',
]


class exchange_declare_t(NamedTuple):
    """Fields of Exchange.Declare."""

    exchange: str
    type: str
    passive: bool = False
    durable: bool = False
    auto_delete: bool = False
    internal: bool = False
    arguments: Mapping[str, Any] = {}


class exchange_delete_t(NamedTuple):
    """Fields of Exchange.Delete."""

    exchange: str
    if_unused: bool = False


class exchange_bind_t(NamedTuple):
    """Fields of Exchange.Bind."""

    source: str
    destination: str
    routing_key: str = ''
    arguments: Mapping[str, Any] = {}


class exchange_unbind_t(NamedTuple):
    """Fields of Exchange.Unbind."""

    source: str
    destination: str
    routing_key: str = ''
    arguments: Mapping[str, Any] = {}


class queue_declare_t(NamedTuple):
    """Fields of Queue.Declare."""

    queue: str
    passive: bool = False
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    arguments: Mapping[str, Any] = {}


class queue_bind_t(NamedTuple):
    """Fields of Queue.Bind."""

    queue: str
    exchange: str
    routing_key: str = ''
    arguments: Mapping[str, Any] = {}


class queue_unbind_t(NamedTuple):
    """Fields of Queue.Unbind."""

    queue: str
    exchange: str
    routing_key: str = ''
    arguments: Mapping[str, Any] = {}


class queue_purge_t(NamedTuple):
    """Fields of Queue.Purge."""

    queue: str


class queue_delete_t(NamedTuple):
    """Fields of Queue.Delete."""

    queue: str
    if_unused: bool = False
    if_empty: bool = False


class basic_qos_t(NamedTuple):
    """Fields of Basic.Qos."""

    prefetch_count: int = 0
    prefetch_size: int = 0
    global_: bool = False


class basic_consume_t(NamedTuple):
    """Fields of Basic.Consume."""

    queue: str
    consumer_tag: str = ''
    no_local: bool = False
    no_ack: bool = False
    exclusive: bool = False
    arguments: Mapping[str, Any] = {}


class basic_cancel_t(NamedTuple):
    """Fields of Basic.Cancel."""

    consumer_tag: str


class basic_get_t(NamedTuple):
    """Fields of Basic.Get."""

    queue: str
    no_ack: bool = False


class basic_ack_t(NamedTuple):
    """Fields of Basic.Ack."""

    delivery_tag: int
    multiple: bool = False


class basic_nack_t(NamedTuple):
    """Fields of Basic.Nack."""

    delivery_tag: int
    multiple: bool = False
    requeue: bool = True


class basic_reject_t(NamedTuple):
    """Fields of Basic.Reject."""

    delivery_tag: int
    requeue: bool = True


class basic_publish_t(NamedTuple):
    """Fields of Basic.Publish."""

    exchange: bytes
    routing_key: bytes
    mandatory: bool = False
    immediate: bool = False


class no_fields_t(NamedTuple):
    """Verbs without arguments (Tx.*)."""


class message_t(NamedTuple):
    """Message content carried by Basic.GetOk."""

    body: bytes
    properties: Mapping[str, Any] = {}


class response_t(NamedTuple):
    """Decoded response frame returned by a synchronous call."""

    method_sig: method_sig_t
    fields: Mapping[str, Any] = {}
    message: Optional[message_t] = None

    @property
    def method_name(self) -> str:
        return spec.method_name(self.method_sig)

    def __getattr__(self, name: str) -> Any:
        try:
            return self.fields[name]
        except KeyError:
            raise AttributeError(name)
