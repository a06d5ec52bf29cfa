"""Abstract types."""
import abc
from typing import Any, Callable, Optional, Sequence, Tuple, Union
from .protocol import basic_publish_t, response_t
from .spec import method_sig_t

EventT = Union[str, method_sig_t, Tuple[int, int]]
EventHandlerT = Callable[..., Any]


class ConnectionT(metaclass=abc.ABCMeta):
    """What a :class:`~amqp_channel.Channel` needs from its connection.

    The connection owns the physical link, the channel id namespace
    and the event loop.  Channels only ever talk to it through these
    methods.
    """

    channel_max: int

    @abc.abstractmethod
    def allocate_channel(self, channel_id: Optional[int] = None) -> int:
        """Reserve ``channel_id`` (or any free id), return the id.

        Raises:
            ~amqp_channel.exceptions.ChannelAllocationError: if taken.
        """
        ...

    @abc.abstractmethod
    def release_channel(self, channel_id: int) -> None:
        ...

    @abc.abstractmethod
    def send_request(self, channel_id: int, method_sig: method_sig_t,
                     fields: tuple) -> None:
        ...

    @abc.abstractmethod
    def fetch_response(self, channel_id: int,
                       expected: Sequence[method_sig_t],
                       timeout: Optional[float] = None) -> response_t:
        ...

    @abc.abstractmethod
    def send_publish(self, channel_id: int, fields: basic_publish_t,
                     properties: bytes, body: bytes) -> None:
        ...

    @abc.abstractmethod
    def pop_channel_error(self, channel_id: int) -> Optional[Exception]:
        """Return and forget the error the broker closed ``channel_id``
        with while no call was waiting on it, if any."""
        ...

    @abc.abstractmethod
    def register_event(self, channel_id: int, event: EventT,
                       handler: EventHandlerT) -> None:
        ...

    @abc.abstractmethod
    def run_loop(self, timeout: Optional[float] = None) -> None:
        ...

    @abc.abstractmethod
    def break_loop(self) -> None:
        ...


class ChannelT(metaclass=abc.ABCMeta):
    """Channel type."""

    connection: ConnectionT
    channel_id: int

    @abc.abstractmethod
    def release(self) -> 'ChannelT':
        ...

    @property
    @abc.abstractmethod
    def is_released(self) -> bool:
        ...

    @abc.abstractmethod
    def rpc(self, method_sig: method_sig_t, fields: tuple,
            expected: Sequence[method_sig_t],
            timeout: Optional[float] = None) -> Union[response_t, bool]:
        ...
