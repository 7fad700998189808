"""Request lifecycle state and its single-writer holder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    status: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Loading:
    status: ClassVar[str] = "loading"


@dataclass(frozen=True)
class Succeeded:
    result_image: str
    status: ClassVar[str] = "succeeded"


@dataclass(frozen=True)
class Failed:
    message: str
    status: ClassVar[str] = "failed"


RequestState = Union[Idle, Loading, Succeeded, Failed]
Listener = Callable[[RequestState], None]


class RequestStateHolder:
    """Holds the current ``RequestState`` and notifies subscribers on change.

    Only the owning session calls ``set``; everything else reads ``value`` or
    subscribes. Listeners run synchronously, in subscription order.
    """

    def __init__(self, initial: Optional[RequestState] = None):
        self._value: RequestState = initial if initial is not None else Idle()
        self._listeners: List[Listener] = []

    @property
    def value(self) -> RequestState:
        return self._value

    @property
    def is_loading(self) -> bool:
        return isinstance(self._value, Loading)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, state: RequestState) -> None:
        previous, self._value = self._value, state
        logger.info("Request state %s -> %s", previous.status, state.status)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r failed on %s", listener, state.status)
