"""ChatSession - holds the current state and runs actions through the reducer."""

from typing import Callable

from loguru import logger

from agentchat.client.state import ChatAction, ChatSessionState, chat_reducer

Listener = Callable[[ChatSessionState], None]


class ChatSession:
    """Dispatch loop around ``chat_reducer``.

    Listeners are called with the new state after every action that
    changes it.
    """

    def __init__(self, state: ChatSessionState | None = None):
        self._state = state or ChatSessionState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ChatSessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: ChatAction) -> ChatSessionState:
        previous = self._state
        current = chat_reducer(previous, action)
        name = type(action).__name__

        if current is previous:
            logger.debug(f"{name} ignored (status={previous.status})")
            return current

        self._state = current
        changed = [
            field
            for field in ChatSessionState.model_fields
            if getattr(previous, field) != getattr(current, field)
        ]
        if previous.status != current.status:
            logger.debug(f"{name}: {previous.status} -> {current.status} ({', '.join(changed)})")
        else:
            logger.debug(f"{name}: {', '.join(changed)}")

        for listener in list(self._listeners):
            listener(current)
        return current
