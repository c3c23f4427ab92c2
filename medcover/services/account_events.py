import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[str], Optional[int]], None]


class AccountEvents:
    """
    Subscription point for wallet account and network changes.

    Whatever observes the wallet publishes plain values here; listeners get
    the new (account, chain_id) pair only when one of them actually changed.
    """

    def __init__(self):
        self.current_account: Optional[str] = None
        self.current_chain_id: Optional[int] = None
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, account: Optional[str] = None, chain_id: Optional[int] = None) -> bool:
        changed = False
        if account is not None and account != self.current_account:
            self.current_account = account
            changed = True
        if chain_id is not None and chain_id != self.current_chain_id:
            self.current_chain_id = chain_id
            changed = True
        if not changed:
            return False

        for listener in list(self._listeners):
            try:
                listener(self.current_account, self.current_chain_id)
            except Exception:
                logger.exception("Account listener %r failed", listener)
        return True
