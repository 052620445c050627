# services/identity.py

"""
Провайдер идентичности: текущий пользователь и уведомления о входе/выходе.
"""

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[str]], Union[None, Awaitable[None]]]

class IdentityProvider:
    """Хранит id текущего пользователя и рассылает изменения подписчикам"""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self.listeners: List[IdentityListener] = []

    def current_user(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Подписка на изменения; возвращает функцию отписки"""
        self.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    async def _notify(self) -> None:
        for listener in list(self.listeners):
            result = listener(self._user_id)
            if inspect.isawaitable(result):
                await result

    async def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id is required to sign in")
        self._user_id = user_id
        logger.info(f"🔑 Signed in as {user_id}")
        await self._notify()

    async def sign_out(self) -> None:
        previous, self._user_id = self._user_id, None
        logger.info(f"🚪 Signed out {previous or ''}".rstrip())
        await self._notify()
