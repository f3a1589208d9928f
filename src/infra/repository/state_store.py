"""
Persistence collaborator for progression state.

The core depends only on two primitives: load, and a compare-and-swap commit
keyed on the user's version. A pet commit rides on its owner's version, so a
single swap moves both records together.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from src.core.logger.logger import get_logger
from src.core.service.auth.utils.identity import telegram_id_to_key
from src.core.service.progression.models import PetState, UserState

logger = get_logger(__name__)


class StateStore(ABC):
    @abstractmethod
    async def load_user_state(self, user_id: str) -> Optional[UserState]:
        """Return the stored user, or None if this principal was never seen"""
        pass

    @abstractmethod
    async def load_pet_state(self, user_id: str) -> Optional[PetState]:
        pass

    @abstractmethod
    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        new_user: UserState,
        new_pet: Optional[PetState] = None,
    ) -> bool:
        """
        Store `new_user` (and `new_pet`) only if the stored user version still
        equals `expected_version` (0 when absent). The stored version becomes
        expected_version + 1.
        """
        pass


class InMemoryStateStore(StateStore):
    """Process-local store, used for tests and single-instance deployments"""

    def __init__(self):
        self._users: Dict[int, UserState] = {}
        self._pets: Dict[int, PetState] = {}
        self._lock = asyncio.Lock()

    async def load_user_state(self, user_id: str) -> Optional[UserState]:
        async with self._lock:
            user = self._users.get(telegram_id_to_key(user_id))
            return user.model_copy(deep=True) if user else None

    async def load_pet_state(self, user_id: str) -> Optional[PetState]:
        async with self._lock:
            pet = self._pets.get(telegram_id_to_key(user_id))
            return pet.model_copy(deep=True) if pet else None

    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        new_user: UserState,
        new_pet: Optional[PetState] = None,
    ) -> bool:
        key = telegram_id_to_key(user_id)
        async with self._lock:
            current = self._users.get(key)
            current_version = current.version if current else 0
            if current_version != expected_version:
                return False

            self._users[key] = new_user.model_copy(update={"version": expected_version + 1}, deep=True)
            if new_pet is not None:
                self._pets[key] = new_pet.model_copy(deep=True)
            return True


class RedisStateStore(StateStore):
    """Redis store using WATCH/MULTI optimistic transactions"""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client
        self.user_prefix = "quest:user:"
        self.pet_prefix = "quest:pet:"

    def _user_key(self, user_id: str) -> str:
        return f"{self.user_prefix}{telegram_id_to_key(user_id)}"

    def _pet_key(self, user_id: str) -> str:
        return f"{self.pet_prefix}{telegram_id_to_key(user_id)}"

    async def load_user_state(self, user_id: str) -> Optional[UserState]:
        try:
            data = await self.redis.get(self._user_key(user_id))
            return UserState.model_validate_json(data) if data else None
        except Exception as e:
            logger.error(
                "Error loading user state",
                extra={"user_id": user_id, "error": str(e)}
            )
            raise

    async def load_pet_state(self, user_id: str) -> Optional[PetState]:
        try:
            data = await self.redis.get(self._pet_key(user_id))
            return PetState.model_validate_json(data) if data else None
        except Exception as e:
            logger.error(
                "Error loading pet state",
                extra={"user_id": user_id, "error": str(e)}
            )
            raise

    async def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        new_user: UserState,
        new_pet: Optional[PetState] = None,
    ) -> bool:
        user_key = self._user_key(user_id)
        stored_user = new_user.model_copy(update={"version": expected_version + 1})

        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(user_key)
                data = await pipe.get(user_key)
                current_version = UserState.model_validate_json(data).version if data else 0
                if current_version != expected_version:
                    await pipe.unwatch()
                    return False

                pipe.multi()
                pipe.set(user_key, stored_user.model_dump_json())
                if new_pet is not None:
                    pipe.set(self._pet_key(user_id), new_pet.model_dump_json())
                await pipe.execute()
                return True
            except WatchError:
                logger.debug("State changed during commit", extra={"user_id": user_id})
                return False
