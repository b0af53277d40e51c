# ABOUTME: Short-lived creation sessions with wall-clock expiry
# ABOUTME: Session store interface plus a lock-guarded in-memory implementation owned by the service

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from dnd_builder.core.character_draft import CreationStep
from dnd_builder.core.errors import InvalidArgumentError, NotFoundError


logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(minutes=60)


@dataclass
class CreationSession:
    """
    Bookkeeping for one user's in-progress creation flow.

    Attributes:
        id: Session identifier
        owner_id: User the session belongs to
        realm_id: Realm (server, guild, table) the character is made for
        character_id: Draft character being built, once known
        current_step: Step the user is looking at
        expires_at: Wall-clock time after which the session is gone
    """
    id: str
    owner_id: str
    realm_id: str
    character_id: Optional[str] = None
    current_step: CreationStep = CreationStep.SPECIES
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    expires_at: datetime = field(default_factory=lambda: datetime.now() + DEFAULT_SESSION_TTL)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) >= self.expires_at


class SessionStore(ABC):

    @abstractmethod
    def create(self, owner_id: str, realm_id: str, character_id: Optional[str] = None) -> CreationSession:
        ...

    @abstractmethod
    def get(self, session_id: str) -> CreationSession:
        """
        Raises:
            NotFoundError: If the session does not exist or has expired
        """

    @abstractmethod
    def update(self, session: CreationSession) -> CreationSession:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def get_by_owner(self, owner_id: str) -> List[CreationSession]:
        ...

    @abstractmethod
    def purge_expired(self) -> List[CreationSession]:
        ...


ExpiryHandler = Callable[[CreationSession], None]


class InMemorySessionStore(SessionStore):
    """
    Sessions in a dictionary behind a single lock.

    Expired sessions are dropped lazily whenever they are touched, and
    purge_expired() lets an external timer sweep them proactively. Each
    update slides the expiry forward by the TTL.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = datetime.now,
        on_expire: Optional[ExpiryHandler] = None
    ):
        if ttl <= timedelta(0):
            raise InvalidArgumentError("Session TTL must be positive").with_context(ttl=str(ttl))
        self.ttl = ttl
        self._clock = clock
        self._on_expire = on_expire
        self._sessions: Dict[str, CreationSession] = {}
        self._lock = threading.Lock()

    def create(self, owner_id: str, realm_id: str, character_id: Optional[str] = None) -> CreationSession:
        """
        Start a session, replacing any session the owner already has in this realm.
        """
        now = self._clock()
        session = CreationSession(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            realm_id=realm_id,
            character_id=character_id,
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            stale = [
                s.id for s in self._sessions.values()
                if s.owner_id == owner_id and s.realm_id == realm_id
            ]
            for session_id in stale:
                del self._sessions[session_id]
            self._sessions[session.id] = session
        if stale:
            logger.debug(f"Replaced {len(stale)} stale session(s) for owner {owner_id}")
        return _copy(session)

    def get(self, session_id: str) -> CreationSession:
        expired = None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.is_expired(self._clock()):
                expired = self._sessions.pop(session_id)
                session = None
        if expired is not None:
            self._notify_expired([expired])
        if session is None:
            raise NotFoundError(
                f"Creation session not found: {session_id}"
            ).with_context(session_id=session_id)
        return _copy(session)

    def update(self, session: CreationSession) -> CreationSession:
        now = self._clock()
        with self._lock:
            current = self._sessions.get(session.id)
            if current is None or current.is_expired(now):
                self._sessions.pop(session.id, None)
                raise NotFoundError(
                    f"Creation session not found: {session.id}"
                ).with_context(session_id=session.id)
            stored = _copy(session)
            stored.updated_at = now
            stored.expires_at = now + self.ttl
            self._sessions[session.id] = stored
        return _copy(stored)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def get_by_owner(self, owner_id: str) -> List[CreationSession]:
        self.purge_expired()
        with self._lock:
            return [_copy(s) for s in self._sessions.values() if s.owner_id == owner_id]

    def purge_expired(self) -> List[CreationSession]:
        """
        Remove every expired session.

        Returns:
            The sessions that were removed
        """
        now = self._clock()
        with self._lock:
            expired = [s for s in self._sessions.values() if s.is_expired(now)]
            for session in expired:
                del self._sessions[session.id]
        self._notify_expired(expired)
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _notify_expired(self, sessions: List[CreationSession]) -> None:
        if self._on_expire is None:
            return
        for session in sessions:
            try:
                self._on_expire(session)
            except Exception as e:
                logger.error(f"Session expiry handler failed for {session.id}: {e}", exc_info=True)


def _copy(session: CreationSession) -> CreationSession:
    return CreationSession(
        id=session.id,
        owner_id=session.owner_id,
        realm_id=session.realm_id,
        character_id=session.character_id,
        current_step=session.current_step,
        created_at=session.created_at,
        updated_at=session.updated_at,
        expires_at=session.expires_at,
    )
