"""Storage for crawl session records."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from redirect_fixer.models.crawl_session import CrawlSession


class SessionStore(ABC):
    """Keyed storage of whole ``CrawlSession`` records."""

    @abstractmethod
    def get(self, crawl_id: str) -> Optional[CrawlSession]:
        ...

    @abstractmethod
    def set(self, session: CrawlSession) -> None:
        ...

    @abstractmethod
    def delete(self, crawl_id: str) -> None:
        ...

    @abstractmethod
    def values(self) -> Iterable[CrawlSession]:
        ...

    def purge_expired(self, now: float) -> List[str]:
        """Delete every session expired at ``now`` and return their ids."""
        expired = [s.crawl_id for s in list(self.values()) if s.is_expired(now)]
        for crawl_id in expired:
            self.delete(crawl_id)
        return expired

    def __contains__(self, crawl_id: str) -> bool:
        return self.get(crawl_id) is not None


class InMemorySessionStore(SessionStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._sessions: Dict[str, CrawlSession] = {}

    def get(self, crawl_id: str) -> Optional[CrawlSession]:
        return self._sessions.get(crawl_id)

    def set(self, session: CrawlSession) -> None:
        self._sessions[session.crawl_id] = session

    def delete(self, crawl_id: str) -> None:
        self._sessions.pop(crawl_id, None)

    def values(self) -> Iterable[CrawlSession]:
        return list(self._sessions.values())

    def __len__(self):
        return len(self._sessions)
