"""Live mapping from display name to logged-in session."""

import asyncio

from chat_relay.exceptions import NameConflict
from chat_relay.logging import logger
from chat_relay.session import Session


class ConnectionRegistry:
    """
    Registry of authenticated sessions keyed by display name.

    Names are kept in login order, which is the order the roster is
    presented in. All operations run under a single lock so that two
    concurrent logins for the same name cannot both succeed.

    Entries whose session is no longer open are stale: they are never
    returned and are evicted as soon as an operation comes across them.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._version = 0

    async def register(self, name: str, session: Session) -> None:
        """
        Bind `name` to `session` and mark the session authenticated.

        Args:
            name: Display name to claim.
            session: Session claiming the name.

        Raises:
            NameConflict: If a live session already holds the name. The
                registry is left unchanged.
        """
        async with self._lock:
            current = self._sessions.get(name)
            if current is not None and current.is_open:
                raise NameConflict(name)
            if current is not None:
                logger.debug(f"Replacing stale registry entry {current!r}")
                del self._sessions[name]

            self._sessions[name] = session
            session.authenticate(name)
            self._version += 1

        logger.debug(f"Registered {name!r} -> {session!r}")

    async def unregister(self, name: str, session: Session | None = None) -> bool:
        """
        Remove the mapping for `name`; does nothing if it is absent.

        Args:
            name: Display name to release.
            session: If given, the entry is only removed while it still
                points at this session.

        Returns:
            True if an entry was removed.
        """
        async with self._lock:
            current = self._sessions.get(name)
            if current is None or (session is not None and current is not session):
                return False

            del self._sessions[name]
            self._version += 1

        logger.debug(f"Unregistered {name!r}")
        return True

    async def lookup(self, name: str) -> Session | None:
        """
        Get the open session holding `name`.

        Returns:
            The session, or None if the name is free or its session is
            closed. A closed session found here is evicted.
        """
        async with self._lock:
            session = self._sessions.get(name)
            if session is None:
                return None
            if not session.is_open:
                del self._sessions[name]
                self._version += 1
                logger.debug(f"Evicted stale registry entry {session!r}")
                return None
            return session

    async def snapshot(self) -> list[str]:
        """Get the names of all logged-in users in login order."""
        _, names = await self.roster()
        return names

    async def roster(self) -> tuple[int, list[str]]:
        """
        Get the roster together with its version.

        The version grows with every change of the registry, so receivers
        can tell a newer snapshot from an older one.
        """
        async with self._lock:
            stale = [
                name
                for name, session in self._sessions.items()
                if not session.is_open
            ]
            for name in stale:
                del self._sessions[name]
            if stale:
                self._version += 1
                logger.debug(f"Evicted stale registry entries {stale}")

            return self._version, list(self._sessions)
