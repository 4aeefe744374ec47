from typing import Iterable, Protocol


class UserRepo(Protocol):
    """
    User lookups needed after a token has been validated.
    Backed by the persistence layer in a full deployment.
    """

    async def exists_by_email(self, email: str) -> bool: ...

    async def is_admin(self, email: str) -> bool: ...


class InMemoryUserRepo:
    """UserRepo over an in-process set of e-mail addresses"""

    def __init__(self, users: Iterable[str] = (), admins: Iterable[str] = ()):
        self._admins = {self._normalize(email) for email in admins}
        self._users = {self._normalize(email) for email in users} | self._admins

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().casefold()

    def add(self, email: str, is_admin: bool = False):
        self._users.add(self._normalize(email))
        if is_admin:
            self._admins.add(self._normalize(email))

    async def exists_by_email(self, email: str) -> bool:
        """
        Check whether a user with this e-mail exists

        Args:
            email (str): The email of the user.

        Returns:
            bool: True if the user exists.
        """
        return self._normalize(email) in self._users

    async def is_admin(self, email: str) -> bool:
        return self._normalize(email) in self._admins
