"""Credential verification and bearer token lifecycle."""

from taskmanager.core.exceptions import AuthenticationError, InvalidCredentialsError, NotFoundError
from taskmanager.core.security import (
    DEFAULT_ALGORITHM,
    DEFAULT_EXPIRES_IN,
    create_access_token,
    decode_token,
    verify_password,
)
from taskmanager.repositories.users import UserRepository
from taskmanager.types import UserRecord


class CredentialService:
    """Verifies logins and issues, revokes and resolves bearer tokens.

    A token is valid only while it is both correctly signed and still present in its user's persisted token list,
    so revoking a token takes effect immediately even though it has not expired.

    Example:
        ```python
        credentials = CredentialService(users, secret="change-me")
        user = await credentials.verify_credentials("alice@example.com", "hunter22")
        token = await credentials.issue_token(user)
        same_user = await credentials.authenticate(token)
        ```
    """

    def __init__(
        self,
        users: UserRepository,
        *,
        secret: str,
        algorithm: str = DEFAULT_ALGORITHM,
        expires_in: int = DEFAULT_EXPIRES_IN,
    ):
        self._users = users
        self._secret = secret
        self._algorithm = algorithm
        self._expires_in = expires_in

    async def verify_credentials(self, email: str, password: str) -> UserRecord:
        """Return the user for a valid email/password pair.

        Raises:
            NotFoundError: If no user has this email.
            InvalidCredentialsError: If the password does not match.
        """
        user = await self._users.get_by_email(email)
        if user is None:
            raise NotFoundError("Can't find user.")
        if not verify_password(password, user.password):
            raise InvalidCredentialsError()
        return user

    async def issue_token(self, user: UserRecord) -> str:
        """Sign a new token for `user` and append it to the user's active tokens."""
        token = create_access_token(
            user.id, secret=self._secret, algorithm=self._algorithm, expires_in=self._expires_in
        )
        await self._users.add_token(user.id, token)
        return token

    async def revoke_token(self, user: UserRecord, token: str) -> None:
        """Remove exactly `token` from the user's active tokens. Other sessions stay valid."""
        await self._users.remove_token(user.id, token)

    async def revoke_all_tokens(self, user: UserRecord) -> None:
        await self._users.clear_tokens(user.id)

    async def authenticate(self, token: str) -> UserRecord:
        """Resolve a bearer token to its user.

        Raises:
            AuthenticationError: If the token is unsigned, expired, or no longer active for its subject.
        """
        data = decode_token(token, secret=self._secret, algorithm=self._algorithm)
        user = await self._users.get_by_id_and_token(data.sub, token)
        if user is None:
            raise AuthenticationError()
        return user
