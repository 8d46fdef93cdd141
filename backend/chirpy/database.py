"""Chirp, user and revocation operations on top of the JSON document store."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from chirpy.document import Chirp, Revocation, User, UserRecord, next_id, next_index
from chirpy.errors import Conflict, Forbidden, HashingFailure, NotFound
from chirpy.passwords import DEFAULT_ROUNDS, hash_password, verify_password as check_password
from chirpy.store import JsonDocumentStore

logger = logging.getLogger(__name__)


class DB:
    """Handle on one data file.

    Handles are cheap: any number of them may be opened on the same path and
    they all share that file's lock.
    """

    def __init__(self, path, bcrypt_rounds: int = DEFAULT_ROUNDS):
        self.store = JsonDocumentStore(path)
        self.bcrypt_rounds = bcrypt_rounds

    # --------------- chirps ---------------

    def create_chirp(self, body: str, author_id: int) -> Chirp:
        with self.store.transaction() as doc:
            chirp = Chirp(id=next_id(doc.chirps), body=body, author_id=author_id)
            doc.chirps[chirp.id] = chirp
        logger.info(f"Created chirp {chirp.id} by user {author_id}")
        return chirp

    def get_chirp(self, chirp_id: int) -> Chirp:
        for chirp in self.store.load().chirps.values():
            if chirp.id == chirp_id:
                return chirp
        raise NotFound(f"Chirp {chirp_id} not found")

    def list_chirps(self, author_id: Optional[int] = None) -> List[Chirp]:
        chirps = self.store.load().chirps.values()
        if author_id is None:
            return list(chirps)
        return [c for c in chirps if c.author_id == author_id]

    def delete_chirp(self, chirp_id: int, author_id: int):
        """Remove a chirp owned by ``author_id``.

        A missing chirp and someone else's chirp are the same outcome: Forbidden.
        """
        with self.store.transaction() as doc:
            key = next(
                (k for k, c in doc.chirps.items() if c.id == chirp_id and c.author_id == author_id),
                None,
            )
            if key is None:
                raise Forbidden(f"Chirp {chirp_id} cannot be deleted by user {author_id}")
            del doc.chirps[key]
        logger.info(f"Deleted chirp {chirp_id} by user {author_id}")

    # --------------- users ---------------

    def _hash(self, password: str) -> str:
        try:
            return hash_password(password, rounds=self.bcrypt_rounds)
        except (ValueError, TypeError) as e:
            raise HashingFailure(f"Could not hash password: {e}") from e

    def create_user(self, email: str, password: str) -> User:
        """Hash password with bcrypt and store. Raises Conflict if the email is taken."""
        password_hash = self._hash(password)
        with self.store.transaction() as doc:
            if any(u.email == email for u in doc.users.values()):
                raise Conflict(f"User {email} already exists")
            record = UserRecord(id=next_id(doc.users), email=email, password_hash=password_hash)
            doc.users[record.id] = record
        logger.info(f"Created user {record.id}")
        return record.public()

    def update_user(
        self,
        user_id: int,
        email: str,
        password: Optional[str] = None,
        is_upgraded: Optional[bool] = None,
    ) -> User:
        """Replace a user's record.

        The hash is only replaced when ``password`` is given and the upgrade
        flag only when ``is_upgraded`` is given; otherwise the stored values
        are carried over.
        """
        password_hash = self._hash(password) if password is not None else None
        with self.store.transaction() as doc:
            key = self._user_key(doc.users, user_id)
            current = doc.users[key]
            record = UserRecord(
                id=user_id,
                email=email,
                password_hash=password_hash if password_hash is not None else current.password_hash,
                is_upgraded=current.is_upgraded if is_upgraded is None else is_upgraded,
            )
            doc.users[key] = record
        return record.public()

    def upgrade_user(self, user_id: int) -> User:
        with self.store.transaction() as doc:
            record = doc.users[self._user_key(doc.users, user_id)]
            record.is_upgraded = True
        logger.info(f"Upgraded user {user_id}")
        return record.public()

    def get_user(self, user_id: int) -> User:
        users = self.store.load().users
        return users[self._user_key(users, user_id)].public()

    def list_users(self) -> List[User]:
        return [u.public() for u in self.store.load().users.values()]

    def verify_password(self, email: str, password: str) -> Optional[User]:
        """Return the user if the credentials match, otherwise None."""
        for record in self.store.load().users.values():
            if record.email == email:
                if check_password(password, record.password_hash):
                    return record.public()
                return None
        return None

    @staticmethod
    def _user_key(users, user_id: int) -> int:
        for key, record in users.items():
            if record.id == user_id:
                return key
        raise NotFound(f"User {user_id} not found")

    # --------------- revocations ---------------

    def record_revocation(self, token: str):
        with self.store.transaction() as doc:
            doc.revocations[next_index(doc.revocations)] = Revocation(
                token=token, revoked_at=datetime.now(timezone.utc)
            )

    def list_revocations(self) -> List[Revocation]:
        return list(self.store.load().revocations.values())

    def is_revoked(self, token: str) -> bool:
        return any(r.token == token for r in self.list_revocations())
