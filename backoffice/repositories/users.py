from datetime import datetime
from secrets import compare_digest
from typing import List, Optional

from ..errors import Conflict, ExpiredToken, InvalidToken, NotFound
from ..schemas.auth import ResetToken, User, UserRecordCreate, UserRecordUpdate
from ..store import Document
from .base import DocumentCollection, Repository, utcnow


class UserRepository(Repository[User]):
    collection = "users"
    entity = "User"
    model = User
    create_model = UserRecordCreate
    update_model = UserRecordUpdate

    def _check_unique(self, docs, doc):
        email = doc["email"].casefold()
        for other in docs:
            if (other.get("email") or "").casefold() == email:
                raise Conflict(f"Email {doc['email']} is already registered", {"field": "email"})

    def get_by_email(self, email: str) -> Optional[User]:
        wanted = (email or "").strip().casefold()
        for doc in self.store.load(self.collection):
            if (doc.get("email") or "").casefold() == wanted:
                return self._to_model(doc)
        return None


class ResetTokenRepository(DocumentCollection[ResetToken]):
    """Password reset tokens, at most one live token per email.

    Tokens are looked up by value rather than by id, so this is not a
    ``Repository``: the only writes are ``replace``, ``claim``, ``release``
    and ``delete``.
    """

    collection = "reset_tokens"
    entity = "Reset token"
    model = ResetToken

    def sort(self, docs):
        return sorted(docs, key=lambda d: d.get("email", ""))

    @staticmethod
    def _matches(doc: Document, token: str) -> bool:
        return compare_digest(str(doc.get("token", "")).encode(), token.encode())

    def _live(self, docs: List[Document], now: datetime) -> List[Document]:
        # a token is still usable at the exact instant it expires
        return [d for d in docs if not self._to_model(d).expires_at < now]

    def replace(self, email: str, token: str, expires_at: datetime) -> ResetToken:
        """Store a token for ``email``, dropping any earlier one and expired leftovers."""
        wanted = email.casefold()
        doc = self._dump({"email": email, "token": token, "expires_at": expires_at})

        def fn(docs):
            kept = [d for d in self._live(docs, utcnow()) if (d.get("email") or "").casefold() != wanted]
            return kept + [doc]

        self._mutate(fn)
        return self._to_model(doc)

    def find(self, token: str) -> Optional[ResetToken]:
        for doc in self.store.load(self.collection):
            if self._matches(doc, token):
                return self._to_model(doc)
        return None

    def claim(self, token: str, now: datetime) -> ResetToken:
        """Mark ``token`` as being consumed and return it.

        Only one caller can claim a token; everyone else gets InvalidToken.
        """
        def fn(docs):
            for i, doc in enumerate(docs):
                if not self._matches(doc, token):
                    continue
                record = self._to_model(doc)
                if record.claimed:
                    raise InvalidToken()
                if record.expires_at < now:
                    raise ExpiredToken()
                docs = list(docs)
                docs[i] = {**doc, "claimed": True}
                return docs, record.model_copy(update={"claimed": True})
            raise InvalidToken()

        return self._mutate(fn)

    def release(self, token: str) -> None:
        """Undo a claim so the token can be used again."""
        def fn(docs):
            return [{**d, "claimed": False} if self._matches(d, token) else d for d in docs]

        self._mutate(fn)

    def delete(self, token: str) -> None:
        def fn(docs):
            kept = [d for d in docs if not self._matches(d, token)]
            if len(kept) == len(docs):
                raise NotFound(self.entity)
            return kept

        self._mutate(fn)
