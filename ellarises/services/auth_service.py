import hmac
import logging
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ellarises.database import User

logger = logging.getLogger(__name__)


class InvalidCredentials(Exception):
    """Submitted email/password pair does not match a stored account."""


class AuthService:
    def __init__(self, rounds: int = 10):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def is_hashed(self, stored_credential: str) -> bool:
        """True when the stored value carries a bcrypt marker ($2a$, $2b$, $2y$)."""
        return self.pwd_context.identify(stored_credential, required=False) is not None

    def verify_password(self, plain_password, hashed_password):
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            # Marker present but the hash body is malformed
            logger.warning("Stored credential has a hash marker but could not be parsed")
            return False

    def get_password_hash(self, password):
        return self.pwd_context.hash(password)

    def check_credentials(self, password: str, stored_credential: str) -> Optional[str]:
        """Compare a submitted password with a stored credential.

        Returns a replacement bcrypt hash when the stored credential is legacy
        plaintext and matched, or None when the stored hash is already current.
        Raises InvalidCredentials on mismatch.
        """
        if self.is_hashed(stored_credential):
            if not self.verify_password(password, stored_credential):
                raise InvalidCredentials()
            return None

        if not hmac.compare_digest(password.encode('utf-8'), stored_credential.encode('utf-8')):
            raise InvalidCredentials()
        return self.get_password_hash(password)

    def authenticate_user(self, db: Session, email: str, password: str) -> User:
        """Verify an email/password pair and upgrade a plaintext credential in place.

        The upgraded hash is committed before returning, so a caller only ever
        completes a login after the plaintext has been replaced.
        """
        user = db.query(User).filter(User.useremail == email).first()
        if not user:
            # Spend the same time as a real verify so response timing does not reveal the email
            self.pwd_context.dummy_verify()
            raise InvalidCredentials()

        upgraded_hash = self.check_credentials(password, user.password)
        if upgraded_hash:
            user.password = upgraded_hash
            db.commit()
            logger.info("Upgraded legacy plaintext credential for user id %s", user.userid)
        return user

    def set_rounds(self, rounds: int) -> None:
        """Change the bcrypt work factor used for new hashes."""
        self.pwd_context.update(bcrypt__rounds=rounds)


# Shared instance configured by create_app
auth_service = AuthService()
