import bcrypt
from config import TEST_MODE, BCRYPT_ROUNDS, BCRYPT_ROUNDS_TEST, DELETE_PASSWORD_MAX_LENGTH
from exceptions import Exceptions, PasswordTooLong


class CredentialVerifier:
    def __init__(self, test_mode: bool = TEST_MODE):
        self.rounds = BCRYPT_ROUNDS_TEST if test_mode else BCRYPT_ROUNDS

    def hash_password(self, password: str) -> str:
        """Generate a salted password hash"""
        encoded = password.encode('utf-8')
        if len(encoded) > DELETE_PASSWORD_MAX_LENGTH:
            raise PasswordTooLong(Exceptions.PASSWORD_TOO_LONG)
        salt = bcrypt.gensalt(rounds=self.rounds)
        password_hash = bcrypt.hashpw(encoded, salt)
        return password_hash.decode('utf-8')

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify password against hash. A malformed hash raises ValueError."""
        encoded = password.encode('utf-8')
        # nothing longer than the limit was ever hashed
        if len(encoded) > DELETE_PASSWORD_MAX_LENGTH:
            return False
        return bcrypt.checkpw(encoded, hashed.encode('utf-8'))
