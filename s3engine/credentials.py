"""
s3engine - Credentials

Long-lived credentials and the short-lived snapshots taken from them for a
single top-level invocation.
"""

import logging
import os
import threading
from typing import Optional, Union

logger = logging.getLogger("s3engine.credentials")


class ProtectedSecret:
    """
    A secret held in a mutable buffer that is zeroed on release.

    The value is never included in ``repr`` output.
    """

    def __init__(self, value: Union[str, bytes, bytearray]) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._buffer = bytearray(value)
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def reveal(self) -> bytes:
        """Return a copy of the secret bytes."""
        if self._released:
            raise ValueError("Secret has been released")
        return bytes(self._buffer)

    def copy(self) -> "ProtectedSecret":
        return ProtectedSecret(self.reveal())

    def release(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._released = True

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return "ProtectedSecret(****)"


class CredentialsSnapshot:
    """
    Immutable view of credentials for one invocation.

    Use as a context manager; the protected copy of the secret is wiped on
    exit whether the invocation succeeded or not.

    Attributes:
        access_key: Access key id
        session_token: Session token for temporary credentials
        use_secure_string: True when the secret is held as a ProtectedSecret
    """

    def __init__(
        self,
        access_key: str,
        secret_key: Union[str, ProtectedSecret],
        session_token: Optional[str] = None,
    ) -> None:
        self.access_key = access_key
        self.session_token = session_token
        if isinstance(secret_key, ProtectedSecret):
            self.secure_secret_key: Optional[ProtectedSecret] = secret_key
            self.clear_secret_key: Optional[str] = None
        else:
            self.secure_secret_key = None
            self.clear_secret_key = secret_key

    @property
    def use_secure_string(self) -> bool:
        return self.secure_secret_key is not None

    @property
    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def secret_bytes(self) -> bytes:
        """The secret key as bytes, whichever form it is held in."""
        if self.secure_secret_key is not None:
            return self.secure_secret_key.reveal()
        return (self.clear_secret_key or "").encode("utf-8")

    def release(self) -> None:
        if self.secure_secret_key is not None:
            self.secure_secret_key.release()
        self.clear_secret_key = None

    def __enter__(self) -> "CredentialsSnapshot":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"CredentialsSnapshot(access_key='{self.access_key}')"


class S3Credentials:
    """
    Access key, secret key and optional session token.

    Args:
        access_key: Access key id
        secret_key: Secret access key
        session_token: Session token for temporary credentials

    Example:
        >>> credentials = S3Credentials("AKIDEXAMPLE", "secret")
        >>> with credentials.snapshot() as snapshot:
        ...     print(snapshot.access_key)
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        session_token: Optional[str] = None,
    ) -> None:
        if not access_key or not secret_key:
            raise ValueError("Both access_key and secret_key are required")
        self._access_key = access_key
        self._secret = ProtectedSecret(secret_key)
        self._session_token = session_token
        self._lock = threading.Lock()
        self._destroyed = False

    @classmethod
    def from_environment(cls) -> Optional["S3Credentials"]:
        """Read S3ENGINE_ACCESS_KEY_ID / S3ENGINE_SECRET_ACCESS_KEY, or None."""
        access_key = os.environ.get("S3ENGINE_ACCESS_KEY_ID")
        secret_key = os.environ.get("S3ENGINE_SECRET_ACCESS_KEY")
        if not access_key or not secret_key:
            return None
        return cls(access_key, secret_key, os.environ.get("S3ENGINE_SESSION_TOKEN"))

    @property
    def access_key(self) -> str:
        return self._access_key

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def snapshot(self, use_secure_string: bool = True) -> CredentialsSnapshot:
        """Take a snapshot holding the secret in protected or plain form."""
        with self._lock:
            if self._destroyed:
                raise ValueError("Credentials have been destroyed")
            if use_secure_string:
                secret: Union[str, ProtectedSecret] = self._secret.copy()
            else:
                secret = self._secret.reveal().decode("utf-8")
            return CredentialsSnapshot(self._access_key, secret, self._session_token)

    def destroy(self) -> None:
        """Wipe the secret. Snapshots taken earlier are unaffected."""
        with self._lock:
            if self._destroyed:
                return
            self._secret.release()
            self._session_token = None
            self._destroyed = True
        logger.debug("Credentials destroyed")

    def __repr__(self) -> str:
        return f"S3Credentials(access_key='{self._access_key}')"
