"""Unit tests for credentials and snapshots."""

import pytest

from s3engine.credentials import CredentialsSnapshot, ProtectedSecret, S3Credentials


class TestProtectedSecret:
    """Tests for ProtectedSecret."""

    def test_reveal(self):
        secret = ProtectedSecret("secret")
        assert secret.reveal() == b"secret"

    def test_release_zeroes_buffer(self):
        secret = ProtectedSecret("secret")

        secret.release()

        assert secret.released is True
        assert bytes(secret._buffer) == b"\x00" * 6
        with pytest.raises(ValueError):
            secret.reveal()

    def test_repr_hides_value(self):
        assert "secret" not in repr(ProtectedSecret("secret"))


class TestSnapshot:
    """Tests for scoped credential snapshots."""

    def test_protected_snapshot_released_on_exit(self, credentials):
        with credentials.snapshot() as snapshot:
            assert snapshot.use_secure_string is True
            secret = snapshot.secure_secret_key

        assert secret.released is True

    def test_released_when_body_raises(self, credentials):
        with pytest.raises(RuntimeError):
            with credentials.snapshot() as snapshot:
                secret = snapshot.secure_secret_key
                raise RuntimeError("boom")

        assert secret.released is True

    def test_plain_snapshot(self, credentials):
        snapshot = credentials.snapshot(use_secure_string=False)

        assert snapshot.use_secure_string is False
        assert snapshot.clear_secret_key == "wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY"

    def test_session_token(self):
        credentials = S3Credentials("AK", "SK", session_token="token")

        with credentials.snapshot() as snapshot:
            assert snapshot.has_session_token is True
            assert snapshot.session_token == "token"

    def test_snapshot_independent_of_source(self, credentials):
        snapshot = credentials.snapshot()

        credentials.destroy()

        assert snapshot.secret_bytes() == b"wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY"


class TestS3Credentials:
    """Tests for S3Credentials."""

    def test_requires_both_keys(self):
        with pytest.raises(ValueError):
            S3Credentials("AK", "")

    def test_destroy(self, credentials):
        credentials.destroy()

        assert credentials.destroyed is True
        with pytest.raises(ValueError):
            credentials.snapshot()

    def test_destroy_twice(self, credentials):
        credentials.destroy()
        credentials.destroy()
        assert credentials.destroyed is True

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("S3ENGINE_ACCESS_KEY_ID", "AKENV")
        monkeypatch.setenv("S3ENGINE_SECRET_ACCESS_KEY", "SKENV")
        monkeypatch.delenv("S3ENGINE_SESSION_TOKEN", raising=False)

        credentials = S3Credentials.from_environment()

        assert credentials.access_key == "AKENV"

    def test_from_environment_missing(self, monkeypatch):
        monkeypatch.delenv("S3ENGINE_ACCESS_KEY_ID", raising=False)
        monkeypatch.delenv("S3ENGINE_SECRET_ACCESS_KEY", raising=False)

        assert S3Credentials.from_environment() is None

    def test_repr_hides_secret(self, credentials):
        assert "wJalr" not in repr(credentials)
        assert "wJalr" not in repr(CredentialsSnapshot("AK", "wJalr"))
