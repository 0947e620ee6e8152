"""Tests for credential resolution."""

import json
import socket

import pytest

from gemini_bridge.credentials import (
    CredentialResolver,
    DelegatedCredential,
    DirectCredential,
    NoCredential,
    describe,
)


@pytest.fixture
def accounts_file(tmp_path):
    path = tmp_path / "google_accounts.json"
    path.write_text(json.dumps({"active": "dev@example.com", "old": []}))
    return path


def _resolver(tmp_path, **kwargs):
    kwargs.setdefault("credential_file", tmp_path / "missing.env")
    kwargs.setdefault("accounts_file", tmp_path / "missing.json")
    kwargs.setdefault("environ", {})
    return CredentialResolver(**kwargs)


class TestResolutionOrder:
    def test_explicit_key(self, tmp_path):
        state = _resolver(tmp_path, api_key="  abc  ").resolve()
        assert state == DirectCredential(secret="abc")

    def test_env_var(self, tmp_path):
        state = _resolver(tmp_path, environ={"GEMINI_API_KEY": "from-env"}).resolve()
        assert state == DirectCredential(secret="from-env")

    def test_google_api_key_fallback(self, tmp_path):
        state = _resolver(tmp_path, environ={"GOOGLE_API_KEY": "g-key"}).resolve()
        assert state == DirectCredential(secret="g-key")

    def test_blank_env_var_ignored(self, tmp_path):
        state = _resolver(tmp_path, environ={"GEMINI_API_KEY": "   "}).resolve()
        assert isinstance(state, NoCredential)

    def test_credential_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("OTHER=1\nGEMINI_API_KEY=\"file-key\"\n")
        state = _resolver(tmp_path, credential_file=env_file).resolve()
        assert state == DirectCredential(secret="file-key")

    def test_credential_file_without_key(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("# GEMINI_API_KEY=commented\nOTHER=1\n")
        state = _resolver(tmp_path, credential_file=env_file).resolve()
        assert isinstance(state, NoCredential)

    def test_delegated_account(self, tmp_path, accounts_file):
        state = _resolver(tmp_path, accounts_file=accounts_file).resolve()
        assert state == DelegatedCredential(account_label="dev@example.com")

    def test_direct_wins_over_delegated(self, tmp_path, accounts_file):
        state = _resolver(
            tmp_path, accounts_file=accounts_file, environ={"GEMINI_API_KEY": "k"}
        ).resolve()
        assert isinstance(state, DirectCredential)

    def test_nothing_configured(self, tmp_path):
        assert isinstance(_resolver(tmp_path).resolve(), NoCredential)


class TestMalformedState:
    def test_malformed_accounts_file(self, tmp_path):
        path = tmp_path / "google_accounts.json"
        path.write_text("{not json")
        assert isinstance(_resolver(tmp_path, accounts_file=path).resolve(), NoCredential)

    def test_accounts_without_active(self, tmp_path):
        path = tmp_path / "google_accounts.json"
        path.write_text(json.dumps({"active": None}))
        assert isinstance(_resolver(tmp_path, accounts_file=path).resolve(), NoCredential)

    def test_accounts_file_not_object(self, tmp_path):
        path = tmp_path / "google_accounts.json"
        path.write_text("[1, 2]")
        assert isinstance(_resolver(tmp_path, accounts_file=path).resolve(), NoCredential)


class TestResolverProperties:
    def test_idempotent(self, tmp_path, accounts_file):
        resolver = _resolver(tmp_path, accounts_file=accounts_file)
        assert resolver.resolve() == resolver.resolve()

    def test_not_memoized(self, tmp_path):
        env_file = tmp_path / ".env"
        resolver = _resolver(tmp_path, credential_file=env_file)
        assert isinstance(resolver.resolve(), NoCredential)
        env_file.write_text("GEMINI_API_KEY=late\n")
        assert resolver.resolve() == DirectCredential(secret="late")

    def test_no_network_io(self, tmp_path, accounts_file, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("network access attempted")

        monkeypatch.setattr(socket, "socket", _fail)
        monkeypatch.setattr(socket, "create_connection", _fail)
        state = _resolver(tmp_path, accounts_file=accounts_file).resolve()
        assert isinstance(state, DelegatedCredential)

    def test_secret_redacted_in_repr(self):
        assert "s3cret" not in repr(DirectCredential(secret="s3cret"))


class TestDescribe:
    def test_labels(self):
        assert describe(DirectCredential("k")) == "API key (direct HTTP)"
        assert describe(DelegatedCredential("a@b.c")) == "OAuth (a@b.c) via gemini CLI"
        assert describe(NoCredential()) == "not authenticated"
