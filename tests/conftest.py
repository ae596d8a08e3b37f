"""
tests/conftest.py -- Shared test fixtures.

This module provides:
  - RecordingMailer: in-memory mail transport that records (or refuses) messages
  - make_flows(): AuthFlowController over fresh in-memory stores
  - flow_env: function-scoped controller + collaborators for unit tests
  - make_flow_env: factory for controllers with custom settings
  - api: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool, and because
AccountStore and LoginAuditLog each open their own engine on the same URL.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread and each engine. A uuid suffix keeps fixtures isolated.

The DEBUG env var is set before any app import so a stray get_settings()
call auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# Set DEBUG before any core import so Settings() never refuses to start.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.audit import LoginAuditLog
from auth.flows import AuthFlowController
from auth.models import Account
from auth.store import AccountStore
from auth.tokens import TokenService, hash_password
from core.config import Settings
from core.mailer import DeliveryError, MailMessage

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
FRONTEND_URL = "https://app.example.test"
MAIL_FROM = "noreply@example.test"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class RecordingMailer:
    """Mailer stand-in. Set fail=True to make every send raise DeliveryError."""

    sent: list[MailMessage] = field(default_factory=list)
    fail: bool = False

    def send(self, message: MailMessage) -> None:
        if self.fail:
            raise DeliveryError("transport unavailable")
        self.sent.append(message)


@dataclass
class FlowEnv:
    flows: AuthFlowController
    accounts: AccountStore
    audit: LoginAuditLog
    tokens: TokenService
    mailer: RecordingMailer
    frontend_url: str = FRONTEND_URL
    mail_from: str = MAIL_FROM

    def add_account(self, email: str, password: str, verified: bool = True, name: str = "Test User") -> Account:
        """Create an account directly in the store, bypassing sign-up."""
        account = self.accounts.create(name, email, hash_password(password))
        if verified:
            account.is_verified = True
            self.accounts.save(account, "is_verified")
        return account


def make_flows(db_url: str, max_login_attempts: int = 5) -> FlowEnv:
    accounts = AccountStore(db_url)
    audit = LoginAuditLog(db_url)
    tokens = TokenService(TEST_SECRET)
    mailer = RecordingMailer()
    flows = AuthFlowController(
        accounts,
        tokens,
        mailer,
        audit,
        frontend_url=FRONTEND_URL,
        mail_from=MAIL_FROM,
        max_login_attempts=max_login_attempts,
    )
    return FlowEnv(flows=flows, accounts=accounts, audit=audit, tokens=tokens, mailer=mailer)


def _shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-test fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def flow_env() -> Generator[FlowEnv, None, None]:
    """Controller over an isolated database. Accounts and log share the same DB."""
    env = make_flows(_shared_memory_url("test_flows"))
    yield env
    env.accounts.close()
    env.audit.close()


@pytest.fixture
def make_flow_env() -> Generator[Callable[..., FlowEnv], None, None]:
    """Factory for controllers with non-default settings (e.g. a different lockout threshold)."""
    created: list[FlowEnv] = []

    def _make(**kwargs) -> FlowEnv:
        env = make_flows(_shared_memory_url("test_flows"), **kwargs)
        created.append(env)
        return env

    yield _make
    for env in created:
        env.accounts.close()
        env.audit.close()


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    env: FlowEnv


def _patch_lifespan(env: FlowEnv, settings: Settings):
    """Return an async context manager that replaces the real lifespan.

    Wires the test collaborators into app.state so routes see an isolated
    database and a recording mailer instead of SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.account_store = env.accounts
        app.state.audit_log = env.audit
        app.state.token_service = env.tokens
        app.state.auth_flow = env.flows
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with a TestClient over the real app.

    Module-scoped for speed: tests in a module share one database, so each
    test registers its own email address. base_url uses localhost so the
    TrustedHostMiddleware allow-list accepts the requests.
    """
    env = make_flows(_shared_memory_url("test_api"))
    settings = Settings(debug=True, secret_key=TEST_SECRET, frontend_url=FRONTEND_URL, _env_file=None)
    app.router.lifespan_context = _patch_lifespan(env, settings)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, env=env)

    env.accounts.close()
    env.audit.close()
