"""
auth/flows.py -- Sign-up, sign-in with lockout, sign-out, password reset and
email verification.

AuthFlowController orchestrates four collaborators, all injected:
  AccountStore   -- durable accounts (auth/store.py)
  TokenService   -- signed, expiring tokens (auth/tokens.py)
  Mailer         -- verification and reset emails (core/mailer.py)
  LoginAuditLog  -- append-only sign-in record (auth/audit.py)

Every operation is a straight run of guard checks followed by at most one
state change, and returns an Outcome (Reply | Failure) instead of raising.

Sign-in lockout, evaluated fresh on every request:
  unknown email        -> 404, nothing written
  not verified         -> 403, nothing written
  locked               -> 403, nothing written
  password matches     -> counter reset to 0 if it was > 0, session token
                          issued, one "success" log entry
  password mismatch    -> counter incremented atomically in the store
      below threshold  -> one "failed" log entry, 401 with attempts remaining
      threshold hit    -> account locked, 403, NO log entry for this attempt

Only reset_password() clears a lock.

Known limitations (kept deliberately):
  - Sign-out is client-side only. There is no revocation list, so a session
    token stays valid until it expires.
  - A reset token can be replayed until it expires.
  - Link tokens (verification, reset) carry no purpose claim, so either is
    accepted by the other link route while its signature and expiry hold.
    Only session tokens carry scope="session", and only they authenticate
    protected routes.
  - Sign-up does not roll back the account when the verification email
    fails to send.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from auth.audit import LoginAuditLog
from auth.models import Account, LoginLogEntry
from auth.outcomes import ErrorKind, Failure, Outcome, Reply
from auth.store import AccountStore
from auth.tokens import SESSION_SCOPE, InvalidTokenError, TokenService, hash_password, verify_password
from core.mailer import DeliveryError, MailMessage, Mailer

logger = logging.getLogger("authflow.auth")

_VERIFY_BODY = (
    "Hello {name},\n\n"
    "Please verify your email by clicking the link:\n"
    "{url}\n\n"
    "This link will expire in {hours} hours.\n"
)

_RESET_BODY = (
    "Hello {name},\n\n"
    "You have requested to reset your password.\n\n"
    "Please click on the following link to reset your password:\n"
    "{url}\n\n"
    "This link will expire in {hours} hour{plural}.\n\n"
    "If you did not request this, please ignore this email.\n"
)


def _hours(seconds: int) -> int:
    return max(1, seconds // 3600)


class AuthFlowController:
    """Authentication flows over injected collaborators.

    Usage:
        flows = AuthFlowController(
            accounts, tokens, mailer, audit,
            frontend_url="https://app.example.com",
            mail_from="noreply@example.com",
        )
        outcome = flows.sign_in("ada@example.com", "secret", client_address="10.0.0.1")
    """

    def __init__(
        self,
        accounts: AccountStore,
        tokens: TokenService,
        mailer: Mailer,
        audit: LoginAuditLog,
        *,
        frontend_url: str,
        mail_from: str,
        session_token_expire_seconds: int = 3600,
        verification_token_expire_seconds: int = 24 * 3600,
        reset_token_expire_seconds: int = 3600,
        max_login_attempts: int = 5,
    ) -> None:
        self._accounts = accounts
        self._tokens = tokens
        self._mailer = mailer
        self._audit = audit
        self._frontend_url = frontend_url.rstrip("/")
        self._mail_from = mail_from
        self._session_ttl = session_token_expire_seconds
        self._verification_ttl = verification_token_expire_seconds
        self._reset_ttl = reset_token_expire_seconds
        self._max_attempts = max_login_attempts

    @property
    def session_token_expire_seconds(self) -> int:
        return self._session_ttl

    # ------------------------------------------------------------------
    # Sign-up
    # ------------------------------------------------------------------

    def sign_up(self, name: str, email: str, password: str, confirm_password: str | None) -> Outcome:
        """Create an unverified account and email it a 24-hour verification link.

        Guard order: missing confirmation, existing email, mismatch. A failed
        delivery is reported as a DELIVERY failure but the account stays.
        """
        if not confirm_password:
            return Failure(ErrorKind.VALIDATION, "Confirm password is empty")
        if self._accounts.find_by_email(email) is not None:
            return Failure(ErrorKind.CONFLICT, "User already exists")
        if password != confirm_password:
            return Failure(ErrorKind.VALIDATION, "Passwords do not match")

        try:
            account = self._accounts.create(name, email, hash_password(password))
        except IntegrityError:
            # Lost a race with a concurrent sign-up for the same email.
            return Failure(ErrorKind.CONFLICT, "User already exists")
        logger.info("Account %d created", account.id)

        token = self._tokens.sign({"account_id": account.id}, timedelta(seconds=self._verification_ttl))
        url = f"{self._frontend_url}/verify-email/{token}"
        body = _VERIFY_BODY.format(name=account.name, url=url, hours=_hours(self._verification_ttl))
        failure = self._deliver(account.email, "Email Verification", body)
        if failure is not None:
            return failure

        return Reply(
            "User created successfully",
            data={"verification_token": token, "account": account},
            status_code=201,
        )

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    def sign_in(
        self,
        email: str,
        password: str,
        client_address: str | None = None,
        client_agent: str | None = None,
    ) -> Outcome:
        """Check credentials against the lockout state machine (see module docstring)."""
        account = self._accounts.find_by_email(email)
        if account is None:
            return Failure(ErrorKind.NOT_FOUND, "User not found")
        if not account.is_verified:
            return Failure(ErrorKind.FORBIDDEN, "Please verify your email before signing in")
        if account.is_locked:
            return Failure(ErrorKind.FORBIDDEN, "Account is locked. Reset your password to unlock it")

        if not verify_password(password, account.password_hash):
            attempts, locked = self._accounts.register_failed_attempt(account.id, self._max_attempts)
            account.login_attempts = attempts
            account.is_locked = locked
            if locked:
                logger.warning("Account %d locked after %d failed sign-in attempts", account.id, attempts)
                return Failure(
                    ErrorKind.FORBIDDEN,
                    "Account locked due to multiple failed attempts. Reset your password to unlock it",
                )
            self._log_attempt(account, email, "failed", client_address, client_agent, reason="Invalid password")
            remaining = self._max_attempts - attempts
            return Failure(
                ErrorKind.UNAUTHORIZED,
                f"Invalid password. {remaining} attempts remaining",
                data={"remaining_attempts": remaining},
            )

        if account.login_attempts > 0:
            account.login_attempts = 0
            self._accounts.save(account, "login_attempts")

        token = self._tokens.sign(
            {"account_id": account.id, "scope": SESSION_SCOPE}, timedelta(seconds=self._session_ttl)
        )
        self._log_attempt(account, email, "success", client_address, client_agent)
        logger.info("Account %d signed in", account.id)
        return Reply(
            "User signed in successfully",
            data={"token": token, "expires_in": self._session_ttl, "account": account},
        )

    def _log_attempt(
        self,
        account: Account | None,
        email: str,
        status: str,
        client_address: str | None,
        client_agent: str | None,
        reason: str | None = None,
    ) -> None:
        self._audit.append(
            LoginLogEntry(
                account_id=account.id if account else None,
                name=account.name if account else None,
                email=email,
                status=status,
                client_address=client_address,
                client_agent=client_agent,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    def sign_out(self) -> Outcome:
        """Nothing to do server-side; the API layer clears the session cookie."""
        return Reply("User signed out successfully")

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str | None) -> Outcome:
        """Email a one-hour reset link.

        The token and URL are also returned in the reply. That is only
        acceptable for a reference deployment; a production build must drop
        them from the response body.
        """
        if not email:
            return Failure(ErrorKind.UNAUTHORIZED, "Email is required")
        account = self._accounts.find_by_email(email)
        if account is None:
            return Failure(ErrorKind.NOT_FOUND, "User not found")

        token = self._tokens.sign({"account_id": account.id}, timedelta(seconds=self._reset_ttl))
        url = f"{self._frontend_url}/reset-password/{token}"
        hours = _hours(self._reset_ttl)
        body = _RESET_BODY.format(name=account.name, url=url, hours=hours, plural="" if hours == 1 else "s")
        failure = self._deliver(account.email, "Password Reset Request", body)
        if failure is not None:
            return failure

        logger.info("Password reset requested for account %d", account.id)
        return Reply("Password reset link sent to email", data={"reset_token": token, "reset_url": url})

    def reset_password(self, token: str | None, password: str | None) -> Outcome:
        """Replace the password, zero the attempt counter and clear any lock."""
        if not token or not password:
            return Failure(ErrorKind.VALIDATION, "Token and password are required")
        try:
            payload = self._tokens.verify(token)
        except InvalidTokenError:
            return Failure(ErrorKind.UNAUTHORIZED, "Invalid or expired token")

        account = self._accounts.find_by_id(payload["account_id"])
        if account is None:
            return Failure(ErrorKind.NOT_FOUND, "User not found")

        account.password_hash = hash_password(password)
        account.login_attempts = 0
        account.is_locked = False
        self._accounts.save(account, "password_hash", "login_attempts", "is_locked")
        logger.info("Password reset for account %d", account.id)
        return Reply("Password reset successful")

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    def verify_email(self, token: str | None) -> Outcome:
        """Mark the token's account verified. Replaying the link is answered, not failed."""
        if not token:
            return Failure(ErrorKind.VALIDATION, "Token is required")
        try:
            payload = self._tokens.verify(token)
        except InvalidTokenError:
            return Failure(ErrorKind.UNAUTHORIZED, "Invalid or expired verification token")

        account = self._accounts.find_by_id(payload["account_id"])
        if account is None:
            return Failure(ErrorKind.NOT_FOUND, "User not found")
        if account.is_verified:
            return Reply("Email already verified", status_code=400, success=False)

        account.is_verified = True
        self._accounts.save(account, "is_verified")
        logger.info("Account %d verified", account.id)
        return Reply("Email verified successfully")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _deliver(self, to: str, subject: str, body: str) -> Failure | None:
        try:
            self._mailer.send(MailMessage(sender=self._mail_from, to=to, subject=subject, body=body))
        except DeliveryError:
            return Failure(ErrorKind.DELIVERY, "Could not send email. Please try again later")
        return None
