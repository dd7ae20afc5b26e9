"""Session lifecycle: login with retry, startup token verification, logout.

State machine::

    Unauthenticated --attempt_login ok--> Authenticated
    Authenticated   --logout / verify failure--> Unauthenticated
    Authenticated   --expire--> Expired

Authenticating is transient while attempt_login is in flight. Only one
attempt_login may run per store (single-flight); a second concurrent call
raises RuntimeError.

The retry loop itself is the LoginAttempt machine
{PROBING, ATTEMPTING(n), WAITING, DONE(result)} driven by an injected async
sleep, so tests advance it without touching the wall clock.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from pydantic import SecretStr

from src.api.auth import AuthService
from src.core.config import LoginConfig
from src.core.errors import ApiError, AuthError
from src.core.result import Err, Ok, Result
from src.core.schemas import Credentials, LoginGrant, Session, SessionState
from src.session.storage import TokenStorage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
Sleep = Callable[[float], Awaitable[None]]

INVALID_CREDENTIALS = "Invalid credentials"
FRIENDLY_INVALID_CREDENTIALS = "Check username and password"


class LoginPhase(Enum):
    PROBING = "probing"
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    DONE = "done"


@dataclass
class LoginAttempt:
    """One run of the login retry loop.

    Transitions:
      PROBING     --probed-->    ATTEMPTING(1)
      ATTEMPTING  --succeeded--> DONE(Ok)
      ATTEMPTING  --failed-->    WAITING       (retryable error, attempts left)
      ATTEMPTING  --failed-->    DONE(Err)     (otherwise)
      WAITING     --waited-->    ATTEMPTING(n+1)
    """

    max_attempts: int
    phase: LoginPhase = LoginPhase.PROBING
    attempt: int = 0
    result: Result[LoginGrant, ApiError] | None = None

    def probed(self) -> None:
        self._expect(LoginPhase.PROBING)
        self.phase = LoginPhase.ATTEMPTING
        self.attempt = 1

    def succeeded(self, grant: LoginGrant) -> None:
        self._expect(LoginPhase.ATTEMPTING)
        self.phase = LoginPhase.DONE
        self.result = Ok(grant)

    def failed(self, error: ApiError) -> None:
        self._expect(LoginPhase.ATTEMPTING)
        if error.retryable and self.attempt < self.max_attempts:
            self.phase = LoginPhase.WAITING
            return
        self.phase = LoginPhase.DONE
        self.result = Err(error)

    def waited(self) -> None:
        self._expect(LoginPhase.WAITING)
        self.phase = LoginPhase.ATTEMPTING
        self.attempt += 1

    @property
    def done(self) -> bool:
        return self.phase is LoginPhase.DONE

    def _expect(self, phase: LoginPhase) -> None:
        if self.phase is not phase:
            msg = f"invalid login transition from {self.phase.value} (expected {phase.value})"
            raise RuntimeError(msg)


class SessionStore:
    """Owns the single Session of a running client.

    Usage::

        store = SessionStore(auth, TokenStorage(path), settings.login)
        if store.has_persisted_token:
            await store.verify()
        else:
            result = await store.attempt_login("alice", "s3cret", print)
    """

    def __init__(
        self,
        auth: AuthService,
        storage: TokenStorage,
        config: LoginConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._auth = auth
        self._storage = storage
        self._config = config or LoginConfig()
        self._sleep = sleep
        self._session = Session()
        self._generation = 0
        self._login_in_flight = False

    # -- read side ----------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def is_authenticated(self) -> bool:
        return self._session.state is SessionState.AUTHENTICATED

    @property
    def has_persisted_token(self) -> bool:
        return self._storage.get() is not None

    def is_admin(self) -> bool:
        """UX-only check on the cached principal; the server still authorizes."""
        principal = self._session.principal
        return principal is not None and principal.role == "admin"

    # -- transitions --------------------------------------------------------

    async def attempt_login(
        self,
        userid: str,
        secret: str,
        on_progress: ProgressCallback | None = None,
    ) -> Result[Session, ApiError]:
        """Sign in, retrying timeouts up to LoginConfig.max_attempts times."""
        if self._login_in_flight:
            msg = "a login attempt is already in progress"
            raise RuntimeError(msg)
        self._login_in_flight = True
        try:
            if self._session.state is SessionState.AUTHENTICATED:
                self.logout()
            self._replace(Session(
                state=SessionState.AUTHENTICATING,
                credentials=Credentials(userid=userid, secret=SecretStr(secret)),
            ))
            generation = self._generation
            try:
                attempt = await self._run_attempt(userid, secret, on_progress or _ignore_progress)
            except BaseException:
                # Cancellation included: never leave the session AUTHENTICATING.
                if generation == self._generation:
                    self._replace(Session())
                logger.warning("Login attempt for '%s' aborted", userid)
                raise
        finally:
            self._login_in_flight = False

        if generation != self._generation:
            logger.info("Discarding login result for '%s': session changed meanwhile", userid)
            return Err(AuthError("Sign-in was superseded by a newer session change"))
        return self._apply_login(attempt)

    async def verify(self) -> Result[Session, ApiError]:
        """Check the persisted token once at startup. Any failure logs out."""
        token = self._storage.get()
        if token is None:
            return Err(AuthError("No stored session"))
        self._auth.attach_token(token)
        result = await self._auth.verify()
        if isinstance(result, Err):
            logger.info("Stored token rejected (%s) - logging out", result.error.message)
            self.logout()
            return result
        self._replace(Session(
            state=SessionState.AUTHENTICATED, token=token, principal=result.value,
        ))
        logger.info("Session restored for '%s'", result.value.id)
        return Ok(self._session)

    def logout(self) -> None:
        """Forget every trace of the session. Idempotent."""
        self._clear()
        if self._session.state is not SessionState.UNAUTHENTICATED or self._session.credentials:
            self._replace(Session())

    def expire(self) -> None:
        """Mark the session expired after the server stopped honouring the token."""
        if self._session.state is not SessionState.AUTHENTICATED:
            return
        logger.info("Session expired - the server no longer accepts the token")
        self._clear()
        self._replace(Session(state=SessionState.EXPIRED))

    # -- internals ----------------------------------------------------------

    async def _run_attempt(
        self,
        userid: str,
        secret: str,
        progress: ProgressCallback,
    ) -> LoginAttempt:
        attempt = LoginAttempt(max_attempts=self._config.max_attempts)
        backoff = self._config.retry_backoff_s

        while not attempt.done:
            if attempt.phase is LoginPhase.PROBING:
                progress("Connecting to server...")
                if not await self._auth.health_probe():
                    progress("Server is starting up, please wait...")
                attempt.probed()
            elif attempt.phase is LoginPhase.ATTEMPTING:
                if attempt.attempt == 1:
                    progress("Signing in...")
                else:
                    progress(f"Signing in (attempt {attempt.attempt} of {attempt.max_attempts})...")
                result = await self._auth.login(userid, secret)
                if isinstance(result, Ok):
                    attempt.succeeded(result.value)
                else:
                    logger.debug(
                        "Login attempt %d/%d failed: %s",
                        attempt.attempt, attempt.max_attempts, result.error.message,
                    )
                    attempt.failed(result.error)
            elif attempt.phase is LoginPhase.WAITING:
                progress(f"Server is not responding, retrying in {backoff:g} seconds...")
                await self._sleep(backoff)
                attempt.waited()

        return attempt

    def _apply_login(self, attempt: LoginAttempt) -> Result[Session, ApiError]:
        result = attempt.result
        if isinstance(result, Ok):
            grant = result.value
            self._storage.set(grant.token)
            self._auth.attach_token(grant.token)
            self._replace(Session(
                state=SessionState.AUTHENTICATED,
                token=grant.token,
                principal=grant.principal,
                credentials=self._session.credentials,
            ))
            logger.info("Signed in as '%s' (%s)", grant.principal.id, grant.principal.role)
            return Ok(self._session)

        error = result.error if isinstance(result, Err) else AuthError("Login failed")
        self._replace(Session())
        logger.info("Login failed after %d attempt(s): %s", attempt.attempt, error.message)
        if error.message == INVALID_CREDENTIALS:
            error = error.with_message(FRIENDLY_INVALID_CREDENTIALS)
        return Err(error)

    def _clear(self) -> None:
        self._storage.remove()
        self._auth.detach_token()

    def _replace(self, session: Session) -> None:
        self._session = session
        self._generation += 1


def _ignore_progress(message: str) -> None:
    logger.debug("Login progress: %s", message)
