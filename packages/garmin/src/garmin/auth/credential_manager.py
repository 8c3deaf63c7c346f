import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from garmin.auth.auth_tokens import BearerCredential, SigningCredential
from garmin.exceptions import RenewalFailedError
from garmin.models import ExportedCredentials
from shared_lib.baseclient.exceptions import HTTPError
from shared_lib.baseclient.types import HttpRequest, HttpResponse
from shared_lib.utils.date import Clock, default_clock

Renewer = Callable[[SigningCredential], Awaitable[BearerCredential]]
Sender = Callable[[HttpRequest], Awaitable[HttpResponse]]


class CredentialManager:
    """
    # Credential Lifecycle Manager

    Sole owner of the client's `SigningCredential` / `BearerCredential` pair.

    ## Renewal coalescing:
    Every bearer value carries a generation number. A request that gets a 401
    asks for a renewal *of the generation it used*:
    - generation already advanced: another caller renewed, reuse the result
    - a renewal is in flight: park on it
    - otherwise: start exactly one renewal task

    The check-and-set runs under an `asyncio.Lock`; waiters then await the
    shared task through `asyncio.shield`, so cancelling one waiter never
    cancels the renewal the others depend on. A failed renewal is remembered
    for its generation: every waiter, and every later 401 on that generation,
    gets the same `RenewalFailedError` until new credentials are set.

    ## Example:
    ```python
    manager = CredentialManager(signer.exchange_signing_for_bearer_credential)
    manager.set_credentials(signing, bearer)
    response = await manager.call(transport_send, HttpRequest("GET", url))
    ```
    """

    def __init__(self, renewer: Renewer, clock: Clock = default_clock) -> None:
        self.renewer = renewer
        self.clock = clock
        self.signing: SigningCredential | None = None
        self.bearer: BearerCredential | None = None
        self.generation = 0
        self._renewal: asyncio.Task[BearerCredential] | None = None
        self._failed: tuple[int, RenewalFailedError] | None = None
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    def set_credentials(
        self, signing: SigningCredential | None, bearer: BearerCredential | None
    ) -> None:
        """Replace both credentials at once (new login or caller-side restore)."""
        self.signing = signing
        self.bearer = bearer
        self.generation += 1
        self._failed = None
        self.logger.debug(f"Credentials replaced (generation {self.generation})")

    def export(self) -> ExportedCredentials:
        return ExportedCredentials(signing=self.signing, bearer=self.bearer)

    def authorize(self, headers: dict[str, str]) -> int:
        """
        Attach the current bearer token to `headers` (in place).

        ## Returns:
        - `int`: The credential generation the headers were built from
        """
        if self.bearer is not None:
            headers["Authorization"] = f"Bearer {self.bearer.access_token}"
        return self.generation

    async def call(self, send: Sender, request: HttpRequest) -> HttpResponse:
        """
        Send `request` with the bearer token; on 401 renew once and retry once.

        ## Raises:
        - `HTTPError`: 401 with no signing credential to renew with, or 401
          again after a successful renewal
        - `RenewalFailedError`: The shared renewal failed
        """
        headers = dict(request.headers)
        generation = self.authorize(headers)
        response = await send(replace(request, headers=headers))
        if response.status != 401:
            return response

        if self.signing is None:
            raise HTTPError(
                "Request unauthorized and no signing credential is available",
                status_code=401,
                response_body=response.body,
            )

        self.logger.info("Bearer credential rejected, renewing")
        await self.renew(generation)

        retry_headers = dict(request.headers)
        self.authorize(retry_headers)
        response = await send(replace(request, headers=retry_headers))
        if response.status == 401:
            raise HTTPError(
                "Request still unauthorized after credential renewal",
                status_code=401,
                response_body=response.body,
            )
        return response

    async def renew(self, observed_generation: int) -> BearerCredential:
        async with self._lock:
            if self.generation != observed_generation and self.bearer is not None:
                return self.bearer

            if self.signing is None:
                raise RenewalFailedError("No signing credential available for renewal")

            if self._failed is not None and self._failed[0] == self.generation:
                raise self._failed[1]

            if self._renewal is None:
                self._renewal = asyncio.create_task(
                    self._run_renewal(self.signing, self.generation)
                )
                self._renewal.add_done_callback(self._renewal_finished)
            task = self._renewal

        return await asyncio.shield(task)

    async def ensure_fresh(self) -> BearerCredential | None:
        """Renew ahead of time when the bearer credential is already expired."""
        if self.bearer is None or self.signing is None:
            return self.bearer
        if not self.bearer.is_expired_at(self.clock()):
            return self.bearer

        self.logger.info("Bearer credential expired, renewing proactively")
        return await self.renew(self.generation)

    async def _run_renewal(
        self, signing: SigningCredential, generation: int
    ) -> BearerCredential:
        try:
            bearer = await self.renewer(signing)
        except Exception as e:
            self.logger.error(f"Bearer credential renewal failed: {e}")
            error = RenewalFailedError(f"Bearer credential renewal failed: {e}")
            if self.generation == generation:
                self._failed = (generation, error)
            raise error from e

        # A login that finished meanwhile owns the pair now.
        if self.signing is not signing:
            return self.bearer or bearer

        self.bearer = bearer
        self.generation += 1
        self.logger.info(f"Bearer credential renewed (generation {self.generation})")
        return bearer

    def _renewal_finished(self, task: asyncio.Task[BearerCredential]) -> None:
        if self._renewal is task:
            self._renewal = None
        if not task.cancelled():
            # Waiters may all have been cancelled; mark the outcome as retrieved.
            task.exception()
