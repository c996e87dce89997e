"""
Mecanisme de retry avec backoff exponentiel pour les appels TMDB.

Relance les requetes idempotentes (GET, HEAD) sur panne transitoire :
erreurs de transport httpx (connexion, timeout) et statuts 408, 429, 5xx.
Le delai honore Retry-After sur 429, sinon 250ms x 2^tentative plus
jusqu'a 200ms de jitter, borne a [0, 10s].

Usage:
    retry = RetryMiddleware(max_retries=3)
    handler = compose([retry], transport)

    # Delai injectable (tests, politique specifique)
    retry = RetryMiddleware(max_retries=2, delay_provider=lambda attempt, response: 0)
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)

from deckcache.adapters.api.pipeline import Handler
from deckcache.utils.constants import TRANSIENT_STATUS_CODES
from deckcache.utils.helpers import clamp, redact_secret_params

MAX_RETRIES_LIMIT = 10
BASE_DELAY_SECONDS = 0.25
MAX_JITTER_SECONDS = 0.2
MAX_DELAY_SECONDS = 10.0
RETRYABLE_METHODS = frozenset({"GET", "HEAD"})

# (tentative 0-indexee, reponse ou None si exception) -> secondes
DelayProvider = Callable[[int, Optional[httpx.Response]], float]


def is_transient_status(status_code: int) -> bool:
    """Statut a relancer : 408, 429 ou 5xx."""
    return status_code in TRANSIENT_STATUS_CODES or status_code >= 500


def is_transient_response(response: httpx.Response) -> bool:
    return is_transient_status(response.status_code)


def parse_retry_after(response: Optional[httpx.Response]) -> Optional[float]:
    """Lit l'en-tete Retry-After (secondes) d'une reponse, None si absent ou illisible."""
    if response is None:
        return None
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def compute_delay(attempt: int, response: Optional[httpx.Response]) -> float:
    """
    Delai par defaut avant la tentative suivante.

    Args:
        attempt: Numero de la tentative echouee (0 pour la premiere)
        response: Derniere reponse, ou None apres une erreur de transport

    Returns:
        Delai en secondes, dans [0, 10]
    """
    if response is not None and response.status_code == 429:
        retry_after = parse_retry_after(response)
        if retry_after is not None:
            return clamp(retry_after, 0.0, MAX_DELAY_SECONDS)
    delay = BASE_DELAY_SECONDS * (2 ** attempt) + random.uniform(0, MAX_JITTER_SECONDS)
    return clamp(delay, 0.0, MAX_DELAY_SECONDS)


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Derniere reponse retournee telle quelle, derniere exception relancee
    return retry_state.outcome.result()


class RetryMiddleware:
    """
    Middleware de retry adosse a tenacity.AsyncRetrying.

    Au plus max_retries + 1 appels au handler suivant. Apres epuisement, la
    derniere reponse est retournee ; une derniere erreur de transport est
    propagee (le client TMDB la traduit en TransientError).
    """

    def __init__(
        self,
        max_retries: int = 3,
        delay_provider: Optional[DelayProvider] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._max_retries = clamp(max_retries, 0, MAX_RETRIES_LIMIT)
        self._delay_provider = delay_provider or compute_delay
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        if request.method.upper() not in RETRYABLE_METHODS or self._max_retries == 0:
            return await call_next(request)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(is_transient_response),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            retry_error_callback=_last_outcome,
        )
        return await retrying(call_next, request)

    def _wait(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        response = None if outcome is None or outcome.failed else outcome.result()
        return max(0.0, self._delay_provider(retry_state.attempt_number - 1, response))

    def _log_retry(self, retry_state: RetryCallState) -> None:
        request = retry_state.args[0] if retry_state.args else None
        target = redact_secret_params(request.url) if isinstance(request, httpx.Request) else "?"
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            reason = type(outcome.exception()).__name__
        elif outcome is not None:
            reason = f"HTTP {outcome.result().status_code}"
        else:
            reason = "?"
        sleep_for = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.debug(
            f"Retry TMDB {retry_state.attempt_number}/{self._max_retries} "
            f"({reason}) sur {target} dans {sleep_for:.2f}s"
        )
