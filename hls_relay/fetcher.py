"""
Upstream fetching with an ordered, strictly sequential retry over header variants.

The retry policy is a small state machine: ``Pending(index)`` issues attempt
``index``; a 403 moves on to the next variant while one remains, anything
else (or running out of variants) ends in ``Done(outcome)``. Transport
failures are folded in as synthetic 403 outcomes without a body, so a dead
connection on the first variant does not fail the request when the second
one works.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from requests.structures import CaseInsensitiveDict

from hls_relay.headers import AttemptVariant, build_headers
from hls_relay.resolver import build_session

logger = logging.getLogger(__name__)

DENIED = 403


@dataclass
class UpstreamOutcome:
    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    # Streamed requests.Response; None for a synthetic failure.
    body: Optional[Any] = None
    variant: Optional[AttemptVariant] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, variant, error):
        return cls(status=DENIED, variant=variant, error=str(error))

    @property
    def denied(self):
        return self.status == DENIED

    def close(self):
        if self.body is not None:
            self.body.close()


@dataclass(frozen=True)
class Pending:
    index: int


@dataclass(frozen=True)
class Done:
    outcome: UpstreamOutcome


def advance(state, outcome, variant_count):
    """Pure transition from ``Pending(i)`` given the outcome of attempt ``i``."""
    if outcome.denied and state.index + 1 < variant_count:
        return Pending(state.index + 1)
    return Done(outcome)


def run_attempts(variants, attempt):
    """
    Drives the retry machine with ``attempt(variant) -> UpstreamOutcome``.

    Each attempt is fully awaited before the next begins. Bodies of
    discarded outcomes are closed so their connections go back to the pool.
    """
    if not variants:
        raise ValueError("at least one attempt variant is required")

    state = Pending(0)
    while isinstance(state, Pending):
        variant = variants[state.index]
        outcome = attempt(variant)
        outcome.variant = variant
        state = advance(state, outcome, len(variants))
        if isinstance(state, Pending):
            logger.warning(
                f"Upstream denied variant '{variant.name}' ({outcome.error or outcome.status}), "
                f"retrying with '{variants[state.index].name}'"
            )
            outcome.close()
    return state.outcome


class UpstreamFetcher:
    def __init__(self, config, session=None):
        self.config = config
        self.session = session if session is not None else build_session(config)

    def attempt(self, proxy_request, variant):
        # Header construction errors are not transport failures; let them surface.
        headers = build_headers(variant, proxy_request, self.config)
        logger.debug(f"Attempt '{variant.name}' for {proxy_request.url} with headers {headers}")
        try:
            response = self.session.get(
                proxy_request.url,
                headers=headers,
                stream=True,
                allow_redirects=True,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Attempt '{variant.name}' failed for {proxy_request.url}: {e}")
            return UpstreamOutcome.failure(variant, e)

        logger.debug(f"Upstream server responded with status code: {response.status_code}")
        return UpstreamOutcome(
            status=response.status_code,
            headers=response.headers,
            body=response,
            variant=variant,
        )

    def fetch(self, proxy_request):
        return run_attempts(
            self.config.variants,
            lambda variant: self.attempt(proxy_request, variant),
        )
