"""Chat dispatch with one-shot model fallback.

Sends an assembled request to a transport, recovers once from an unavailable
model by switching to the registry's fallback choice, and normalizes the reply.
"""

import logging

from .conversation.models import ConversationState
from .errors import DispatcherBusy, ModelUnavailable
from .llm.base import ChatBackend
from .llm.models import ChatRequest, ChatResult, normalize_reply
from .registry import ModelRegistry, normalize_model_name

logger = logging.getLogger(__name__)


class Dispatcher:
    """Sends chat turns, one at a time.

    Hidden design decisions:
    - Retry policy: a single retry, only for ``ModelUnavailable``
    - Which model replaces an unavailable one
    - Reconciling the active model with the model that actually answered

    There is no backoff loop. A second failure goes back to the caller, who
    decides whether to try again.
    """

    def __init__(self, registry: ModelRegistry):
        self._registry = registry
        self._busy = False

    @property
    def busy(self) -> bool:
        """True while a turn is in flight; new sends are refused."""
        return self._busy

    async def send(
        self,
        state: ConversationState,
        request: ChatRequest,
        backend: ChatBackend,
    ) -> tuple[ConversationState, ChatResult]:
        """Send one chat turn.

        Args:
            state: Session state; its active model may be updated
            request: Assembled request
            backend: Transport serving ``request.provider``

        Returns:
            Tuple of (updated state, canonical result)

        Raises:
            DispatcherBusy: Another turn is still in flight
            ChatError: The turn failed, after at most one fallback retry
        """
        if self._busy:
            raise DispatcherBusy("A message is already being sent")

        self._busy = True
        try:
            try:
                reply = await backend.generate(request)
            except ModelUnavailable as e:
                fallback = self._registry.fallback_for(request.provider, request.model)
                if fallback is None:
                    logger.warning("Model %s unavailable and no fallback in catalog", request.model)
                    raise

                logger.warning("Model %s unavailable (%s), retrying with %s", request.model, e.detail, fallback)
                request = request.with_model(fallback)
                state.select_model(fallback, request.provider)
                reply = await backend.generate(request)

            result = normalize_reply(reply, request)
        finally:
            self._busy = False

        served = normalize_model_name(result.model)
        if served != normalize_model_name(request.model):
            logger.info("Request for %s was served by %s", request.model, served)
            state.select_model(served, request.provider)

        return state, result
