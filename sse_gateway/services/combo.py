"""
Combo Resolver Module

A combo is a named, ordered list of provider-qualified models. A request for a combo
tries each model in order until one succeeds or a hard client error stops the walk.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from sse_gateway.domain.chat_result import ChatResult
from sse_gateway.services.account_fallback import check_fallback_error

logger = logging.getLogger(__name__)

SingleModelHandler = Callable[[dict[str, Any], str], Awaitable[ChatResult]]


def _combo_field(combo: Any, name: str) -> Any:
    if isinstance(combo, dict):
        return combo.get(name)
    return getattr(combo, name, None)


def get_combo_models_from_data(model: str, combos_data: Any) -> Optional[list[str]]:
    """
    Resolve a bare model name to its combo's model list.

    Args:
        model: Requested model; provider-qualified names (``provider/model``) are never combos
        combos_data: List of combos, or a mapping with a ``combos`` key

    Returns:
        The ordered model list, or None when ``model`` is not a non-empty combo
    """
    if not model or "/" in model:
        return None

    if isinstance(combos_data, dict):
        combos = combos_data.get("combos") or []
    else:
        combos = combos_data or []

    for combo in combos:
        if _combo_field(combo, "name") == model:
            models = _combo_field(combo, "models")
            if models:
                return list(models)
    return None


async def handle_combo_chat(
    body: dict[str, Any],
    models: list[str],
    handle_single_model: SingleModelHandler,
) -> ChatResult:
    """
    Try combo models strictly in order.

    - 2xx: returned immediately
    - hard client error (no fallback): returned immediately
    - anything else: next model
    - all failed: 503 carrying the last error
    """
    last_error: Optional[str] = None

    for i, model in enumerate(models):
        logger.info("Combo trying model %d/%d: %s", i + 1, len(models), model)
        result = await handle_single_model(body, model)

        if result.ok:
            logger.info("Combo model %s succeeded", model)
            return result

        error_text = result.error_text()
        decision = check_fallback_error(result.status_code, error_text)
        if not decision.should_fallback:
            logger.warning("Combo model %s failed without fallback: status=%s", model, result.status_code)
            return result

        last_error = f"{model}: {error_text or result.status_code}"
        logger.warning(
            "Combo model %s failed, trying next: status=%s error=%s",
            model,
            result.status_code,
            error_text[:100],
        )

    logger.warning("All combo models failed")
    return ChatResult(
        status_code=503,
        body={"error": last_error or "All combo models unavailable"},
    )
