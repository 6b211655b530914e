# inspection_engine/integrations/vision_client.py
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from ..config import settings
from ..domain.comparison import Classification, Evidence
from ..domain.enums import ChangeType, Condition, condition_severity
from ..domain.errors import ExternalCapabilityFailure

log = logging.getLogger("inspections.vision")


class VisionClassifier:
    """
    classify(entry, exit, item_name) -> Classification for one aligned item.
    Implementations raise ExternalCapabilityFailure when they cannot answer.
    """

    name = "base"

    def classify(self, entry: Evidence, exit: Evidence, item_name: str) -> Classification:
        raise NotImplementedError


class ConditionRuleClassifier(VisionClassifier):
    """Deterministic label-only judgment, used when the vision endpoint is disabled."""

    name = "condition_rules"

    COSTS: dict[str, float] = {
        ChangeType.WEAR_AND_TEAR.value: 50.0,
        ChangeType.MINOR_DAMAGE.value: 150.0,
        ChangeType.MAJOR_DAMAGE.value: 600.0,
        ChangeType.MISSING.value: 250.0,
    }
    BASE_CONFIDENCE = 0.9

    def classify(self, entry: Evidence, exit: Evidence, item_name: str) -> Classification:
        before = entry.condition or Condition.GOOD.value
        after = exit.condition
        drop = condition_severity(after) - condition_severity(before)

        if after == Condition.MISSING.value:
            change = ChangeType.MISSING.value
        elif after == Condition.DAMAGED.value:
            if before in (Condition.EXCELLENT.value, Condition.GOOD.value):
                change = ChangeType.MAJOR_DAMAGE.value
            else:
                change = ChangeType.MINOR_DAMAGE.value
        elif after == Condition.POOR.value and drop >= 2:
            change = ChangeType.MINOR_DAMAGE.value
        else:
            change = ChangeType.WEAR_AND_TEAR.value

        return Classification(
            change_type=change,
            is_tenant_responsible=change != ChangeType.WEAR_AND_TEAR.value,
            confidence=self.BASE_CONFIDENCE,
            estimated_cost=self.COSTS[change],
            evidence_notes=f"condition label changed from {entry.condition or 'unrecorded'} to {after}",
            description=f"{item_name}: {entry.condition or 'unrecorded'} at entry, {after} at exit",
        ).normalized()


_PROMPT = """You compare a rental property item at tenancy entry and at exit.
Item: {item}
Entry condition: {entry_condition}. Entry notes: {entry_notes}
Exit condition: {exit_condition}. Exit notes: {exit_notes}
The first {n_entry} image(s) are from entry, the remaining {n_exit} from exit.

Classify the change. Fair wear and tear is never the tenant's responsibility.
Return JSON only:
{{"change_type": "<wear_and_tear|minor_damage|major_damage|missing>", "is_tenant_responsible": <true|false>, "confidence": <0..1>, "estimated_cost": <number>, "severity": "<minor|moderate|major>", "description": "<one sentence>", "evidence_notes": "<what in the images supports this>"}}"""


def strip_json_fence(text: str) -> str:
    s = (text or "").strip()
    if "```json" in s:
        s = s.split("```json", 1)[1].split("```", 1)[0]
    elif s.startswith("```"):
        s = s.split("```", 2)[1]
    return s.strip()


class ClaudeVisionClassifier(VisionClassifier):
    """Anthropic Messages API compatible endpoint; images are passed by URL."""

    name = "claude_vision"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.vision_api_key
        self.base = (base_url or settings.vision_base_url).rstrip("/")
        self.model = model or settings.vision_model
        self.timeout = float(timeout or settings.vision_timeout_seconds)
        self.max_tokens = int(max_tokens or settings.vision_max_tokens)
        self._transport = transport

    def enabled(self) -> bool:
        return bool(self.api_key)

    def _payload(self, entry: Evidence, exit: Evidence, item_name: str) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        for url in entry.image_urls + exit.image_urls:
            content.append({"type": "image", "source": {"type": "url", "url": url}})
        content.append(
            {
                "type": "text",
                "text": _PROMPT.format(
                    item=item_name,
                    entry_condition=entry.condition or "unrecorded",
                    entry_notes=entry.notes or "none",
                    exit_condition=exit.condition,
                    exit_notes=exit.notes or "none",
                    n_entry=len(entry.image_urls),
                    n_exit=len(exit.image_urls),
                ),
            }
        )
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": content}],
        }

    def classify(self, entry: Evidence, exit: Evidence, item_name: str) -> Classification:
        if not self.api_key:
            raise ExternalCapabilityFailure("vision_api_key not set")

        url = f"{self.base}/messages"
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(url, json=self._payload(entry, exit, item_name), headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise ExternalCapabilityFailure(f"vision endpoint returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalCapabilityFailure(f"vision endpoint unreachable: {type(e).__name__}") from e

        try:
            blocks = data.get("content") or []
            text = next(b.get("text") for b in blocks if b.get("type") == "text")
            raw = json.loads(strip_json_fence(text))
            result = Classification(
                change_type=raw["change_type"],
                is_tenant_responsible=raw["is_tenant_responsible"],
                confidence=raw["confidence"],
                estimated_cost=raw.get("estimated_cost", 0.0),
                evidence_notes=str(raw.get("evidence_notes") or ""),
                severity=raw.get("severity"),
                description=raw.get("description"),
            ).normalized()
        except (StopIteration, KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning("malformed vision answer for %s", item_name)
            raise ExternalCapabilityFailure(f"malformed vision answer: {type(e).__name__}") from e
        return result


def get_classifier() -> VisionClassifier:
    if settings.vision_enabled and settings.vision_api_key:
        return ClaudeVisionClassifier()
    return ConditionRuleClassifier()
