"""Behavioural probes run against the observed product's chat-test endpoint."""

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from patchgate.config import settings
from patchgate.schemas.evaluation import ProbeResult

logger = logging.getLogger(__name__)

CHAT_TEST_PATH = "/api/tower/chat-test"
RESPONSE_PREVIEW_CHARS = 500

# (status, details)
Verdict = tuple[str, str]


@dataclass(frozen=True)
class ProbeDefinition:
    """A fixed behavioural check: one message in, one classified reply out."""

    probe_id: str
    name: str
    description: str
    message: str
    classify: Callable[[str], Verdict]
    domain: str | None = None
    is_active: bool = True


def _matches(pattern: str, text: str) -> bool:
    return re.search(pattern, text) is not None


def classify_greeting(response: str) -> Verdict:
    text = response.lower()
    has_greeting = _matches(r"\b(hello|hi|hey|welcome|greetings)\b", text)
    asks_goal = _matches(
        r"(what.*(?:trying|like|want|need|help|goal|achieve|looking for))|(?:can i help)|(?:how.*help)",
        text,
    )
    if has_greeting and asks_goal:
        return "pass", "Response contains greeting and asks about user goals"
    if has_greeting:
        return "fail", "Response has greeting but doesn't ask about goals"
    return "fail", "Response missing greeting pattern"


def classify_personalisation(response: str) -> Verdict:
    text = response.lower()
    acknowledges_domain = _matches(r"(examplebrewery|brewery|your business|your company|domain)", text)
    business_context = _matches(r"(pubs|bars|retailers|distributors|beer|beverage|hospitality)", text)
    if acknowledges_domain and business_context:
        return "pass", "Response acknowledges domain and provides business-specific context"
    if acknowledges_domain:
        return "fail", "Response acknowledges domain but lacks business-specific adaptation"
    return "fail", "Response doesn't acknowledge the domain"


def classify_lead_search(response: str) -> Verdict:
    text = response.lower()
    searched = _matches(r"(search|searching|found|finding|results|leads|looking for|identified)", text)
    has_leads = _matches(r"(pubs?|freehouse|leads?|venues?|establishments?)", text)
    has_location = _matches(r"(brighton|area|near|location)", text)
    if searched and (has_leads or has_location):
        return "pass", "Response indicates lead search was triggered with relevant context"
    if searched:
        return "fail", "Response mentions search but lacks specific lead context"
    return "fail", "Response doesn't indicate a search was performed"


def classify_monitor_setup(response: str) -> Verdict:
    text = response.lower()
    monitoring = _matches(
        r"(monitor|monitoring|track|tracking|watch|alert|notify|recurring|schedule|automated)", text
    )
    confirmed = _matches(r"(set up|setup|created|configured|will.*monitor|i'll.*track)", text)
    if monitoring and confirmed:
        return "pass", "Response confirms monitoring setup with appropriate language"
    if monitoring:
        return "fail", "Response mentions monitoring but doesn't confirm setup"
    return "fail", "Response doesn't indicate monitoring capability"


PROBE_DEFINITIONS: tuple[ProbeDefinition, ...] = (
    ProbeDefinition(
        probe_id="greeting-basic",
        name="Greeting / onboarding",
        description="New user conversation gets a welcome and a question about goals",
        message="Hello",
        classify=classify_greeting,
    ),
    ProbeDefinition(
        probe_id="personalisation-domain",
        name="Personalisation via domain",
        description="Supplied domain is acknowledged and language adapts to that business",
        message="My company domain is examplebrewery.com",
        classify=classify_personalisation,
        domain="examplebrewery.com",
    ),
    ProbeDefinition(
        probe_id="lead-search-basic",
        name="Basic lead search",
        description="Lead search request triggers a search and returns results",
        message="Find some freehouse pubs near Brighton",
        classify=classify_lead_search,
    ),
    ProbeDefinition(
        probe_id="monitor-setup-basic",
        name="Monitoring setup",
        description="Monitoring request is acknowledged as a recurring behaviour",
        message="Set up a monitor for new breweries in Texas",
        classify=classify_monitor_setup,
    ),
)


def parse_event_stream(body: str) -> str:
    """Assemble reply text from an SSE body ('data: ...' lines)."""
    parts: list[str] = []
    for line in body.split("\n"):
        if not line.startswith("data: "):
            continue
        data = line[6:]
        if data == "[DONE]":
            continue
        try:
            parsed = json.loads(data)
        except ValueError:
            parts.append(data)
            continue
        if isinstance(parsed, str):
            parts.append(parsed)
        elif isinstance(parsed, dict):
            if parsed.get("content"):
                parts.append(str(parsed["content"]))
            elif isinstance(parsed.get("delta"), dict) and parsed["delta"].get("content"):
                parts.append(str(parsed["delta"]["content"]))
    return "".join(parts).strip()


def extract_reply(response: httpx.Response) -> str:
    """Reply text from a chat-test response (streaming or JSON)."""
    content_type = response.headers.get("content-type", "")
    if "text/event-stream" in content_type:
        return parse_event_stream(response.text)

    data = response.json()
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        if data.get("message"):
            return str(data["message"])
        if data.get("response"):
            return str(data["response"])
    return json.dumps(data)


class ProductProbeRunner:
    """Runs the fixed probe battery sequentially against the product."""

    def __init__(
        self,
        base_url: str | None = None,
        export_key: str | None = None,
        request_timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        definitions: tuple[ProbeDefinition, ...] = PROBE_DEFINITIONS,
    ):
        self.base_url = (base_url or settings.product_base_url).rstrip("/")
        self.export_key = export_key if export_key is not None else settings.product_export_key
        self.request_timeout_seconds = request_timeout_seconds or settings.probe_request_timeout_seconds
        self.transport = transport
        self.definitions = definitions

    def probe_ids(self) -> list[str]:
        return [d.probe_id for d in self.definitions if d.is_active]

    async def _call_product(self, client: httpx.AsyncClient, definition: ProbeDefinition) -> str:
        user = {"id": "tower-eval", "name": "Tower Evaluator", "email": "tower@evaluator.local"}
        if definition.domain:
            user["domain"] = definition.domain
        response = await client.post(
            CHAT_TEST_PATH,
            json={"user": user, "messages": [{"role": "user", "content": definition.message}]},
            headers={"X-EXPORT-KEY": self.export_key},
        )
        response.raise_for_status()
        return extract_reply(response)

    async def run_probe(self, client: httpx.AsyncClient, definition: ProbeDefinition) -> ProbeResult:
        start = time.monotonic()
        try:
            reply = await self._call_product(client, definition)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Probe %s errored: %s", definition.probe_id, exc)
            return ProbeResult(
                probe_id=definition.probe_id,
                status="error",
                details=f"Error: {exc}",
                raw_output={"error": repr(exc)},
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        status, details = definition.classify(reply)
        return ProbeResult(
            probe_id=definition.probe_id,
            status=status,
            details=details,
            raw_output={"response": reply[:RESPONSE_PREVIEW_CHARS]},
            duration_ms=duration_ms,
        )

    async def run_all_probes(self) -> list[ProbeResult]:
        """One result per active probe, in definition order."""
        results: list[ProbeResult] = []
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.request_timeout_seconds,
            transport=self.transport,
        ) as client:
            for definition in self.definitions:
                if not definition.is_active:
                    continue
                result = await self.run_probe(client, definition)
                logger.info(
                    "Probe %s -> %s (%sms)", result.probe_id, result.status, result.duration_ms
                )
                results.append(result)
        return results
