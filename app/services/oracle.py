"""
Oracle service: every call to the external text-generation API.

Contract with the upstream model
--------------------------------
The model returns prose that *may* contain one JSON object of a documented
shape. We pull the first balanced `{...}` out of the text, decode it into a
pydantic model, and on any failure (transport, timeout, non-2xx, no JSON,
wrong shape) substitute a fixed in-domain fallback. UpstreamAIError never
leaves this module's public functions.

Public API
----------
OracleClient.complete(prompt, system)      → str   (raises UpstreamAIError)
get_oracle()                               → OracleClient  (FastAPI dependency)
extract_json(text)                         → dict | None
analyze_identity / daily_wisdom / mysterious_name / advise
mirror_scenario / judge_mirror_choice / judge_feat / council_feedback
generate_quests                            → (payload, used_fallback)
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.errors import UpstreamAIError
from app.schemas.oracle import (
    CouncilVerdict,
    FeatJudgement,
    GeneratedQuest,
    GeneratedQuestBatch,
    IdentityVerdict,
    MirrorJudgement,
    MirrorScenario,
    Wisdom,
)
from app.schemas.stats import UserStats

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SYSTEM_DEFAULT = "You are Aletheia, the supreme self-development architecture."


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------

FALLBACK_IDENTITY = IdentityVerdict(
    approved=True,
    reason="You walk the path.",
    initialStats={
        "level": 1, "xp": 0, "xpToNextLevel": 100,
        "intelligence": 5, "physical": 5, "spiritual": 5, "social": 5, "wealth": 5,
        "class": "Seeker",
    },
)
FALLBACK_WISDOM = Wisdom(text="The path unfolds before you.", author="The Oracle")
FALLBACK_NAME = "Initiate"
FALLBACK_ADVICE = "The transmission was lost in the void."
FALLBACK_COUNCIL = CouncilVerdict(feedback="Your effort is noted.")
FALLBACK_FEAT = FeatJudgement(
    xpGained=10, statsIncreased={}, systemMessage="The void acknowledges your effort."
)
FALLBACK_MIRROR_SCENARIO = MirrorScenario(
    situation="A fork in the road.", choiceA="Left", choiceB="Right", testedStat="spiritual"
)
FALLBACK_MIRROR_JUDGEMENT = MirrorJudgement(outcome="Fate ripples.", statChange={"xp": 10})
FALLBACK_QUESTS = GeneratedQuestBatch(quests=[
    GeneratedQuest(
        text="Meditate in silence for 15 minutes",
        difficulty="E", xp_reward=50, stat_reward={"spiritual": 1}, duration_hours=24,
    ),
    GeneratedQuest(
        text="Complete a 30-minute deep work session",
        difficulty="D", xp_reward=75, stat_reward={"intelligence": 1}, duration_hours=24,
    ),
    GeneratedQuest(
        text="Walk or run 3 km",
        difficulty="D", xp_reward=75, stat_reward={"physical": 1}, duration_hours=24,
    ),
])


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class Oracle(Protocol):
    def complete(self, prompt: str, system: str = SYSTEM_DEFAULT, json_mode: bool = False) -> str:
        ...


class OracleClient:
    """Synchronous client for an OpenAI-compatible /chat/completions endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.model = model
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def complete(self, prompt: str, system: str = SYSTEM_DEFAULT, json_mode: bool = False) -> str:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            response = self._client.post("/chat/completions", json=body)
        except httpx.TimeoutException as exc:
            raise UpstreamAIError("Oracle timed out.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamAIError(f"Oracle transport error: {exc}") from exc

        if response.status_code != 200:
            raise UpstreamAIError(
                f"Oracle returned HTTP {response.status_code}.",
                details={"status": response.status_code},
            )
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamAIError("Oracle response had no message content.") from exc
        if not isinstance(content, str) or not content.strip():
            raise UpstreamAIError("Oracle returned empty content.")
        return content

    def close(self) -> None:
        self._client.close()


_oracle: Optional[OracleClient] = None


def get_oracle() -> OracleClient:
    global _oracle
    if _oracle is None:
        _oracle = OracleClient(
            base_url=settings.AI_API_BASE,
            api_key=settings.AI_API_KEY,
            model=settings.AI_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    return _oracle


def close_oracle() -> None:
    global _oracle
    if _oracle is not None:
        _oracle.close()
        _oracle = None


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

_FENCE_OPEN = re.compile(r"^```(?:json|javascript|python)?\s*", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"```\s*$", re.MULTILINE)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first `{...}` whose braces balance, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> Optional[dict[str, Any]]:
    """Pull the first JSON object out of free text. None if there is none."""
    if not text:
        return None
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()
    candidate = _first_balanced_object(cleaned)
    if candidate is None:
        return None

    for strategy, attempt in (
        ("original", candidate),
        ("trailing_commas", _TRAILING_COMMA.sub(r"\1", candidate)),
    ):
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            logger.debug("JSON strategy %s failed", strategy)
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def decode(text: str, model: type[M], fallback: M) -> tuple[M, bool]:
    """Decode `text` into `model`; returns (value, used_fallback)."""
    payload = extract_json(text)
    if payload is None:
        logger.warning("Oracle answer had no JSON object for %s", model.__name__)
        return fallback, True
    try:
        return model.model_validate(payload), False
    except ValidationError as exc:
        logger.warning("Oracle answer did not match %s: %s", model.__name__, exc.errors()[:3])
        return fallback, True


def _ask(oracle: Oracle, prompt: str, system: str, model: type[M], fallback: M) -> tuple[M, bool]:
    try:
        text = oracle.complete(prompt, system=system, json_mode=True)
    except UpstreamAIError as exc:
        logger.warning("Oracle unavailable (%s); using fallback %s", exc.message, model.__name__)
        return fallback, True
    return decode(text, model, fallback)


def _ask_text(oracle: Oracle, prompt: str, system: str) -> Optional[str]:
    try:
        return oracle.complete(prompt, system=system).strip() or None
    except UpstreamAIError as exc:
        logger.warning("Oracle unavailable (%s); using text fallback", exc.message)
        return None


# ---------------------------------------------------------------------------
# Domain calls
# ---------------------------------------------------------------------------

def analyze_identity(oracle: Oracle, manifesto: str) -> IdentityVerdict:
    prompt = (
        f'Analyze this manifesto: "{manifesto}". Assign level 1 stats and a class. Be poetic. '
        "Return JSON ONLY with properties: approved (boolean), reason (string), initialStats "
        "(object with level, xp, xpToNextLevel, intelligence, physical, spiritual, social, "
        "wealth, class)."
    )
    verdict, _ = _ask(oracle, prompt, "You are the Gatekeeper of Aletheia.",
                      IdentityVerdict, FALLBACK_IDENTITY)
    return verdict


def daily_wisdom(oracle: Oracle) -> Wisdom:
    prompt = (
        "Provide a single piece of profound, mystical daily wisdom for a seeker of truth. "
        "Return JSON ONLY with: text (string), author (string)."
    )
    wisdom, _ = _ask(oracle, prompt, "You are the Oracle of Aletheia.", Wisdom, FALLBACK_WISDOM)
    return wisdom


def mysterious_name(oracle: Oracle) -> str:
    text = _ask_text(
        oracle,
        "Generate a single mysterious RPG-style name (e.g., Kaelen, Vyr, Sylas). Just the name.",
        SYSTEM_DEFAULT,
    )
    if not text:
        return FALLBACK_NAME
    name = re.sub(r"[^A-Za-z]", "", text.splitlines()[0])
    return name[:32] or FALLBACK_NAME


def advise(oracle: Oracle, advisor_type: str, message: str) -> str:
    system = f"You are a {advisor_type} advisor. Keep it short, mystical, and practical."
    return _ask_text(oracle, message, system) or FALLBACK_ADVICE


def mirror_scenario(oracle: Oracle, stats: UserStats) -> MirrorScenario:
    prompt = (
        f"Generate a moral dilemma for a {stats.class_name} character of level {stats.level}. "
        'Return JSON ONLY: { "situation": "string", "choiceA": "string", '
        '"choiceB": "string", "testedStat": "intelligence|physical|spiritual|social|wealth" }'
    )
    scenario, _ = _ask(oracle, prompt, SYSTEM_DEFAULT, MirrorScenario, FALLBACK_MIRROR_SCENARIO)
    return scenario


def judge_mirror_choice(
    oracle: Oracle, situation: str, choice: str, tested_stat: Optional[str]
) -> MirrorJudgement:
    prompt = (
        f"Scenario: {situation}. Choice: {choice}. Tested stat: {tested_stat or 'any'}. "
        "Judge the choice. Return JSON ONLY: { \"outcome\": \"string\", "
        "\"statChange\": { \"xp\": number, \"<stat>\": number }, "
        "\"reward\": null | { \"name\": \"string\", \"description\": \"string\", "
        "\"rarity\": \"COMMON|RARE|LEGENDARY|MYTHIC\", \"effect\": \"string\", \"icon\": \"emoji\" } }"
    )
    judgement, _ = _ask(oracle, prompt, "You are the Mirror of Aletheia.",
                        MirrorJudgement, FALLBACK_MIRROR_JUDGEMENT)
    return judgement


def judge_feat(oracle: Oracle, feat: str, stats: UserStats) -> FeatJudgement:
    prompt = (
        f'You are the Chronicler of Aletheia. Analyze this real-world achievement: "{feat}". '
        f"Evaluate its impact on a {stats.class_name} at level {stats.level}. "
        'Return JSON ONLY: { "xpGained": number, "statsIncreased": { "physical": number, '
        '"intelligence": number, "spiritual": number, "social": number, "wealth": number }, '
        '"systemMessage": "string" }'
    )
    judgement, _ = _ask(oracle, prompt, "You are the Chronicler of Aletheia.",
                        FeatJudgement, FALLBACK_FEAT)
    return judgement


def council_feedback(oracle: Oracle, habit_name: str, action: str, stats: UserStats) -> str:
    prompt = (
        f'User performed "{action}" for habit "{habit_name}". User is a {stats.class_name} '
        f"level {stats.level}. Provide a council verdict. Return JSON ONLY with: feedback (string)."
    )
    verdict, _ = _ask(oracle, prompt, "You are the High Council of Aletheia.",
                      CouncilVerdict, FALLBACK_COUNCIL)
    return verdict.feedback


def generate_quests(
    oracle: Oracle, stats: UserStats, goals: list[str]
) -> tuple[GeneratedQuestBatch, bool]:
    prompt = (
        "You are the Eye of Aletheia, a supreme self-development architecture. "
        f"Construct 3 real-world sacred trials for a {stats.class_name} level {stats.level}.\n"
        f"GOALS: {json.dumps(goals)}\n\n"
        "CRITICAL PROTOCOLS:\n"
        '1. ACTIONS: ONLY real-world self-improvement actions (e.g., "Run 3km").\n'
        "2. UTILITY: Each quest must directly contribute to the user's evolution.\n"
        "3. DIFFICULTY: E (Easy) to S (Supreme).\n"
        '4. Return JSON ONLY: { "quests": [{ "text": "string", "difficulty": "E-S", '
        '"xp_reward": number, "stat_reward": { "physical": number, "intelligence": number, '
        '"spiritual": number, "social": number, "wealth": number }, "duration_hours": number }] }'
    )
    return _ask(oracle, prompt, SYSTEM_DEFAULT, GeneratedQuestBatch, FALLBACK_QUESTS)
