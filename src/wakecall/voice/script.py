"""
Wake-up call script generation.

Uses the OpenAI chat completions HTTP API. Any provider problem degrades to a
deterministic fallback message so a call is never skipped for lack of a
script.
"""

from dataclasses import dataclass, field

import anyio
import httpx

from wakecall.config import Settings, get_settings
from wakecall.personalization.models import GoalType, Personalization, StruggleType
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

GOAL_TEXT: dict[GoalType, str] = {
    GoalType.EXERCISE: "morning exercise",
    GoalType.PRODUCTIVITY: "work productivity",
    GoalType.STUDY: "studying or learning",
    GoalType.MEDITATION: "meditation and mindfulness",
    GoalType.CREATIVE: "creative projects",
    GoalType.OTHER: "their personal goal",
}

STRUGGLE_TEXT: dict[StruggleType, str] = {
    StruggleType.TIRED: "feeling tired and groggy",
    StruggleType.LACK_OF_MOTIVATION: "lacking motivation",
    StruggleType.SNOOZE: "hitting the snooze button multiple times",
    StruggleType.STAY_UP_LATE: "staying up too late",
    StruggleType.OTHER: "their personal struggle",
}

SYSTEM_PROMPT = (
    "You are creating a short, motivational wake-up call message that sounds "
    "natural when spoken. The message should be personal, inspiring, and focused "
    "on helping the person start their day with motivation. Keep the message "
    "between 30-60 seconds when spoken (around 80-160 words). Do not include any "
    "salutations like \"Dear [Name]\" or signatures. Start with a direct greeting "
    "using their first name."
)


@dataclass(frozen=True)
class ScriptContext:
    name: str
    goals: list[GoalType] = field(default_factory=list)
    struggles: list[StruggleType] = field(default_factory=list)
    other_goal: str = ""
    other_struggle: str = ""
    goal_description: str = ""

    @classmethod
    def from_personalization(cls, name: str, p: Personalization) -> "ScriptContext":
        return cls(
            name=name,
            goals=[GoalType(g) for g in p.goals],
            struggles=[StruggleType(s) for s in p.struggles],
            other_goal=p.other_goal or "",
            other_struggle=p.other_struggle or "",
            goal_description=p.goal_description or "",
        )

    @property
    def first_name(self) -> str:
        return self.name.split()[0] if self.name.strip() else "there"

    def goal_phrase(self) -> str:
        parts = [
            self.other_goal if g is GoalType.OTHER and self.other_goal else GOAL_TEXT[g]
            for g in self.goals
        ]
        return _join(parts) or "their goal"

    def struggle_phrase(self) -> str:
        parts = [
            self.other_struggle if s is StruggleType.OTHER and self.other_struggle else STRUGGLE_TEXT[s]
            for s in self.struggles
        ]
        return _join(parts) or "their struggle"


def _join(parts: list[str]) -> str:
    if len(parts) <= 1:
        return "".join(parts)
    return ", ".join(parts[:-1]) + " and " + parts[-1]


def build_user_prompt(ctx: ScriptContext) -> str:
    prompt = (
        f"Create a motivational wakeup call message for {ctx.first_name}. "
        f"Their goal is focused on {ctx.goal_phrase()} and they struggle with "
        f"{ctx.struggle_phrase()}."
    )
    if ctx.goal_description:
        prompt += f" In their own words: \"{ctx.goal_description}\"."
    return prompt + (
        " Make it sound conversational and natural, as if a motivational figure "
        "is personally calling them."
    )


def fallback_message(ctx: ScriptContext) -> str:
    return (
        f"Good morning, {ctx.first_name}! It's time to wake up and start your day. "
        f"Remember why you set this alarm - your commitment to {ctx.goal_phrase()} is important. "
        "Take a deep breath, get up, and take that first step toward your goal. "
        "Today is a new opportunity to make progress. You've got this!"
    )


class ScriptGenerator:
    """Produces the spoken text of a wake-up call."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._timeout = timeout_seconds

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self._timeout)
        return self._http_client

    def generate_sync(self, ctx: ScriptContext) -> str:
        if not self._settings.openai_api_key:
            return fallback_message(ctx)

        payload = {
            "model": self._settings.openai_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(ctx)},
            ],
            "max_tokens": 250,
            "temperature": 0.7,
        }
        headers = {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

        try:
            r = self._get_client().post(OPENAI_CHAT_URL, json=payload, headers=headers)
        except httpx.HTTPError:
            logger.exception("OpenAI request failed; using fallback script")
            return fallback_message(ctx)

        if r.status_code != 200:
            logger.warning(
                "OpenAI returned an error; using fallback script",
                extra={"status_code": r.status_code},
            )
            return fallback_message(ctx)

        try:
            content = r.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("OpenAI response malformed; using fallback script")
            return fallback_message(ctx)

        return content.strip() if content and content.strip() else fallback_message(ctx)

    async def generate(self, ctx: ScriptContext) -> str:
        return await anyio.to_thread.run_sync(self.generate_sync, ctx)


_generator: ScriptGenerator | None = None


def get_script_generator() -> ScriptGenerator:
    global _generator
    if _generator is None:
        _generator = ScriptGenerator()
    return _generator
