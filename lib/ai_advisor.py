"""
AI Advisory Client

外部LLM（OpenRouter の chat completions 互換エンドポイント）に推論を委譲し、
目標に対する2種類のアドバイスを構造化データで返す。

    - suggest_actions():   次に取るべきアクションの提案（3〜5件）
    - summarize_checkin(): チェックインの要約（箇条書き3〜5件 + 自信度 + リスク判定）

失敗時の方針:
    APIキー未設定、ネットワークエラー、タイムアウト、JSONでない応答、
    スキーマ違反のいずれも AdvisoryUnavailableError として内部で扱い、
    固定のフォールバック値を返す。呼び出し元に例外は伝播しない。
    リトライはしない（1回のみ試行）。

使用例:
    from lib.ai_advisor import AIAdvisoryClient, AdvisorConfig

    client = AIAdvisoryClient(AdvisorConfig(api_key="sk-or-..."))
    suggestions = await client.suggest_actions(goal, recent_updates, recent_actions)
"""

import json
import re
import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic import ValidationError as SchemaValidationError

from lib.exceptions import AdvisoryUnavailableError, ValidationError
from lib.goal import (
    ActionStatus,
    EffortLevel,
    GoalStatus,
    progress_percentage,
    today_utc,
)
from lib.logging import get_logger, log_external_api_call

logger = get_logger(__name__)


# ================================================================
# 定数
# ================================================================

DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_TIMEOUT_SEC = 60.0

# プロンプトに含める件数
SUGGEST_MAX_UPDATES = 3
SUGGEST_MAX_ACTIONS = 3
CHECKIN_MAX_OLDER_UPDATES = 5
CHECKIN_MAX_UPCOMING_ACTIONS = 3

# この日数以内の期限を「due soon」とみなす
DUE_SOON_DAYS = 3


# ================================================================
# 設定
# ================================================================

@dataclass(frozen=True)
class AdvisorConfig:
    """
    AIクライアント設定

    クライアント自身は環境変数を読まない。呼び出し側が構築して注入する。
    """

    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT_SEC
    referer: Optional[str] = None
    title: str = "Goal Tracker"

    @classmethod
    def from_settings(cls, settings) -> "AdvisorConfig":
        """lib.config.Settings から構築"""
        return cls(
            api_key=settings.OPENROUTER_API_KEY,
            api_url=settings.OPENROUTER_API_URL,
            model=settings.OPENROUTER_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )


# ================================================================
# 入力スナップショット
# ================================================================

@dataclass
class GoalSnapshot:
    """プロンプト用の目標情報"""

    title: str
    target_value: Decimal
    current_value: Decimal
    description: Optional[str] = None
    unit: Optional[str] = None
    due_date: Optional[date] = None


@dataclass
class UpdateSnapshot:
    """プロンプト用の進捗更新（新しい順で渡すこと）"""

    previous_value: Decimal
    new_value: Decimal
    created_at: datetime
    notes: Optional[str] = None


@dataclass
class ActionSnapshot:
    """プロンプト用のアクション（新しい順で渡すこと）"""

    title: str
    status: ActionStatus
    effort: Optional[EffortLevel] = None
    due_date: Optional[date] = None
    description: Optional[str] = None


# ================================================================
# 応答スキーマ
# ================================================================

class ActionSuggestion(BaseModel):
    """アクション提案"""

    model_config = ConfigDict(extra="forbid")

    title: StrictStr
    rationale: StrictStr
    effort: EffortLevel


class ActionSuggestionsPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    suggestions: List[ActionSuggestion] = Field(..., min_length=3, max_length=5)


class CheckinSummary(BaseModel):
    """チェックイン要約"""

    model_config = ConfigDict(extra="forbid")

    bullets: List[StrictStr] = Field(..., min_length=3, max_length=5)
    confidence: StrictInt = Field(..., ge=1, le=5)
    risk_tag: GoalStatus


ACTION_SUGGESTIONS_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "action_suggestions",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "suggestions": {
                    "type": "array",
                    "description": "Between 3 and 5 action suggestions",
                    "minItems": 3,
                    "maxItems": 5,
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "rationale": {"type": "string"},
                            "effort": {"type": "string", "enum": ["S", "M", "L"]},
                        },
                        "required": ["title", "rationale", "effort"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["suggestions"],
            "additionalProperties": False,
        },
    },
}

CHECKIN_SUMMARY_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "checkin_summary",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "bullets": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Key summary points",
                    "minItems": 3,
                    "maxItems": 5,
                },
                "confidence": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 5,
                    "description": "Confidence from 1 (low) to 5 (high)",
                },
                "risk_tag": {
                    "type": "string",
                    "enum": ["on_track", "at_risk", "off_track"],
                    "description": "Risk assessment tag",
                },
            },
            "required": ["bullets", "confidence", "risk_tag"],
            "additionalProperties": False,
        },
    },
}

SUGGEST_SYSTEM_PROMPT = """You are a pragmatic goal coach. Study the user's goal, its recent progress \
and the actions already planned, then propose concrete next steps.

Rules:
- Return between 3 and 5 suggestions.
- Every suggestion must be a specific step the user can start this week.
- Do not repeat actions that are already planned; build on them instead.
- Be encouraging but realistic about the remaining gap.
- Answer only with JSON that matches the provided schema.

Fields:
- title: the step, phrased as an instruction
- rationale: one sentence on why it moves the goal forward
- effort: "S", "M" or "L" for small, medium or large effort"""

CHECKIN_SYSTEM_PROMPT = """You are a goal progress analyst. Summarize the latest check-in for the user.

Rules:
- Write 3 to 5 short bullet points.
- Compare the latest change with the earlier trend.
- Mention overdue or soon-due actions when they put the goal at risk.
- confidence is an integer from 1 (low) to 5 (high) that the goal will be reached.
- risk_tag is one of "on_track", "at_risk", "off_track".
- Answer only with JSON that matches the provided schema."""


# ================================================================
# フォールバック
# ================================================================

def fallback_action_suggestions() -> List[ActionSuggestion]:
    """固定のアクション提案（3件）"""
    return [
        ActionSuggestion(
            title="Break the goal into smaller weekly milestones",
            rationale="Smaller milestones make progress easier to see and keep up",
            effort=EffortLevel.MEDIUM,
        ),
        ActionSuggestion(
            title="Schedule a recurring check-in to log your progress",
            rationale="Regular tracking keeps momentum and surfaces drift early",
            effort=EffortLevel.SMALL,
        ),
        ActionSuggestion(
            title="List the main blockers and tackle the biggest one first",
            rationale="Removing the largest obstacle unlocks the most progress",
            effort=EffortLevel.LARGE,
        ),
    ]


def fallback_checkin_summary() -> CheckinSummary:
    """固定のチェックイン要約"""
    return CheckinSummary(
        bullets=[
            "Progress is being logged consistently",
            "Momentum is building, keep going",
            "Focus on steady weekly steps to sustain the pace",
        ],
        confidence=4,
        risk_tag=GoalStatus.ON_TRACK,
    )


# ================================================================
# 書式ヘルパー
# ================================================================

def _fmt_number(value: Any) -> str:
    """Decimal('50.00') -> '50'、Decimal('12.50') -> '12.5'"""
    if value is None:
        return "0"
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    text = format(value.normalize(), "f")
    return text


def _fmt_date(value: Any) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return "unknown date"


def _enum_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)


def due_bucket(due_date: Optional[date], today: date) -> str:
    """
    期限までの距離を分類

    Returns:
        "overdue" / "due today" / "due soon" / "due later" / "no due date"
    """
    if due_date is None:
        return "no due date"
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    days = (due_date - today).days
    if days < 0:
        return "overdue"
    if days == 0:
        return "due today"
    if days <= DUE_SOON_DAYS:
        return "due soon"
    return "due later"


def _due_phrase(due_date: Optional[date], today: date) -> str:
    """チェックイン用の期限表現（超過日数・残り日数つき）"""
    if due_date is None:
        return "no due date"
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    days = (due_date - today).days
    if days < 0:
        return f"OVERDUE by {-days} day(s)"
    if days == 0:
        return "due today"
    if days <= DUE_SOON_DAYS:
        return f"due soon, in {days} day(s)"
    return f"due in {days} day(s)"


def _goal_lines(goal: GoalSnapshot) -> List[str]:
    unit = goal.unit or ""
    try:
        pct = f"{progress_percentage(goal.current_value, goal.target_value)}%"
    except ValidationError:
        # 目標値が0以下
        pct = "unknown"
    lines = [
        f"Goal: {goal.title}",
        f"Description: {goal.description or 'No description provided'}",
        f"Target: {_fmt_number(goal.target_value)} {unit}".rstrip(),
        f"Current progress: {_fmt_number(goal.current_value)} {unit}".rstrip(),
        f"Progress percentage: {pct}",
    ]
    if goal.due_date:
        lines.append(f"Goal due date: {_fmt_date(goal.due_date)}")
    return lines


def _update_line(update: UpdateSnapshot, unit: str) -> str:
    line = (
        f"- {_fmt_date(update.created_at)}: "
        f"{_fmt_number(update.previous_value)} -> {_fmt_number(update.new_value)} {unit}"
    ).rstrip()
    if update.notes:
        line += f" (notes: {update.notes})"
    return line


def extract_json_from_response(response_text: str) -> Any:
    """
    LLMレスポンスからJSONを取り出す

    構造化出力モードでもコードブロックで包まれて返ることがあるため除去する。

    Raises:
        ValueError: JSONとして解釈できない場合
    """
    text = response_text.strip()

    fence = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if fence:
        text = fence.group(1)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse JSON from response: {response_text[:200]}") from e


# ================================================================
# クライアント
# ================================================================

class AIAdvisoryClient:
    """
    外部補完APIを使ったアドバイス生成クライアント

    各呼び出しはステートレスで、1回だけ試行する。
    """

    def __init__(
        self,
        config: AdvisorConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: 接続設定（APIキー・URL・モデル・タイムアウト）
            transport: httpx のトランスポート（テストでのモック差し込み用）
        """
        self.config = config
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    # ------------------------------------------------------------
    # プロンプト組み立て
    # ------------------------------------------------------------

    def build_suggestion_prompt(
        self,
        goal: GoalSnapshot,
        recent_updates: Sequence[UpdateSnapshot],
        recent_actions: Sequence[ActionSnapshot],
        today: Optional[date] = None,
    ) -> str:
        today = today or today_utc()
        unit = goal.unit or ""

        lines = _goal_lines(goal)

        lines.append("")
        lines.append("Recent updates:")
        updates = list(recent_updates)[:SUGGEST_MAX_UPDATES]
        if updates:
            lines.extend(_update_line(u, unit) for u in updates)
        else:
            lines.append("- No progress updates yet")

        lines.append("")
        lines.append("Open actions:")
        open_actions = [
            a for a in recent_actions
            if _enum_value(a.status) != ActionStatus.DONE.value
        ][:SUGGEST_MAX_ACTIONS]
        if open_actions:
            for action in open_actions:
                effort = _enum_value(action.effort) if action.effort else "unsized"
                line = (
                    f"- {action.title} [status: {_enum_value(action.status)}, "
                    f"effort: {effort}, {due_bucket(action.due_date, today)}]"
                )
                if action.description:
                    line += f": {action.description}"
                lines.append(line)
        else:
            lines.append("- No open actions")

        lines.append("")
        lines.append("Suggest the next actions for this goal using the JSON schema.")
        return "\n".join(lines)

    def build_checkin_prompt(
        self,
        goal: GoalSnapshot,
        updates: Sequence[UpdateSnapshot],
        actions: Sequence[ActionSnapshot],
        today: Optional[date] = None,
    ) -> str:
        today = today or today_utc()
        unit = goal.unit or ""

        lines = _goal_lines(goal)
        lines.append("")

        updates = list(updates)
        if updates:
            latest = updates[0]
            delta = Decimal(str(latest.new_value)) - Decimal(str(latest.previous_value))
            sign = "+" if delta >= 0 else ""
            lines.append("Latest check-in:")
            lines.append(f"- Date: {_fmt_date(latest.created_at)}")
            lines.append(
                f"- Progress: {_fmt_number(latest.previous_value)} -> "
                f"{_fmt_number(latest.new_value)} {unit}".rstrip()
            )
            lines.append(f"- Change: {sign}{_fmt_number(delta)} {unit}".rstrip())
            lines.append(f"- Notes: {latest.notes or 'No notes provided'}")

            older = updates[1:1 + CHECKIN_MAX_OLDER_UPDATES]
            if older:
                lines.append("")
                lines.append("Earlier check-ins:")
                lines.extend(_update_line(u, unit) for u in older)
        else:
            lines.append("This is the first check-in for this goal; no progress has been logged yet.")

        lines.append("")
        counts = {status.value: 0 for status in ActionStatus}
        for action in actions:
            key = _enum_value(action.status)
            counts[key] = counts.get(key, 0) + 1
        lines.append(
            "Actions: "
            f"{counts[ActionStatus.TODO.value]} todo, "
            f"{counts[ActionStatus.IN_PROGRESS.value]} in progress, "
            f"{counts[ActionStatus.DONE.value]} done"
        )

        upcoming = sorted(
            (
                a for a in actions
                if _enum_value(a.status) != ActionStatus.DONE.value and a.due_date is not None
            ),
            key=lambda a: a.due_date,
        )[:CHECKIN_MAX_UPCOMING_ACTIONS]
        if upcoming:
            lines.append("Soonest open actions:")
            for action in upcoming:
                lines.append(
                    f"- {action.title} [{_enum_value(action.status)}] "
                    f"{_due_phrase(action.due_date, today)}"
                )

        lines.append("")
        lines.append("Summarize this check-in using the JSON schema.")
        return "\n".join(lines)

    # ------------------------------------------------------------
    # 公開API
    # ------------------------------------------------------------

    async def suggest_actions(
        self,
        goal: GoalSnapshot,
        recent_updates: Sequence[UpdateSnapshot],
        recent_actions: Sequence[ActionSnapshot],
        today: Optional[date] = None,
    ) -> List[ActionSuggestion]:
        """
        次のアクションを3〜5件提案する

        失敗時は fallback_action_suggestions() を返す。
        """
        if not self.is_configured:
            logger.warning("OpenRouter API key not configured, using fallback suggestions")
            return fallback_action_suggestions()

        try:
            prompt = self.build_suggestion_prompt(goal, recent_updates, recent_actions, today)
            content = await self._call_completion(
                SUGGEST_SYSTEM_PROMPT, prompt, ACTION_SUGGESTIONS_FORMAT
            )
            payload = self._parse(content, ActionSuggestionsPayload)
        except AdvisoryUnavailableError as e:
            logger.warning(
                "Action suggestions unavailable, using fallback",
                error_code=e.error_code,
                error=e.message,
            )
            return fallback_action_suggestions()
        except Exception as e:
            logger.error(
                "Unexpected error generating action suggestions, using fallback",
                exc_info=True,
                error=str(e),
            )
            return fallback_action_suggestions()

        logger.info("Generated action suggestions", count=len(payload.suggestions))
        return payload.suggestions

    async def summarize_checkin(
        self,
        goal: GoalSnapshot,
        updates: Sequence[UpdateSnapshot],
        actions: Sequence[ActionSnapshot],
        today: Optional[date] = None,
    ) -> CheckinSummary:
        """
        チェックインを要約する

        失敗時は fallback_checkin_summary() を返す（履歴の有無に関わらず同じ値）。
        """
        if not self.is_configured:
            logger.warning("OpenRouter API key not configured, using fallback summary")
            return fallback_checkin_summary()

        try:
            prompt = self.build_checkin_prompt(goal, updates, actions, today)
            content = await self._call_completion(
                CHECKIN_SYSTEM_PROMPT, prompt, CHECKIN_SUMMARY_FORMAT
            )
            summary = self._parse(content, CheckinSummary)
        except AdvisoryUnavailableError as e:
            logger.warning(
                "Check-in summary unavailable, using fallback",
                error_code=e.error_code,
                error=e.message,
            )
            return fallback_checkin_summary()
        except Exception as e:
            logger.error(
                "Unexpected error generating check-in summary, using fallback",
                exc_info=True,
                error=str(e),
            )
            return fallback_checkin_summary()

        logger.info("Generated check-in summary", risk_tag=summary.risk_tag.value)
        return summary

    # ------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------

    def _parse(self, content: str, model: type) -> Any:
        """応答テキストをスキーマ検証つきで解析"""
        try:
            data = extract_json_from_response(content)
            return model.model_validate(data)
        except SchemaValidationError as e:
            raise AdvisoryUnavailableError(
                message=f"Response does not match schema: {e.error_count()} error(s)",
                model=self.config.model,
            )
        except ValueError as e:
            raise AdvisoryUnavailableError(
                message=str(e),
                model=self.config.model,
            )

    async def _call_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        補完APIを1回呼び出し、生成テキストを返す

        Raises:
            AdvisoryUnavailableError: キー未設定・HTTPエラー・タイムアウト・空応答
        """
        if not self.config.api_key:
            raise AdvisoryUnavailableError(
                message="OpenRouter API key is not set",
                model=self.config.model,
            )

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.config.title,
        }
        if self.config.referer:
            headers["HTTP-Referer"] = self.config.referer

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if response_format:
            payload["response_format"] = response_format

        start = time.monotonic()
        status_code: Optional[int] = None
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.config.api_url,
                    headers=headers,
                    json=payload,
                )
                status_code = response.status_code
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException as e:
            raise AdvisoryUnavailableError(
                message=f"Timed out calling completion endpoint: {e!r}",
                model=self.config.model,
            )
        except httpx.HTTPError as e:
            raise AdvisoryUnavailableError(
                message=f"HTTP error calling completion endpoint: {str(e)}",
                model=self.config.model,
            )
        except ValueError as e:
            raise AdvisoryUnavailableError(
                message=f"Completion endpoint returned non-JSON body: {str(e)}",
                model=self.config.model,
            )
        finally:
            log_external_api_call(
                logger,
                service="openrouter",
                method="POST",
                endpoint=self.config.api_url,
                status_code=status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                model=self.config.model,
            )

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if not content or not isinstance(content, str):
            raise AdvisoryUnavailableError(
                message="No content received from completion endpoint",
                model=self.config.model,
            )

        return content
