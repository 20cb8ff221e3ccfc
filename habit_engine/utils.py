import json
import os
import re
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

from habit_engine.logger import get_logger

# Prompt 模板目录
PROMPTS_DIR = Path(__file__).parent.parent / "config" / "prompts"

logger = get_logger("utils")

DateLike = Union[str, date, datetime]


def load_prompt(name: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    加载 Prompt 模板文件，支持子目录和变量注入。

    Args:
        name: Prompt 名称，支持子目录 (如 "daily_actions/system")
        variables: 变量字典，用于替换 {var} 占位符

    Returns:
        渲染后的 Prompt 字符串，模板不存在时返回空串

    Example:
        load_prompt("daily_actions/user", {"visions": "..."})
    """
    prompt_path = PROMPTS_DIR / f"{name.replace('/', os.sep)}.md"

    if not prompt_path.exists():
        logger.warning("Prompt '%s' not found at %s", name, prompt_path)
        return ""

    template = prompt_path.read_text(encoding="utf-8")

    if variables:
        for key, value in variables.items():
            template = template.replace(f"{{{key}}}", str(value))

    return template


def _strip_code_fence(content: str) -> str:
    if "```json" in content:
        return content.split("```json")[1].split("```")[0]
    if "```" in content:
        parts = content.split("```")
        if len(parts) >= 3:
            return parts[1]
    return content


def extract_json_payload(content: str) -> Optional[Any]:
    """
    从模型返回的文本中提取第一个合法的 JSON 数组或对象。

    模型经常在 JSON 外包裹 Markdown 代码块或附加解释文字，
    此函数从每个 '[' / '{' 起尝试解码，返回第一个成功的结果。

    Returns:
        解析后的 list 或 dict，找不到时返回 None

    示例:
        >>> extract_json_payload('Sure! ```json\\n[{"a": 1}]\\n```')
        [{'a': 1}]
    """
    if not content:
        return None

    text = _strip_code_fence(content).strip()
    decoder = json.JSONDecoder()
    for match in re.finditer(r"[\[{]", text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, (list, dict)):
            return value
    return None


def to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def previous_calendar_date(value: DateLike) -> str:
    return (to_date(value) - timedelta(days=1)).isoformat()


def days_between(earlier: DateLike, later: DateLike) -> int:
    """Whole calendar days from `earlier` to `later` (negative if reversed)."""
    return (to_date(later) - to_date(earlier)).days


def is_consecutive_day(earlier: DateLike, later: DateLike) -> bool:
    return days_between(earlier, later) == 1


def generate_id(prefix: str = "") -> str:
    short = uuid.uuid4().hex[:12]
    return f"{prefix}_{short}" if prefix else short


def generate_action_id(vision_id: Optional[str]) -> str:
    return generate_id(f"action_{vision_id or 'general'}")


def format_duration(seconds: int) -> str:
    """Render seconds as '1h 5m', '4m 10s' or '9s'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def minutes_to_hours_minutes(minutes: int) -> str:
    hours, rest = divmod(max(0, int(minutes)), 60)
    if hours and rest:
        return f"{hours}h {rest}m"
    if hours:
        return f"{hours}h"
    return f"{rest}m"


def parse_time_input(text: str) -> int:
    """
    Parse '2h 30m', '90m' or '1.5h' into whole minutes.

    Unrecognised input yields 0.
    """
    total = 0.0
    hour_match = re.search(r"(\d*\.?\d+)\s*h", text or "")
    minute_match = re.search(r"(\d+)\s*m", text or "")
    if hour_match:
        total += float(hour_match.group(1)) * 60
    if minute_match:
        total += int(minute_match.group(1))
    return int(total)
