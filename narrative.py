"""
Narrative layer: builds prompts from a chart and streams LLM interpretation.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from config import AIConfig
from llm_client import client_for
from models import EightCharChart, FocusSelector
from text_utils import SUGGESTION_MARKER, format_chart_to_text

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_INSTRUCTION = f"""你是一个专业的八字大师。请以神秘且专业的口吻为缘主解盘。

# Response Rules (回复规则)
1. 直接给出分析，使用 Markdown 格式，不要包含与命理无关的废话。
2. 只给出概率最大的结论，不要穷举所有可能。
3. 结尾另起一行写"{SUGGESTION_MARKER}"，其后列出不超过 3 个缘主可能追问的问题，每行一个，以"- "开头。
"""

UNCONFIGURED_NOTICE = "⚠️ API Key 未设置或无效。请在 .env 文件中设置。"
UNSAFE_NOTICE = "🔮 天机不可泄露，请勿试探。请提出与命理相关的正当问题。"


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" / "assistant"
    content: str
    is_professional: bool = False


def is_safe_input(user_text: str) -> bool:
    """
    检查用户输入是否安全，防止 Prompt 注入攻击。
    在发送给 LLM API 之前进行服务器端拦截。
    """
    blocklist = [
        # English attack patterns
        "system instruction", "system prompt", "ignore all instructions",
        "repeat the text above", "your prompt", "ignore previous",
        "disregard all", "forget everything", "override", "bypass",
        # Chinese attack patterns
        "系统指令", "提示词", "你的设定", "忽略之前的", "重复上面的",
        "忽略以上", "无视规则", "跳过限制", "绕过", "告诉我你的",
        "输出你的", "显示你的", "打印你的"
    ]

    lower_text = user_text.lower()
    for word in blocklist:
        if word.lower() in lower_text:
            return False
    return True


def chart_age(chart: EightCharChart, today: Optional[datetime] = None) -> Optional[int]:
    if chart.birth_moment is None:
        return None
    today = today or datetime.now()
    return today.year - chart.birth_moment.year


def build_analysis_prompt(chart: EightCharChart, age: Optional[int] = None, focus: Optional[FocusSelector] = None) -> str:
    """First-pass deep reading of the chart."""
    if age is None:
        age = chart_age(chart)
    age_text = f"，{age}岁" if age is not None else ""
    pillars = " ".join(p.gan_zhi for p in chart.pillars)
    return f"""缘主：{chart.name}（{chart.gender.label}）{age_text}。
排盘：{pillars}。

{format_chart_to_text(chart, focus)}

请根据以上信息进行深度批命。请直接给出分析，使用 Markdown 格式。"""


def build_chat_system_prompt(chart_text: str, context: str, professional: bool = False) -> str:
    tone = "专业且详尽，包含用神忌神分析" if professional else "通俗易懂，直白干练"
    return f"""你是一位渊博的命理大师。当前背景：{context}

命盘数据：
{chart_text}

请以{tone}的口吻回答。必须对应缘主的年龄特点。
结尾另起一行写"{SUGGESTION_MARKER}"，其后列出不超过 3 个引导性的追问，每行一个，以"- "开头。"""


def build_chat_prompt(messages: List[ChatMessage]) -> str:
    """Flatten the conversation into 大师/缘主 transcript lines."""
    return "\n".join(
        f"{'大师' if m.role == 'assistant' else '缘主'}: {m.content}" for m in messages
    )


def _stream_completion(config: AIConfig, system_prompt: str, user_message: str, client=None) -> Iterator[str]:
    if not config.is_configured:
        yield UNCONFIGURED_NOTICE
        return

    client = client or client_for(config)
    start_time = time.monotonic()
    first_chunk_time = None
    try:
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=config.temperature,
            stream=True,
        )
        for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                if first_chunk_time is None:
                    first_chunk_time = time.monotonic()
                yield chunk.choices[0].delta.content
        logger.debug(
            "[PERF] stream provider=%s model=%s first_chunk_ms=%s total_ms=%d",
            config.provider,
            config.model,
            int((first_chunk_time - start_time) * 1000) if first_chunk_time else "NA",
            int((time.monotonic() - start_time) * 1000),
        )
    except Exception as e:
        logger.error("LLM call failed provider=%s model=%s: %s", config.provider, config.model, e)
        yield f"⚠️ 调用 LLM 时出错: {e}"


def analyze_chart(chart: EightCharChart, config: AIConfig, focus: Optional[FocusSelector] = None, client=None) -> Iterator[str]:
    """
    Stream the first deep reading of a chart.

    Yields:
        Chunks of the interpretation as they stream in.
    """
    yield from _stream_completion(config, ANALYSIS_SYSTEM_INSTRUCTION, build_analysis_prompt(chart, focus=focus), client)


def chat_with_context(
    messages: List[ChatMessage],
    chart_text: str,
    context: str,
    config: AIConfig,
    client=None,
) -> Iterator[str]:
    """
    Continue the conversation about a chart. The tone follows the
    is_professional flag of the last user message.
    """
    if not messages:
        return
    last = messages[-1]
    if not is_safe_input(last.content):
        yield UNSAFE_NOTICE
        return
    system_prompt = build_chat_system_prompt(chart_text, context, professional=last.is_professional)
    yield from _stream_completion(config, system_prompt, build_chat_prompt(messages), client)
