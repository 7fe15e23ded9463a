"""
Text helpers shared by the prompt layer: chart rendering and reply post-processing.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from bazi_utils import PillarKind
from models import EightCharChart, FocusSelector, Pillar

logger = logging.getLogger(__name__)

STAR_DELIMITER = "、"
NONE_SENTINEL = "无"
FOCUS_HEADER = "【当前焦点】"
SUGGESTION_MARKER = "【猜你想问】"
MAX_SUGGESTIONS = 3

_LABEL_TO_KIND = {kind.label: kind for kind in PillarKind}
_PILLAR_GAN_ZHI_RE = re.compile(r'【(年柱|月柱|日柱|时柱)】\s*\n\s*干支：(\S)(\S)')
_SUGGESTION_BULLET_RE = re.compile(r'^\s*(?:[-*•·]|\d+[.、)])\s*')


def format_pillar(pillar: Pillar) -> str:
    """Render one pillar as a fixed-structure text block."""
    hidden = STAR_DELIMITER.join(
        f"{stem}({star})" for stem, star in zip(pillar.hidden_stems, pillar.hidden_stem_stars)
    )
    stars = STAR_DELIMITER.join(pillar.shen_sha) if pillar.shen_sha else NONE_SENTINEL
    lines = [
        f"【{pillar.label}】",
        f"干支：{pillar.gan_zhi}",
        f"主星：{pillar.main_star}",
        f"纳音：{pillar.na_yin or NONE_SENTINEL}",
        f"藏干：{hidden or NONE_SENTINEL}",
        f"神煞：{stars}",
        f"星运：{pillar.life_stage}",
        f"自坐：{pillar.self_seated}",
        f"空亡：{''.join(pillar.void_branches)}",
    ]
    return "\n".join(lines)


def format_focus(chart: EightCharChart, focus: FocusSelector) -> str:
    """
    Render the selected decade / year / month.
    Out-of-range indices are skipped (and logged) rather than raising.
    """
    lines = [FOCUS_HEADER]
    if not 0 <= focus.decade_index < len(chart.luck_cycle):
        logger.warning("Focus decade index %s out of range (%d decades)", focus.decade_index, len(chart.luck_cycle))
        return ""

    decade = chart.luck_cycle[focus.decade_index]
    lines.append(
        f"大运：{decade.gan_zhi}（{decade.start_year}-{decade.end_year}年，"
        f"{decade.start_age}-{decade.end_age}岁）"
    )

    if focus.annual_index is not None:
        if 0 <= focus.annual_index < len(decade.annual_periods):
            annual = decade.annual_periods[focus.annual_index]
            lines.append(f"流年：{annual.year}年 {annual.gan_zhi}（{annual.age}岁）")
            if focus.month_index is not None:
                if 0 <= focus.month_index < len(annual.monthly_periods):
                    month = annual.monthly_periods[focus.month_index]
                    lines.append(f"流月：{month.month_label} {month.gan_zhi}")
                else:
                    logger.warning("Focus month index %s out of range", focus.month_index)
        else:
            logger.warning("Focus annual index %s out of range", focus.annual_index)

    return "\n".join(lines)


def format_chart_to_text(chart: EightCharChart, focus: Optional[FocusSelector] = None) -> str:
    """
    Render a chart to the plain-text block consumed by the LLM prompts.

    Layout: header (name, gender, solar/lunar dates), one block per pillar,
    then an optional 【当前焦点】 block.
    """
    header = "\n".join([
        f"缘主：{chart.name}（{chart.gender.label}）",
        f"公历：{chart.solar_date_label}",
        f"农历：{chart.lunar_date_label}",
    ])
    blocks = [header] + [format_pillar(p) for p in chart.pillars]
    if focus is not None:
        focus_text = format_focus(chart, focus)
        if focus_text:
            blocks.append(focus_text)
    return "\n\n".join(blocks)


def extract_pillars_from_text(text: str) -> Dict[PillarKind, Tuple[str, str]]:
    """Recover the (stem, branch) pairs from text produced by format_chart_to_text."""
    result = {}
    for label, stem, branch in _PILLAR_GAN_ZHI_RE.findall(text or ""):
        result.setdefault(_LABEL_TO_KIND[label], (stem, branch))
    return result


def extract_suggestions(text: str) -> Tuple[str, List[str]]:
    """
    Split the trailing follow-up question block from an LLM reply.

    :return: (content without the block, up to MAX_SUGGESTIONS questions)
    """
    if not text or SUGGESTION_MARKER not in text:
        return (text or "").strip(), []

    content, _, tail = text.rpartition(SUGGESTION_MARKER)
    suggestions = []
    for line in tail.splitlines():
        question = _SUGGESTION_BULLET_RE.sub('', line).strip()
        if question:
            suggestions.append(question)
    return content.strip(), suggestions[:MAX_SUGGESTIONS]
