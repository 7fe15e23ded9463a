from dataclasses import replace

import pytest

from bazi_utils import PillarKind
from logic import assemble_chart
from lunar_calendar import LunarCalendar
from models import FocusSelector
from text_utils import (
    FOCUS_HEADER,
    SUGGESTION_MARKER,
    extract_pillars_from_text,
    extract_suggestions,
    format_chart_to_text,
    format_pillar,
)


@pytest.fixture(scope="module")
def chart():
    return assemble_chart("Test", "1990-01-01", "12:00", "Male", calendar=LunarCalendar(merge_almanac_stars=False))


def test_pillar_block_layout(chart):
    lines = format_pillar(chart.year).splitlines()
    assert lines[0] == "【年柱】"
    assert lines[1] == "干支：己巳"
    assert lines[2] == "主星：伤官"
    assert lines[3].startswith("纳音：")
    assert lines[4].startswith("藏干：丙(比肩)")
    assert lines[5].startswith("神煞：")
    assert lines[6].startswith("星运：")


def test_empty_stars_render_none_sentinel(chart):
    bare = replace(chart.hour, shen_sha=())
    assert "神煞：无" in format_pillar(bare)


def test_round_trip_recovers_pillars(chart):
    text = format_chart_to_text(chart)
    recovered = extract_pillars_from_text(text)
    assert recovered == {p.kind: (p.stem, p.branch) for p in chart.pillars}
    assert recovered[PillarKind.DAY] == ("丙", "寅")


def test_header_and_pillar_order(chart):
    text = format_chart_to_text(chart)
    assert text.startswith("缘主：Test（男）")
    positions = [text.index(f"【{kind.label}】") for kind in PillarKind]
    assert positions == sorted(positions)
    assert FOCUS_HEADER not in text


def test_focus_block(chart):
    decade = chart.luck_cycle[1]
    annual = decade.annual_periods[2]
    month = annual.monthly_periods[0]
    text = format_chart_to_text(chart, FocusSelector(1, 2, 0))
    focus = text.split(FOCUS_HEADER, 1)[1]
    assert f"大运：{decade.gan_zhi}" in focus
    assert f"流年：{annual.year}年 {annual.gan_zhi}" in focus
    assert f"流月：{month.month_label} {month.gan_zhi}" in focus


def test_focus_out_of_range_is_skipped(chart):
    text = format_chart_to_text(chart, FocusSelector(99))
    assert FOCUS_HEADER not in text
    text = format_chart_to_text(chart, FocusSelector(0, 99))
    assert "大运：" in text and "流年：" not in text


def test_extract_suggestions():
    reply = f"你的命局清奇。\n\n{SUGGESTION_MARKER}\n- 我今年的事业运如何？\n- 何时适合结婚？\n\n1. 财运怎样？\n- 多余的问题"
    content, suggestions = extract_suggestions(reply)
    assert content == "你的命局清奇。"
    assert suggestions == ["我今年的事业运如何？", "何时适合结婚？", "财运怎样？"]


def test_extract_suggestions_without_marker():
    assert extract_suggestions("  只有正文  ") == ("只有正文", [])
    assert extract_suggestions("") == ("", [])
