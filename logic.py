"""
Fortune Teller Logic Module.
Assembles a full Bazi chart: pillars, hidden stems, ten gods, shen sha and luck cycle.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time

from bazi_utils import DAY_MASTER, BaziBasicCalculator, PillarKind
from errors import InvalidDateInput
from lunar_calendar import LunarCalendar, ResolvedMoment
from models import EightCharChart, Gender, Pillar
from shensha import StarContext, derive_stars

logger = logging.getLogger(__name__)

# 无法解析出生时间时使用的默认值
DEFAULT_BIRTH_DATE = "1990-01-01"
DEFAULT_BIRTH_TIME = "12:00"

# lunar-python 可靠支持的年份范围
MIN_YEAR = 1900
MAX_YEAR = 2100

_BASIC_CALC = BaziBasicCalculator()
_DEFAULT_CALENDAR = LunarCalendar()


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateInput("出生日期为空或类型错误", raw_input=value)
    text = value.strip()
    for fmt in ("%Y-%m-%d", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise InvalidDateInput(f"无法解析出生日期: {text}", raw_input=value)


def _parse_time(value) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateInput("出生时间为空或类型错误", raw_input=value)
    text = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise InvalidDateInput(f"无法解析出生时间: {text}", raw_input=value)


def parse_birth_input(birth_date, birth_time) -> datetime:
    """
    Parse birth date ("YYYY-MM-DD" or date) and time ("HH:MM" or time).

    Raises:
        InvalidDateInput: malformed input or a year outside MIN_YEAR..MAX_YEAR.
    """
    d = _parse_date(birth_date)
    t = _parse_time(birth_time)
    if not MIN_YEAR <= d.year <= MAX_YEAR:
        raise InvalidDateInput(f"出生年份超出支持范围 ({MIN_YEAR}-{MAX_YEAR}): {d.year}", raw_input=birth_date)
    return datetime(d.year, d.month, d.day, t.hour, t.minute)


def build_pillar(kind: PillarKind, context: StarContext) -> Pillar:
    """Build one immutable pillar record from the resolved chart context."""
    stem = context.stems[kind.value]
    branch = context.branches[kind.value]
    day_master = context.day_stem

    if kind is PillarKind.DAY:
        main_star = DAY_MASTER
    else:
        main_star = _BASIC_CALC.get_ten_god(day_master, stem)

    return Pillar(
        kind=kind,
        stem=stem,
        branch=branch,
        na_yin=_BASIC_CALC.get_nayin(stem, branch),
        hidden_stems=_BASIC_CALC.get_hidden_stems(branch),
        hidden_stem_stars=_BASIC_CALC.get_hidden_ten_gods(day_master, branch),
        main_star=main_star,
        life_stage=_BASIC_CALC.get_life_stage(day_master, branch),
        self_seated=_BASIC_CALC.get_life_stage(stem, branch),
        void_branches=_BASIC_CALC.get_kong_wang(stem, branch),
        shen_sha=derive_stars(context, kind),
    )


def build_star_context(moment: ResolvedMoment, calendar: LunarCalendar) -> StarContext:
    day_stem, day_branch = moment.pillar(PillarKind.DAY)
    return StarContext.from_pillars(
        moment.pillars,
        day_void=_BASIC_CALC.get_kong_wang(day_stem, day_branch),
        year_stars=calendar.year_based_stars(moment),
        day_stars=calendar.day_based_stars(moment),
    )


def _resolve_with_fallback(birth_date, birth_time, calendar: LunarCalendar, strict: bool) -> ResolvedMoment:
    try:
        return calendar.resolve(parse_birth_input(birth_date, birth_time))
    except InvalidDateInput as e:
        if strict:
            raise
        logger.warning(
            "Invalid birth input (date=%r, time=%r): %s; falling back to %s %s",
            birth_date, birth_time, e, DEFAULT_BIRTH_DATE, DEFAULT_BIRTH_TIME,
        )
    return calendar.resolve(parse_birth_input(DEFAULT_BIRTH_DATE, DEFAULT_BIRTH_TIME))


def assemble_chart(
    name: str,
    birth_date,
    birth_time,
    gender,
    calendar: LunarCalendar = None,
    strict: bool = False,
) -> EightCharChart:
    """
    Calculate the Bazi chart (Four Pillars of Destiny) for a birth moment.

    Args:
        name: 缘主姓名
        birth_date: "YYYY-MM-DD" 或 date
        birth_time: "HH:MM" 或 time
        gender: Gender / "Male" / "男" / 1 ... 只影响大运顺逆
        calendar: 历法实现，默认 lunar-python
        strict: True 时无效出生时间直接抛出 InvalidDateInput，否则回退到默认时间并记录警告

    Returns:
        EightCharChart
    """
    calendar = calendar or _DEFAULT_CALENDAR
    gender = Gender.parse(gender)
    moment = _resolve_with_fallback(birth_date, birth_time, calendar, strict)
    context = build_star_context(moment, calendar)

    year, month, day, hour = (build_pillar(kind, context) for kind in PillarKind)
    return EightCharChart(
        name=name,
        gender=gender,
        year=year,
        month=month,
        day=day,
        hour=hour,
        solar_date_label=moment.solar_date_label,
        lunar_date_label=moment.lunar_date_label,
        luck_cycle=calendar.luck_cycle(moment, gender),
        birth_moment=moment.birth,
    )
