"""
Calendar collaborator backed by lunar-python.

Resolves a birth moment to the four sexagenary pillars, date labels,
almanac day stars and the DaYun / LiuNian / LiuYue luck cycle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Tuple

from lunar_python import Solar

from bazi_utils import PillarKind
from errors import InvalidDateInput
from models import AnnualPeriod, DecadePeriod, Gender, MonthlyPeriod

logger = logging.getLogger(__name__)

# PillarKind -> (天干取值, 地支取值)
_PILLAR_ACCESSORS = {
    PillarKind.YEAR: (lambda ec: ec.getYearGan(), lambda ec: ec.getYearZhi()),
    PillarKind.MONTH: (lambda ec: ec.getMonthGan(), lambda ec: ec.getMonthZhi()),
    PillarKind.DAY: (lambda ec: ec.getDayGan(), lambda ec: ec.getDayZhi()),
    PillarKind.HOUR: (lambda ec: ec.getTimeGan(), lambda ec: ec.getTimeZhi()),
}


@dataclass(frozen=True)
class ResolvedMoment:
    """A birth moment resolved by lunar-python."""

    birth: datetime
    pillars: Tuple[Tuple[str, str], ...]
    solar_date_label: str
    lunar_date_label: str
    lunar: Any
    eight_char: Any

    def pillar(self, kind: PillarKind) -> Tuple[str, str]:
        return self.pillars[kind.value]


class LunarCalendar:
    """
    Thin wrapper around lunar-python.

    :param merge_almanac_stars: 是否把黄历当日吉神/凶煞并入日柱神煞
    """

    def __init__(self, merge_almanac_stars: bool = True):
        self.merge_almanac_stars = merge_almanac_stars

    def resolve(self, birth: datetime) -> ResolvedMoment:
        try:
            solar = Solar.fromYmdHms(birth.year, birth.month, birth.day, birth.hour, birth.minute, 0)
            lunar = solar.getLunar()
            eight_char = lunar.getEightChar()
            pillars = tuple(
                (stem_of(eight_char), branch_of(eight_char))
                for stem_of, branch_of in (_PILLAR_ACCESSORS[kind] for kind in PillarKind)
            )
            solar_label = solar.toFullString()
            lunar_label = lunar.toString()
        except Exception as e:
            raise InvalidDateInput(f"历法无法解析出生时间: {e}", raw_input=birth) from e

        return ResolvedMoment(
            birth=birth,
            pillars=pillars,
            solar_date_label=solar_label,
            lunar_date_label=lunar_label,
            lunar=lunar,
            eight_char=eight_char,
        )

    def year_based_stars(self, moment: ResolvedMoment) -> Tuple[str, ...]:
        # lunar-python 没有按年柱给出的神煞
        return ()

    def day_based_stars(self, moment: ResolvedMoment) -> Tuple[str, ...]:
        """黄历当日吉神与凶煞"""
        if not self.merge_almanac_stars:
            return ()
        return tuple(moment.lunar.getDayJiShen()) + tuple(moment.lunar.getDayXiongSha())

    def luck_cycle(self, moment: ResolvedMoment, gender: Gender) -> Tuple[DecadePeriod, ...]:
        """
        Calculate DaYun / LiuNian / LiuYue cycles.
        起运前的童限 (无干支) 不计入大运。
        """
        yun = moment.eight_char.getYun(gender.flag, 1)
        decades = []
        for dy in yun.getDaYun():
            gan_zhi = dy.getGanZhi()
            if not gan_zhi:
                continue
            start_year = dy.getStartYear()
            start_age = dy.getStartAge()
            annual = tuple(
                AnnualPeriod(
                    year=ln.getYear(),
                    age=ln.getAge(),
                    gan_zhi=ln.getGanZhi(),
                    monthly_periods=tuple(
                        MonthlyPeriod(month_label=ly.getMonthInChinese() + "月", gan_zhi=ly.getGanZhi())
                        for ly in ln.getLiuYue()
                    ),
                )
                for ln in dy.getLiuNian()
            )
            decades.append(DecadePeriod(
                start_year=start_year,
                end_year=start_year + 9,
                start_age=start_age,
                end_age=start_age + 9,
                gan_zhi=gan_zhi,
                annual_periods=annual,
            ))
        logger.debug("luck cycle: %d decades from %s", len(decades), moment.birth)
        return tuple(decades)
