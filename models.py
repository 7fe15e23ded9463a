"""
Data models for an assembled Bazi chart.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from bazi_utils import PillarKind


class Gender(Enum):
    MALE = "Male"
    FEMALE = "Female"

    @property
    def flag(self) -> int:
        """lunar-python 起运参数：1 男，0 女"""
        return 1 if self is Gender.MALE else 0

    @property
    def label(self) -> str:
        return "男" if self is Gender.MALE else "女"

    @classmethod
    def parse(cls, value) -> "Gender":
        if isinstance(value, Gender):
            return value
        if value in (1, "1", "男", "male", "Male", "MALE", "M", "m"):
            return cls.MALE
        if value in (0, "0", "女", "female", "Female", "FEMALE", "F", "f"):
            return cls.FEMALE
        raise ValueError(f"无法识别的性别: {value!r}")


@dataclass(frozen=True)
class Pillar:
    """A single pillar (Gan+Zhi) with everything derived from it."""

    kind: PillarKind
    stem: str
    branch: str
    na_yin: str
    hidden_stems: Tuple[str, ...]
    hidden_stem_stars: Tuple[str, ...]
    main_star: str
    life_stage: str  # 星运：日主临此支
    self_seated: str  # 自坐：本柱天干临本柱地支
    void_branches: Tuple[str, ...]
    shen_sha: Tuple[str, ...] = ()

    @property
    def gan_zhi(self) -> str:
        return self.stem + self.branch

    @property
    def label(self) -> str:
        return self.kind.label


@dataclass(frozen=True)
class MonthlyPeriod:
    month_label: str
    gan_zhi: str


@dataclass(frozen=True)
class AnnualPeriod:
    year: int
    age: int
    gan_zhi: str
    monthly_periods: Tuple[MonthlyPeriod, ...] = ()


@dataclass(frozen=True)
class DecadePeriod:
    start_year: int
    end_year: int
    start_age: int
    end_age: int
    gan_zhi: str
    annual_periods: Tuple[AnnualPeriod, ...] = ()


@dataclass(frozen=True)
class FocusSelector:
    """Selected decade / year / month for focused narration, by index into a chart."""

    decade_index: int
    annual_index: Optional[int] = None
    month_index: Optional[int] = None


@dataclass(frozen=True)
class EightCharChart:
    name: str
    gender: Gender
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Pillar
    solar_date_label: str
    lunar_date_label: str
    luck_cycle: Tuple[DecadePeriod, ...] = field(default_factory=tuple)
    birth_moment: Optional[datetime] = None

    @property
    def pillars(self) -> Tuple[Pillar, Pillar, Pillar, Pillar]:
        return (self.year, self.month, self.day, self.hour)

    def pillar(self, kind: PillarKind) -> Pillar:
        return self.pillars[kind.value]

    @property
    def day_master(self) -> str:
        return self.day.stem
