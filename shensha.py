"""
神煞计算引擎 - 按日干、日支、年支、月支及整柱干支查表，逐柱推导神煞。

每条规则都是一次纯查表：参照键 -> 命中的地支/天干集合。目标柱的干支落在集合中即记入该神煞。
规则之间互不排斥，结果按首次命中顺序去重。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from bazi_utils import BRANCHES, PillarKind, branch_offset, validate_branch, validate_stem
from errors import MalformedEnumInput

EMPTINESS = "空亡"


def _triad_table(targets: Iterable[str]) -> dict:
    """三合局 (申子辰/寅午戌/巳酉丑/亥卯未) 各自对应一个目标地支"""
    table = {}
    for group, target in zip(_TRIADS, targets):
        for branch in group:
            table[branch] = target
    return table


def _season_table(targets: Iterable[str]) -> dict:
    """三会方 (亥子丑/寅卯辰/巳午未/申酉戌) 各自对应一个目标地支"""
    table = {}
    for group, target in zip(_SEASONS, targets):
        for branch in group:
            table[branch] = target
    return table


_TRIADS = (("申", "子", "辰"), ("寅", "午", "戌"), ("巳", "酉", "丑"), ("亥", "卯", "未"))
_SEASONS = (("亥", "子", "丑"), ("寅", "卯", "辰"), ("巳", "午", "未"), ("申", "酉", "戌"))


class ShenShaCalculator:
    """神煞计算器"""

    # ================== 1. 以日干查地支 ==================
    TIAN_YI = {
        "甲": ("丑", "未"), "戊": ("丑", "未"), "庚": ("丑", "未"),
        "乙": ("子", "申"), "己": ("子", "申"),
        "丙": ("亥", "酉"), "丁": ("亥", "酉"),
        "壬": ("卯", "巳"), "癸": ("卯", "巳"),
        "辛": ("午", "寅"),
    }
    WEN_CHANG = {
        "甲": ("巳",), "乙": ("午",), "丙": ("申",), "丁": ("酉",), "戊": ("申",),
        "己": ("酉",), "庚": ("亥",), "辛": ("子",), "壬": ("寅",), "癸": ("卯",),
    }
    TAI_JI = {
        "甲": ("子", "午"), "乙": ("子", "午"),
        "丙": ("卯", "酉"), "丁": ("卯", "酉"),
        "戊": ("辰", "戌", "丑", "未"), "己": ("辰", "戌", "丑", "未"),
        "庚": ("寅", "亥"), "辛": ("寅", "亥"),
        "壬": ("巳", "申"), "癸": ("巳", "申"),
    }
    LU_SHEN = {
        "甲": ("寅",), "乙": ("卯",), "丙": ("午",), "丁": ("午",), "戊": ("巳",),
        "己": ("午",), "庚": ("申",), "辛": ("酉",), "壬": ("亥",), "癸": ("子",),
    }
    # 阴干无羊刃
    YANG_REN = {
        "甲": ("卯",), "丙": ("午",), "戊": ("午",), "庚": ("酉",), "壬": ("子",),
    }
    JIN_YU = {
        "甲": ("辰",), "乙": ("巳",), "丙": ("未",), "丁": ("申",), "戊": ("未",),
        "己": ("申",), "庚": ("戌",), "辛": ("亥",), "壬": ("丑",), "癸": ("寅",),
    }
    HONG_YAN = {
        "甲": ("午",), "乙": ("申",), "丙": ("寅",), "丁": ("未",), "戊": ("辰",),
        "己": ("辰",), "庚": ("戌",), "辛": ("酉",), "壬": ("子",), "癸": ("申",),
    }
    LIU_XIA = {
        "甲": ("酉",), "乙": ("戌",), "丙": ("未",), "丁": ("巳",), "戊": ("午",),
        "己": ("未",), "庚": ("辰",), "辛": ("卯",), "壬": ("亥",), "癸": ("寅",),
    }
    FU_XING = {
        "甲": ("子", "戌"), "乙": ("亥", "酉"), "丙": ("申", "寅"), "丁": ("未", "丑"),
        "戊": ("午", "申"), "己": ("巳", "酉"), "庚": ("午", "寅"), "辛": ("巳", "亥"),
        "壬": ("辰", "子"), "癸": ("卯", "丑"),
    }
    GUO_YIN = {
        "甲": ("戌",), "乙": ("亥",), "丙": ("丑",), "丁": ("寅",), "戊": ("丑",),
        "己": ("寅",), "庚": ("辰",), "辛": ("巳",), "壬": ("未",), "癸": ("申",),
    }

    DAY_STEM_RULES = (
        ("天乙贵人", TIAN_YI),
        ("文昌贵人", WEN_CHANG),
        ("太极贵人", TAI_JI),
        ("禄神", LU_SHEN),
        ("羊刃", YANG_REN),
        ("金舆", JIN_YU),
        ("红艳煞", HONG_YAN),
        ("流霞", LIU_XIA),
        ("福星贵人", FU_XING),
        ("国印贵人", GUO_YIN),
    )

    # ================== 2. 以月支查 ==================
    # 天德：部分月份落天干，部分落地支
    TIAN_DE = {
        "寅": "丁", "卯": "申", "辰": "壬", "巳": "辛", "午": "亥", "未": "甲",
        "申": "癸", "酉": "寅", "戌": "丙", "亥": "乙", "子": "巳", "丑": "庚",
    }
    YUE_DE = {
        "寅": "丙", "午": "丙", "戌": "丙",
        "申": "壬", "子": "壬", "辰": "壬",
        "亥": "甲", "卯": "甲", "未": "甲",
        "巳": "庚", "酉": "庚", "丑": "庚",
    }

    # ================== 3. 以日支或年支查 (三合局) ==================
    TRIAD_RULES = (
        ("驿马", _triad_table(("寅", "申", "亥", "巳"))),
        ("咸池桃花", _triad_table(("酉", "卯", "午", "子"))),
        ("华盖", _triad_table(("辰", "戌", "丑", "未"))),
        ("劫煞", _triad_table(("巳", "亥", "寅", "申"))),
        ("亡神", _triad_table(("亥", "巳", "申", "寅"))),
        ("将星", _triad_table(("子", "午", "酉", "卯"))),
        ("灾煞", _triad_table(("午", "子", "卯", "酉"))),
    )

    # ================== 4. 以年支查 ==================
    GU_CHEN = _season_table(("寅", "巳", "申", "亥"))
    GUA_SU = _season_table(("戌", "丑", "辰", "未"))
    # 红鸾：子见卯逆行；天喜与红鸾相冲
    HONG_LUAN = {b: BRANCHES[(3 - i) % 12] for i, b in enumerate(BRANCHES)}
    TIAN_XI = {b: BRANCHES[(9 - i) % 12] for i, b in enumerate(BRANCHES)}

    # ================== 5. 整柱干支 ==================
    PILLAR_SETS = (
        ("魁罡", frozenset({"戊戌", "庚戌", "庚辰", "壬辰"})),
        ("孤鸾煞", frozenset({"乙巳", "丁巳", "辛亥", "甲寅", "戊申", "壬子", "丙午"})),
        ("阴阳煞", frozenset({"丙午", "丁未", "壬子", "癸丑"})),
        ("专禄", frozenset({"甲寅", "乙卯", "庚申", "辛酉"})),
        ("天乙伏马", frozenset({"丁巳", "丁亥", "癸巳", "癸亥"})),
    )
    # 只论日柱
    DAY_ONLY_SETS = (
        ("阴差阳错", frozenset({
            "丙子", "丁丑", "戊寅", "辛卯", "壬辰", "癸巳",
            "丙午", "丁未", "戊申", "辛酉", "壬戌", "癸亥",
        })),
        ("十恶大败", frozenset({
            "甲辰", "乙巳", "丙申", "丁亥", "戊戌", "己丑", "庚辰", "辛巳", "壬申", "癸亥",
        })),
    )
    # 金神只论时柱
    JIN_SHEN = frozenset({"乙丑", "己巳", "癸酉"})

    def derive(self, context: "StarContext", pillar_index: int) -> Tuple[str, ...]:
        """
        计算某一柱的神煞
        :param context: 四柱干支与日柱空亡
        :param pillar_index: 0 年柱, 1 月柱, 2 日柱, 3 时柱
        :return: 去重后的神煞名称，按首次命中顺序
        """
        kind = PillarKind.from_index(pillar_index)
        stem = context.stems[kind.value]
        branch = context.branches[kind.value]
        gan_zhi = stem + branch

        results = []

        def add(name):
            if name not in results:
                results.append(name)

        for name, table in self.DAY_STEM_RULES:
            if branch in table.get(context.day_stem, ()):
                add(name)

        tian_de = self.TIAN_DE[context.month_branch]
        if tian_de in (stem, branch):
            add("天德贵人")
        if self.YUE_DE[context.month_branch] == stem:
            add("月德贵人")
        if branch_offset(context.month_branch, -1) == branch:
            add("天医")

        for name, table in self.TRIAD_RULES:
            if branch in (table[context.day_branch], table[context.year_branch]):
                add(name)

        if self.GU_CHEN[context.year_branch] == branch:
            add("孤辰")
        if self.GUA_SU[context.year_branch] == branch:
            add("寡宿")
        if branch_offset(context.year_branch, 7) == branch:
            add("元辰")
        if self.HONG_LUAN[context.year_branch] == branch:
            add("红鸾")
        if self.TIAN_XI[context.year_branch] == branch:
            add("天喜")

        for name, combos in self.PILLAR_SETS:
            if gan_zhi in combos:
                add(name)
        if kind is PillarKind.DAY:
            for name, combos in self.DAY_ONLY_SETS:
                if gan_zhi in combos:
                    add(name)
        if kind is PillarKind.HOUR and gan_zhi in self.JIN_SHEN:
            add("金神")

        if branch in context.day_void:
            add(EMPTINESS)

        if kind is PillarKind.YEAR:
            for name in context.year_stars:
                add(name)
        elif kind is PillarKind.DAY:
            for name in context.day_stars:
                add(name)

        return tuple(results)


@dataclass(frozen=True)
class StarContext:
    """
    神煞推导所需的整盘信息。

    stems / branches 按 年、月、日、时 排列；day_void 为日柱旬空的两个地支；
    year_stars / day_stars 为历法库另行给出的年、日神煞，原样并入年柱与日柱。
    """

    stems: Tuple[str, str, str, str]
    branches: Tuple[str, str, str, str]
    day_void: Tuple[str, ...] = ()
    year_stars: Tuple[str, ...] = ()
    day_stars: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.stems) != 4 or len(self.branches) != 4:
            raise MalformedEnumInput("四柱", (self.stems, self.branches))
        for stem in self.stems:
            validate_stem(stem)
        for branch in self.branches:
            validate_branch(branch)
        for branch in self.day_void:
            validate_branch(branch)

    @classmethod
    def from_pillars(cls, pillars, day_void=(), year_stars=(), day_stars=()) -> "StarContext":
        """
        :param pillars: [年柱, 月柱, 日柱, 时柱]，每柱为 "甲子" 或 ("甲", "子")
        """
        pillars = list(pillars)
        if len(pillars) != 4 or any(len(p) != 2 for p in pillars):
            raise MalformedEnumInput("四柱", pillars)
        return cls(
            stems=tuple(p[0] for p in pillars),
            branches=tuple(p[1] for p in pillars),
            day_void=tuple(day_void),
            year_stars=tuple(year_stars),
            day_stars=tuple(day_stars),
        )

    @property
    def day_stem(self) -> str:
        return self.stems[PillarKind.DAY.value]

    @property
    def day_branch(self) -> str:
        return self.branches[PillarKind.DAY.value]

    @property
    def year_branch(self) -> str:
        return self.branches[PillarKind.YEAR.value]

    @property
    def month_branch(self) -> str:
        return self.branches[PillarKind.MONTH.value]


_SHEN_SHA_CALC = ShenShaCalculator()


def derive_stars(context: StarContext, pillar_index) -> Tuple[str, ...]:
    """计算 context 中第 pillar_index 柱的神煞 (也接受 PillarKind)"""
    if isinstance(pillar_index, PillarKind):
        pillar_index = pillar_index.value
    return _SHEN_SHA_CALC.derive(context, pillar_index)
