"""
八字基础工具 - 干支、五行、藏干、十神、纳音、十二长生、空亡
"""
from __future__ import annotations

from enum import Enum

from errors import MalformedEnumInput

# 天干序列 (偶数索引为阳)
STEMS = ("甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸")
# 地支序列 (循环顺序，索引 0-11)
BRANCHES = ("子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥")

# 五行按相生顺序排列
ELEMENTS = ("木", "火", "土", "金", "水")

STEM_ELEMENTS = {
    "甲": "木", "乙": "木", "丙": "火", "丁": "火", "戊": "土",
    "己": "土", "庚": "金", "辛": "金", "壬": "水", "癸": "水",
}

DAY_MASTER = "日主"


class PillarKind(Enum):
    """四柱位置"""

    YEAR = 0
    MONTH = 1
    DAY = 2
    HOUR = 3

    @property
    def label(self) -> str:
        return _PILLAR_LABELS[self]

    @classmethod
    def from_index(cls, index: int) -> "PillarKind":
        try:
            return cls(index)
        except ValueError:
            raise MalformedEnumInput("柱位", index) from None


_PILLAR_LABELS = {
    PillarKind.YEAR: "年柱",
    PillarKind.MONTH: "月柱",
    PillarKind.DAY: "日柱",
    PillarKind.HOUR: "时柱",
}


def validate_stem(stem: str) -> str:
    if stem not in STEMS:
        raise MalformedEnumInput("天干", stem)
    return stem


def validate_branch(branch: str) -> str:
    if branch not in BRANCHES:
        raise MalformedEnumInput("地支", branch)
    return branch


def is_yang(symbol: str) -> bool:
    """阳干/阳支判断"""
    if symbol in STEMS:
        return STEMS.index(symbol) % 2 == 0
    return BRANCHES.index(validate_branch(symbol)) % 2 == 0


def branch_offset(branch: str, steps: int) -> str:
    """地支按循环顺序前后移动"""
    return BRANCHES[(BRANCHES.index(branch) + steps) % 12]


class BaziBasicCalculator:
    """八字基础计算器 - 藏干、十神、纳音、十二长生、空亡"""

    # 地支藏干表 (标准子平藏干)
    # 格式：(本气, 中气, 余气) - 顺序即力量强弱
    ZANG_GAN = {
        "子": ("癸",),
        "丑": ("己", "癸", "辛"),
        "寅": ("甲", "丙", "戊"),
        "卯": ("乙",),
        "辰": ("戊", "乙", "癸"),
        "巳": ("丙", "庚", "戊"),
        "午": ("丁", "己"),
        "未": ("己", "丁", "乙"),
        "申": ("庚", "壬", "戊"),
        "酉": ("辛",),
        "戌": ("戊", "辛", "丁"),
        "亥": ("壬", "甲"),
    }

    # 十神名称: 键为 (日主到目标的五行生克关系, 是否同阴阳)
    # 关系: 0 同我, 1 我生, 2 我克, 3 克我, 4 生我
    TEN_GODS = {
        (0, True): "比肩", (0, False): "劫财",
        (1, True): "食神", (1, False): "伤官",
        (2, True): "偏财", (2, False): "正财",
        (3, True): "七杀", (3, False): "正官",
        (4, True): "偏印", (4, False): "正印",
    }

    # 十二长生：天干长生所在地支索引，阳干顺行，阴干逆行
    LIFE_STAGE_START = {
        "甲": 11, "丙": 2, "戊": 2, "庚": 5, "壬": 8,  # 阳干：亥, 寅, 寅, 巳, 申
        "乙": 6, "丁": 9, "己": 9, "辛": 0, "癸": 3,   # 阴干：午, 酉, 酉, 子, 卯
    }
    STAGES = ("长生", "沐浴", "冠带", "临官", "帝旺", "衰", "病", "死", "墓", "绝", "胎", "养")

    # 六十甲子纳音表
    NAYIN_MAP = {
        "甲子": "海中金", "乙丑": "海中金",
        "丙寅": "炉中火", "丁卯": "炉中火",
        "戊辰": "大林木", "己巳": "大林木",
        "庚午": "路旁土", "辛未": "路旁土",
        "壬申": "剑锋金", "癸酉": "剑锋金",
        "甲戌": "山头火", "乙亥": "山头火",
        "丙子": "涧下水", "丁丑": "涧下水",
        "戊寅": "城头土", "己卯": "城头土",
        "庚辰": "白蜡金", "辛巳": "白蜡金",
        "壬午": "杨柳木", "癸未": "杨柳木",
        "甲申": "泉中水", "乙酉": "泉中水",
        "丙戌": "屋上土", "丁亥": "屋上土",
        "戊子": "霹雳火", "己丑": "霹雳火",
        "庚寅": "松柏木", "辛卯": "松柏木",
        "壬辰": "长流水", "癸巳": "长流水",
        "甲午": "沙中金", "乙未": "沙中金",
        "丙申": "山下火", "丁酉": "山下火",
        "戊戌": "平地木", "己亥": "平地木",
        "庚子": "壁上土", "辛丑": "壁上土",
        "壬寅": "金箔金", "癸卯": "金箔金",
        "甲辰": "覆灯火", "乙巳": "覆灯火",
        "丙午": "天河水", "丁未": "天河水",
        "戊申": "大驿土", "己酉": "大驿土",
        "庚戌": "钗钏金", "辛亥": "钗钏金",
        "壬子": "桑柘木", "癸丑": "桑柘木",
        "甲寅": "大溪水", "乙卯": "大溪水",
        "丙辰": "沙中土", "丁巳": "沙中土",
        "戊午": "天上火", "己未": "天上火",
        "庚申": "石榴木", "辛酉": "石榴木",
        "壬戌": "大海水", "癸亥": "大海水",
    }

    def get_hidden_stems(self, branch: str) -> tuple:
        """获取地支藏干 (按本气、中气、余气排序)"""
        return self.ZANG_GAN[validate_branch(branch)]

    def get_ten_god(self, day_master: str, target_stem: str) -> str:
        """
        计算十神关系
        :param day_master: 日主天干
        :param target_stem: 目标天干
        :return: 十神名称
        """
        dm_element = ELEMENTS.index(STEM_ELEMENTS[validate_stem(day_master)])
        tgt_element = ELEMENTS.index(STEM_ELEMENTS[validate_stem(target_stem)])
        relation = (tgt_element - dm_element) % 5
        same_polarity = is_yang(day_master) == is_yang(target_stem)
        return self.TEN_GODS[(relation, same_polarity)]

    def get_hidden_ten_gods(self, day_master: str, branch: str) -> tuple:
        return tuple(self.get_ten_god(day_master, h) for h in self.get_hidden_stems(branch))

    def get_nayin(self, stem: str, branch: str) -> str:
        """纳音；阴阳不匹配的干支组合没有纳音，返回空串"""
        return self.NAYIN_MAP.get(validate_stem(stem) + validate_branch(branch), "")

    def get_life_stage(self, stem: str, branch: str) -> str:
        """十二长生: 天干在某地支的状态"""
        start_idx = self.LIFE_STAGE_START[validate_stem(stem)]
        branch_idx = BRANCHES.index(validate_branch(branch))
        if is_yang(stem):
            diff = (branch_idx - start_idx) % 12
        else:
            diff = (start_idx - branch_idx) % 12
        return self.STAGES[diff]

    def get_kong_wang(self, stem: str, branch: str) -> tuple:
        """
        计算单柱空亡
        口诀：甲子旬中戌亥空...
        算法：(地支索引 - 天干索引) % 12 为旬首地支，旬中未配天干的最后两个地支即空亡
        """
        diff = (BRANCHES.index(validate_branch(branch)) - STEMS.index(validate_stem(stem))) % 12
        return (BRANCHES[(diff - 2) % 12], BRANCHES[(diff - 1) % 12])
