"""
Demographic vocabularies used to slice vote statistics.

Votes only carry coarse buckets: a prefecture code, an age band and a
self-reported gender. Nothing finer is accepted.
"""

from typing import NamedTuple


class Prefecture(NamedTuple):
    code: str
    name: str
    area: str


PREFECTURES: dict[str, Prefecture] = {
    p.code: p
    for p in [
        Prefecture("01", "北海道", "北海道"),
        Prefecture("02", "青森県", "東北"),
        Prefecture("03", "岩手県", "東北"),
        Prefecture("04", "宮城県", "東北"),
        Prefecture("05", "秋田県", "東北"),
        Prefecture("06", "山形県", "東北"),
        Prefecture("07", "福島県", "東北"),
        Prefecture("08", "茨城県", "関東"),
        Prefecture("09", "栃木県", "関東"),
        Prefecture("10", "群馬県", "関東"),
        Prefecture("11", "埼玉県", "関東"),
        Prefecture("12", "千葉県", "関東"),
        Prefecture("13", "東京都", "関東"),
        Prefecture("14", "神奈川県", "関東"),
        Prefecture("15", "新潟県", "中部"),
        Prefecture("16", "富山県", "中部"),
        Prefecture("17", "石川県", "中部"),
        Prefecture("18", "福井県", "中部"),
        Prefecture("19", "山梨県", "中部"),
        Prefecture("20", "長野県", "中部"),
        Prefecture("21", "岐阜県", "中部"),
        Prefecture("22", "静岡県", "中部"),
        Prefecture("23", "愛知県", "中部"),
        Prefecture("24", "三重県", "関西"),
        Prefecture("25", "滋賀県", "関西"),
        Prefecture("26", "京都府", "関西"),
        Prefecture("27", "大阪府", "関西"),
        Prefecture("28", "兵庫県", "関西"),
        Prefecture("29", "奈良県", "関西"),
        Prefecture("30", "和歌山県", "関西"),
        Prefecture("31", "鳥取県", "中国"),
        Prefecture("32", "島根県", "中国"),
        Prefecture("33", "岡山県", "中国"),
        Prefecture("34", "広島県", "中国"),
        Prefecture("35", "山口県", "中国"),
        Prefecture("36", "徳島県", "四国"),
        Prefecture("37", "香川県", "四国"),
        Prefecture("38", "愛媛県", "四国"),
        Prefecture("39", "高知県", "四国"),
        Prefecture("40", "福岡県", "九州"),
        Prefecture("41", "佐賀県", "九州"),
        Prefecture("42", "長崎県", "九州"),
        Prefecture("43", "熊本県", "九州"),
        Prefecture("44", "大分県", "九州"),
        Prefecture("45", "宮崎県", "九州"),
        Prefecture("46", "鹿児島県", "九州"),
        Prefecture("47", "沖縄県", "沖縄"),
    ]
}

AGE_BANDS = ("10s", "20s", "30s", "40s", "50s", "60s", "70s+")

GENDERS = ("male", "female", "other", "prefer_not_to_say")


def is_prefecture_code(code: str) -> bool:
    return code in PREFECTURES


def prefectures_in_area(area: str) -> list[Prefecture]:
    """All prefectures of a broad area (e.g. "関東"), in code order."""
    return [p for p in PREFECTURES.values() if p.area == area]
