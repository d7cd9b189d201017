"""パーセンテージロールアウト用の決定的バケット割り当て

ハッシュは UTF-16 コードユニット単位のローリングハッシュで、
``h = int32(h * 31 + c)``、``bucket = abs(h) % 100`` とする。
アルゴリズムを変更すると既存ロールアウトの割り当てが全て変わるため変更しないこと。
"""

from __future__ import annotations

from collections.abc import Iterator

BUCKET_COUNT = 100

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _utf16_code_units(value: str) -> Iterator[int]:
    for char in value:
        code = ord(char)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code


def _to_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def hash_user_id(user_id: str) -> int:
    """user_id の 32bit 符号付きローリングハッシュを返す。"""
    h = 0
    for code in _utf16_code_units(user_id):
        h = _to_int32(h * 31 + code)
    return h


def bucket_for(user_id: str) -> int:
    """user_id を [0, 100) のバケットに割り当てる。"""
    return abs(hash_user_id(user_id)) % BUCKET_COUNT
