"""バケット割り当てのユニットテスト"""

import uuid

from k1s0_flagengine.bucketing import bucket_for, hash_user_id


def test_hash_empty_string_is_zero() -> None:
    """空文字列のハッシュは 0。"""
    assert hash_user_id("") == 0


def test_hash_rolling_accumulation() -> None:
    """h = h * 31 + c の累積であること。"""
    assert hash_user_id("a") == 97
    assert hash_user_id("ab") == 97 * 31 + 98
    assert hash_user_id("hello") == 99162322


def test_hash_known_collision() -> None:
    """同じ累積値になる文字列は同じバケットになること。"""
    assert hash_user_id("Aa") == hash_user_id("BB") == 2112


def test_hash_wraps_to_signed_32bit() -> None:
    """32bit 符号付き整数に切り詰められること。"""
    assert hash_user_id("polygenelubricants") == -(2**31)
    assert bucket_for("polygenelubricants") == 2**31 % 100


def test_hash_uses_utf16_code_units() -> None:
    """BMP 外の文字はサロゲートペアとして扱うこと。"""
    assert hash_user_id("\U0001F600") == 0xD83D * 31 + 0xDE00


def test_hash_stays_in_int32_range() -> None:
    """長い文字列でも 32bit 範囲に収まること。"""
    value = hash_user_id("x" * 1000)
    assert -(2**31) <= value < 2**31


def test_bucket_is_deterministic() -> None:
    """同じ user_id は常に同じバケット。"""
    for i in range(100):
        user_id = f"user-{i}"
        assert bucket_for(user_id) == bucket_for(user_id)


def test_bucket_range() -> None:
    """バケットは [0, 100) の範囲。"""
    for i in range(1000):
        assert 0 <= bucket_for(str(uuid.uuid5(uuid.NAMESPACE_URL, f"u{i}"))) < 100
