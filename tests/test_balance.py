import pytest

from tripchain.balance import (
    BLOCK_REWARD,
    TRIPCOIN,
    Balance,
    CurrencyError,
    from_tripcoin,
)


def test_from_string_parses_large_amount():
    b = Balance.from_string("100000000000000000000")
    assert b == Balance(100 * TRIPCOIN)


@pytest.mark.parametrize("text", ["", "abc", "1.5", "12a", " 12", "1_000", "--1"])
def test_from_string_rejects_invalid(text):
    with pytest.raises(CurrencyError):
        Balance.from_string(text)


def test_from_string_accepts_sign():
    assert Balance.from_string("-5") == Balance(-5)
    assert Balance.from_string("+7") == Balance(7)


def test_str_round_trip():
    b = Balance(2000000000000000000)
    assert Balance.from_string(str(b)) == b
    assert str(b) == "2000000000000000000"


def test_tripcoin_string_whole_amount():
    assert Balance.from_string("100000000000000000000").tripcoin_string() == "100 TCC"


def test_tripcoin_string_fraction_strips_zeros():
    assert Balance(TRIPCOIN + TRIPCOIN // 2).tripcoin_string() == "1.5 TCC"


def test_tripcoin_string_smallest_unit():
    assert Balance(1).tripcoin_string() == "0.000000000000000001 TCC"


def test_tripcoin_string_zero():
    assert Balance().tripcoin_string() == "0 TCC"


def test_add_and_sub_are_inverse():
    a = Balance(12345)
    b = Balance(678)
    assert (a + b) - b == a
    assert a + None is a
    assert a - None is a


def test_add_does_not_mutate():
    a = Balance(10)
    _ = a + Balance(5)
    assert a == Balance(10)


def test_sum_of_balances():
    parts = [Balance(TRIPCOIN), Balance(TRIPCOIN)]
    assert sum(parts) == Balance(BLOCK_REWARD)


def test_mul_and_floordiv():
    a = Balance(TRIPCOIN)
    assert (a * Balance(2)) // Balance(2) == a
    assert a * None == Balance(0)


def test_floordiv_is_euclidean():
    q = Balance(-7) // Balance(2)
    remainder = -7 - q.amount * 2
    assert 0 <= remainder < 2
    q2 = Balance(7) // Balance(-2)
    remainder2 = 7 - q2.amount * -2
    assert 0 <= remainder2 < 2


@pytest.mark.parametrize("divisor", [None, Balance(0), 0])
def test_floordiv_by_zero_raises(divisor):
    with pytest.raises(ZeroDivisionError):
        Balance(10) // divisor


def test_ordering():
    assert Balance(1) < Balance(2)
    assert max(Balance(3), Balance(9), Balance(4)) == Balance(9)


def test_json_round_trip():
    b = Balance(2000000000000000000)
    assert b.to_json() == "2000000000000000000"
    assert Balance.from_json(b.to_json()) == b


def test_from_json_rejects_number():
    with pytest.raises(CurrencyError):
        Balance.from_json(5)


def test_from_tripcoin_whole_values():
    assert from_tripcoin(2.0) == Balance(BLOCK_REWARD)
    assert from_tripcoin(100) == Balance.from_string("100000000000000000000")


def test_from_tripcoin_rejects_non_finite():
    with pytest.raises(CurrencyError):
        from_tripcoin(float("nan"))
    with pytest.raises(CurrencyError):
        from_tripcoin(float("inf"))


def test_non_integer_amount_rejected():
    with pytest.raises(TypeError):
        Balance(1.5)