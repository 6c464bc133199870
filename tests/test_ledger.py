"""
Tests for the atomic balance ledger
"""

import pytest

from src.core.exceptions import InvalidAmount
from tests.fakes import ALICE, BOB


@pytest.mark.asyncio
async def test_debit_succeeds_when_covered(ledger, make_user):
    await make_user("1", ALICE, 5_000_000)

    assert await ledger.debit(ALICE, 2_000_000) is True
    assert await ledger.get_balance(ALICE) == 3_000_000


@pytest.mark.asyncio
async def test_debit_exact_balance(ledger, make_user):
    await make_user("1", ALICE, 5_000_000)

    assert await ledger.debit(ALICE, 5_000_000) is True
    assert await ledger.get_balance(ALICE) == 0


@pytest.mark.asyncio
async def test_debit_refused_without_error(ledger, make_user):
    await make_user("1", ALICE, 5_000_000)

    assert await ledger.debit(ALICE, 5_000_001) is False
    assert await ledger.get_balance(ALICE) == 5_000_000


@pytest.mark.asyncio
async def test_debit_unknown_address(ledger):
    assert await ledger.debit(BOB, 1) is False


@pytest.mark.asyncio
async def test_successive_debits_never_overdraw(ledger, make_user):
    await make_user("1", ALICE, 10_000_000)

    results = [await ledger.debit(ALICE, 3_000_000) for _ in range(5)]

    assert results == [True, True, True, False, False]
    assert await ledger.get_balance(ALICE) == 1_000_000


@pytest.mark.asyncio
async def test_credit(ledger, make_user):
    await make_user("1", ALICE, 0)

    await ledger.credit(ALICE, 1_234_567)
    assert await ledger.get_balance(ALICE) == 1_234_567


@pytest.mark.asyncio
async def test_credit_unknown_address_is_not_raised(ledger):
    await ledger.credit(BOB, 1_000_000)
    assert await ledger.get_balance(BOB) is None


@pytest.mark.asyncio
async def test_debit_joins_caller_transaction(ledger, make_user, session_maker):
    await make_user("1", ALICE, 5_000_000)

    with pytest.raises(RuntimeError):
        async with session_maker() as session:
            async with session.begin():
                assert await ledger.debit(ALICE, 5_000_000, session) is True
                raise RuntimeError("later step failed")

    assert await ledger.get_balance(ALICE) == 5_000_000


@pytest.mark.asyncio
@pytest.mark.parametrize("units", [-1, 1.5, True])
async def test_rejects_non_integer_units(ledger, units):
    with pytest.raises(InvalidAmount):
        await ledger.debit(ALICE, units)
    with pytest.raises(InvalidAmount):
        await ledger.credit(ALICE, units)
