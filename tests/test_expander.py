"""Unit tests for the Leg Expander."""
import pytest

from payrail.exceptions import LegExpansionError
from payrail.models.disbursement import DisbursementKind, DisbursementStatus, compute_leg_id
from payrail.services.expander import AGGREGATE_DISPLAY_NAME, AGGREGATE_RECIPIENT, LegExpander, Roster
from payrail.services.ports import RosterEntry

from tests.fakes import ALICE, BOB, CAROL, BATCH_TX, DIRECT_TX, FakeChain, transfer


@pytest.mark.asyncio
async def test_batch_expands_from_transfer_events(make_disbursement):
    """Legs follow the on-chain events, not the declared total."""
    disbursement = await make_disbursement(status=DisbursementStatus.CONFIRMED, declared_total=400)
    chain = FakeChain(events={BATCH_TX: [transfer(ALICE, 100, 0), transfer(BOB, 250, 1)]})

    legs = await LegExpander(chain).expand(disbursement)

    assert [(leg.recipient_address, leg.amount) for leg in legs] == [(ALICE, 100), (BOB, 250)]
    assert [leg.position for leg in legs] == [0, 1]
    assert sum(leg.amount for leg in legs) == 350
    assert not any(leg.is_degraded for leg in legs)


@pytest.mark.asyncio
async def test_expansion_is_idempotent(make_disbursement):
    disbursement = await make_disbursement(status=DisbursementStatus.CONFIRMED)
    chain = FakeChain(events={BATCH_TX: [transfer(ALICE, 100, 0), transfer(BOB, 250, 1), transfer(CAROL, 50, 2)]})
    expander = LegExpander(chain)

    first = await expander.expand(disbursement)
    second = await expander.expand(disbursement)

    assert [(leg.leg_id, leg.amount) for leg in first] == [(leg.leg_id, leg.amount) for leg in second]
    assert first[0].leg_id == compute_leg_id(BATCH_TX, ALICE)


@pytest.mark.asyncio
async def test_zero_events_yields_single_degraded_leg(make_disbursement):
    disbursement = await make_disbursement(status=DisbursementStatus.CONFIRMED, declared_total=400)
    chain = FakeChain(events={})

    legs = await LegExpander(chain).expand(disbursement)

    assert len(legs) == 1
    leg = legs[0]
    assert leg.is_degraded
    assert leg.amount == 400
    assert leg.recipient_address == AGGREGATE_RECIPIENT
    assert leg.override_name == AGGREGATE_DISPLAY_NAME


@pytest.mark.asyncio
async def test_direct_disbursement_needs_no_chain_events(make_disbursement):
    disbursement = await make_disbursement(
        transaction_id=DIRECT_TX,
        kind=DisbursementKind.DIRECT,
        declared_total=1_500_000,
        recipient_address=ALICE,
        status=DisbursementStatus.CONFIRMED,
    )
    chain = FakeChain()

    legs = await LegExpander(chain).expand(disbursement)

    assert len(legs) == 1
    assert legs[0].recipient_address == ALICE
    assert legs[0].amount == 1_500_000
    assert legs[0].leg_id == compute_leg_id(DIRECT_TX, ALICE)
    assert chain.event_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [
    DisbursementStatus.BROADCAST,
    DisbursementStatus.POLLING,
    DisbursementStatus.FAILED,
    DisbursementStatus.TIMED_OUT,
])
async def test_refuses_unconfirmed_disbursement(make_disbursement, status):
    disbursement = await make_disbursement(status=status)
    chain = FakeChain(events={BATCH_TX: [transfer(ALICE, 100)]})

    with pytest.raises(LegExpansionError):
        await LegExpander(chain).expand(disbursement)
    assert chain.event_calls == 0


@pytest.mark.asyncio
async def test_repeated_recipient_is_merged(make_disbursement):
    disbursement = await make_disbursement(status=DisbursementStatus.CONFIRMED)
    chain = FakeChain(events={BATCH_TX: [
        transfer(ALICE, 100, 0),
        transfer(BOB, 250, 1),
        transfer(ALICE, 40, 2),
    ]})

    legs = await LegExpander(chain).expand(disbursement)

    assert [(leg.recipient_address, leg.amount) for leg in legs] == [(ALICE, 140), (BOB, 250)]
    assert len({leg.leg_id for leg in legs}) == 2


@pytest.mark.asyncio
async def test_roster_supplies_override_name_and_email(make_disbursement):
    disbursement = await make_disbursement(status=DisbursementStatus.CONFIRMED)
    chain = FakeChain(events={BATCH_TX: [transfer(ALICE, 100, 0), transfer(BOB, 250, 1)]})
    roster = Roster([RosterEntry(address=ALICE.lower(), name="Alice N.", email="alice@payroll.test")])

    legs = await LegExpander(chain).expand(disbursement, roster)

    assert legs[0].override_name == "Alice N."
    assert legs[0].override_email == "alice@payroll.test"
    assert legs[1].override_name is None


def test_leg_id_does_not_collide_on_delimiters():
    assert compute_leg_id("tx:a", "b") != compute_leg_id("tx", "a:b")
    assert compute_leg_id("tx", "addr") == compute_leg_id("tx", "addr")
