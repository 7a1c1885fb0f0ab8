import asyncio

import pytest

from conftest import FakeArtModel
from reskin.decks.images import ImageGenerationScheduler, should_generate
from reskin.errors import PreconditionError, ValidationError


def _names(count):
    return [f"Card {i:02d}" for i in range(count)]


def test_generate_all_runs_every_eligible_card(store, jobs, themed_deck):
    deck_id = themed_deck()
    art = FakeArtModel()
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        result = await scheduler.generate_all(deck_id, False)
        await jobs.drain()
        return result

    result = asyncio.run(scenario())

    assert result.to_dict() == {
        "deckId": deck_id,
        "startedCount": 2,
        "alreadyGeneratingCount": 0,
        "skippedCount": 0,
    }
    assert sorted(art.prompts) == ["Painting of Elvish Mystic", "Painting of Llanowar Elves"]
    for card in store.list_themed_cards(deck_id):
        assert card.image_status == "generated"
        assert card.image_url.startswith("https://art.example/")
        assert card.image_error is None


def test_worker_pool_caps_concurrency_at_three(store, jobs, themed_deck):
    deck_id = themed_deck(_names(7))
    art = FakeArtModel(hold=True)
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        result = await scheduler.generate_all(deck_id, False)
        # Let workers pick up jobs
        for _ in range(5):
            await asyncio.sleep(0)
        in_flight = art.active
        art.release.set()
        await jobs.drain()
        return result, in_flight

    result, in_flight = asyncio.run(scenario())

    assert result.started_count == 7
    assert in_flight == 3
    assert art.peak == 3
    assert len(art.prompts) == 7


def test_claimed_rows_are_generating_when_call_returns(store, jobs, themed_deck):
    deck_id = themed_deck()
    art = FakeArtModel(hold=True)
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        await scheduler.generate_all(deck_id, False)
        statuses = [card.image_status for card in store.list_themed_cards(deck_id)]
        art.release.set()
        await jobs.drain()
        return statuses

    assert asyncio.run(scenario()) == ["generating", "generating"]


def test_concurrent_bulk_calls_never_double_start(store, jobs, themed_deck):
    deck_id = themed_deck(_names(4))
    art = FakeArtModel(hold=True)
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        first, second = await asyncio.gather(
            scheduler.generate_all(deck_id, True),
            scheduler.generate_all(deck_id, True),
        )
        art.release.set()
        await jobs.drain()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.started_count + second.started_count == 4
    assert first.already_generating_count + second.already_generating_count == 4
    assert len(art.prompts) == 4


def test_failures_stay_on_their_own_row(store, jobs, themed_deck):
    deck_id = themed_deck()
    art = FakeArtModel(fail_prompts={"Painting of Elvish Mystic"})
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        await scheduler.generate_all(deck_id, False)
        await jobs.drain()

    asyncio.run(scenario())

    rows = {card.original_name: card for card in store.list_themed_cards(deck_id)}
    assert rows["Elvish Mystic"].image_status == "failed"
    assert rows["Elvish Mystic"].image_error == "art failed for Painting of Elvish Mystic"
    assert rows["Llanowar Elves"].image_status == "generated"


def test_new_art_resets_composite(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    store.update_themed_card(
        deck_id,
        "Llanowar Elves",
        image_status="generated",
        image_url="https://art.example/old.png",
        composite_status="generated",
        composite_url="data:image/png;base64,b2xk",
    )
    scheduler = ImageGenerationScheduler(store, FakeArtModel(), jobs)

    async def scenario():
        result = await scheduler.generate_all(deck_id, True)
        await jobs.drain()
        return result

    assert asyncio.run(scenario()).started_count == 1
    card = store.get_themed_card(deck_id, "Llanowar Elves")
    assert card.image_url != "https://art.example/old.png"
    assert card.composite_status == "idle"
    assert card.composite_url is None
    assert card.composite_error is None


def test_skips_ineligible_and_counts_generating(store, jobs, themed_deck):
    deck_id = themed_deck(["Has Art", "Generating", "Failed Theme", "No Prompt", "Fresh"])
    store.update_themed_card(deck_id, "Has Art", image_status="generated", image_url="https://art.example/x.png")
    store.update_themed_card(deck_id, "Generating", image_status="generating")
    store.update_themed_card(deck_id, "Failed Theme", status="failed")
    store.update_themed_card(deck_id, "No Prompt", themed_image_prompt="   ")
    scheduler = ImageGenerationScheduler(store, FakeArtModel(), jobs)

    async def scenario():
        result = await scheduler.generate_all(deck_id, False)
        await jobs.drain()
        return result

    result = asyncio.run(scenario())

    assert result.started_count == 1
    assert result.already_generating_count == 1
    assert result.skipped_count == 3
    assert store.get_themed_card(deck_id, "Generating").image_status == "generating"


def test_generate_all_preconditions(store, jobs, themed_deck):
    scheduler = ImageGenerationScheduler(store, FakeArtModel(), jobs)
    deck_id = store.add_deck("Fresh").id

    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(scheduler.generate_all(deck_id, False))
    assert excinfo.value.code == "theming-not-complete"

    store.update_deck(deck_id, theming_status="completed")
    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(scheduler.generate_all(deck_id, False))
    assert excinfo.value.code == "themed-cards-missing"

    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(scheduler.generate_all(deck_id, "no"))
    assert excinfo.value.code == "invalid-force-regenerate"


def test_generate_one_persists_edits_and_uses_new_prompt(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    art = FakeArtModel(hold=True)
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        result = await scheduler.generate_one(deck_id, "Llanowar Elves", " San ", " Wolf princess ", False)
        during = store.get_themed_card(deck_id, "Llanowar Elves")
        art.release.set()
        await jobs.drain()
        return result, during

    result, during = asyncio.run(scenario())

    assert result.started is True
    assert during.image_status == "generating"
    assert during.themed_name == "San"
    assert during.themed_image_prompt == "Wolf princess"
    assert art.prompts == ["Wolf princess"]
    assert store.get_themed_card(deck_id, "Llanowar Elves").image_status == "generated"


def test_generate_one_already_generating(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    store.update_themed_card(deck_id, "Llanowar Elves", image_status="generating")
    art = FakeArtModel()
    scheduler = ImageGenerationScheduler(store, art, jobs)

    result = asyncio.run(scheduler.generate_one(deck_id, "Llanowar Elves", "San", "New prompt", True))

    assert result.started is False
    assert art.prompts == []
    card = store.get_themed_card(deck_id, "Llanowar Elves")
    assert card.themed_image_prompt == "Painting of Llanowar Elves"


def test_generate_one_not_eligible_saves_edits(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    store.update_themed_card(deck_id, "Llanowar Elves", image_status="generated", image_url="https://art.example/x.png")
    scheduler = ImageGenerationScheduler(store, FakeArtModel(), jobs)

    result = asyncio.run(scheduler.generate_one(deck_id, "Llanowar Elves", "San", "New prompt", False))

    assert result.to_dict()["started"] is False
    assert result.image_url == "https://art.example/x.png"
    card = store.get_themed_card(deck_id, "Llanowar Elves")
    assert card.themed_name == "San"
    assert card.themed_image_prompt == "New prompt"


def test_generate_one_validation(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    scheduler = ImageGenerationScheduler(store, FakeArtModel(), jobs)

    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(scheduler.generate_one(deck_id, "Llanowar Elves", "San", " ", False))
    assert excinfo.value.code == "invalid-image-prompt"

    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(scheduler.generate_one(deck_id, "Missing", "San", "Prompt", False))
    assert excinfo.value.code == "themed-card-not-found"


def test_should_generate(store, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    card = store.get_themed_card(deck_id, "Llanowar Elves")

    assert should_generate(card, False)
    card.image_url = "https://art.example/x.png"
    assert not should_generate(card, False)
    assert should_generate(card, True)
    assert not should_generate(card, True, prompt="  ")
    card.status = "skipped"
    assert not should_generate(card, True)


def test_concurrent_single_calls_first_edit_wins(store, jobs, themed_deck):
    deck_id = themed_deck(["Llanowar Elves"])
    art = FakeArtModel(hold=True)
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        first, second = await asyncio.gather(
            scheduler.generate_one(deck_id, "Llanowar Elves", "San", "Wolf princess", True),
            scheduler.generate_one(deck_id, "Llanowar Elves", "Moro", "Wolf goddess", True),
        )
        art.release.set()
        await jobs.drain()
        return first, second

    first, second = asyncio.run(scenario())

    assert (first.started, second.started) == (True, False)
    card = store.get_themed_card(deck_id, "Llanowar Elves")
    assert card.themed_name == "San"
    assert card.themed_image_prompt == "Wolf princess"
    assert art.prompts == ["Wolf princess"]


def test_four_jobs_with_three_slots(store, jobs, themed_deck):
    deck_id = themed_deck(_names(4))
    art = FakeArtModel()
    scheduler = ImageGenerationScheduler(store, art, jobs)

    async def scenario():
        await scheduler.generate_all(deck_id, False)
        await jobs.drain()

    asyncio.run(scenario())

    assert art.peak <= 3
    assert len(art.prompts) == 4
