"""End-to-end create / confirm pipeline against the in-memory store."""

from unittest.mock import AsyncMock

import pytest

from foodlog.exceptions import (
    AuthenticationRequired,
    Conflict,
    Forbidden,
    NotFound,
    PersistenceFailure,
)
from foodlog.schemas.food_entry import (
    ConfirmedDish,
    ConfirmFoodEntryRequest,
    CreateFoodEntryRequest,
)
from foodlog.services.oracles import StubTriggerOracle

from tests.conftest import OTHER_USER_ID


def _create(text):
    return CreateFoodEntryRequest(raw_entry_text=text)


def _confirm(*dishes, occurred_at=None):
    return ConfirmFoodEntryRequest(confirmed_dishes=list(dishes), occurred_at=occurred_at)


def _confirmed(dish, final_name=None, trigger_ids=None):
    return ConfirmedDish(
        dish_event_id=dish.dish_event_id,
        dish_id=dish.dish_id,
        final_dish_name=final_name or dish.dish_name,
        trigger_ids=(
            trigger_ids
            if trigger_ids is not None
            else [t.trigger_id for t in dish.predicted_triggers]
        ),
    )


def _trigger_names(refs):
    return sorted(r.trigger_name for r in refs)


class _FailingExtraction:
    model_version = "broken"
    prompt_version = "broken"

    async def extract_dishes(self, raw_entry_text):
        raise RuntimeError("extraction service unavailable")


class TestCreateFoodEntry:
    @pytest.mark.asyncio
    async def test_two_dishes_with_predicted_triggers(self, service, count_rows):
        response = await service.create_food_entry(_create("Chocolate Croissant and Matcha Latte"))

        assert [d.dish_name for d in response.dishes] == ["Chocolate Croissant", "Matcha Latte"]
        assert _trigger_names(response.dishes[0].predicted_triggers) == ["gluten"]
        assert _trigger_names(response.dishes[1].predicted_triggers) == ["caffeine"]
        assert await count_rows("predicted_dish", raw_entry_id=response.entry_id) == 2
        assert await count_rows("dish_events", raw_entry_id=response.entry_id) == 2
        assert await count_rows("predicted_dish_triggers") == 2

    @pytest.mark.asyncio
    async def test_dish_without_matches_gets_no_triggers(self, service, count_rows):
        response = await service.create_food_entry(_create("Grilled Salmon"))

        assert len(response.dishes) == 1
        assert response.dishes[0].predicted_triggers == []
        assert await count_rows("predicted_dish_triggers") == 0

    @pytest.mark.asyncio
    async def test_events_start_unconfirmed(self, service, count_rows):
        response = await service.create_food_entry(_create("Bagel"))

        assert await count_rows("dish_events", raw_entry_id=response.entry_id, confirmed_by_user=False) == 1

    @pytest.mark.asyncio
    async def test_same_dish_across_entries_reuses_dish(self, service, count_rows):
        first = await service.create_food_entry(_create("Chocolate Croissant"))
        second = await service.create_food_entry(_create("chocolate   CROISSANT"))

        assert first.dishes[0].dish_id == second.dishes[0].dish_id
        assert second.dishes[0].dish_name == "Chocolate Croissant"
        assert await count_rows("dish") == 1
        assert await count_rows("dish_events") == 2

    @pytest.mark.asyncio
    async def test_known_dish_inherits_confirmed_triggers_without_oracle(self, make_service):
        service = make_service()
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        await service.confirm_food_entry(created.entry_id, _confirm(_confirmed(created.dishes[0])))

        oracle = StubTriggerOracle()
        oracle.predict_triggers = AsyncMock(return_value={"triggers": ["dairy"]})
        service = make_service(trigger_oracle=oracle)

        again = await service.create_food_entry(_create("chocolate croissant"))

        assert _trigger_names(again.dishes[0].predicted_triggers) == ["gluten"]
        oracle.predict_triggers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dish_confirmed_without_triggers_is_still_new(self, make_service):
        service = make_service()
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(created.dishes[0], trigger_ids=[]))
        )

        oracle = StubTriggerOracle()
        oracle.predict_triggers = AsyncMock(return_value={"triggers": ["gluten"]})
        service = make_service(trigger_oracle=oracle)

        again = await service.create_food_entry(_create("Chocolate Croissant"))

        assert _trigger_names(again.dishes[0].predicted_triggers) == ["gluten"]
        oracle.predict_triggers.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_extraction_failure_yields_single_raw_dish(self, make_service, count_rows):
        service = make_service(extraction_oracle=_FailingExtraction())
        text = "leftover curry and rice"

        response = await service.create_food_entry(_create(text))

        assert len(response.dishes) == 1
        assert response.dishes[0].dish_name == text
        assert await count_rows("predicted_dish", dish_fragment_text=text, model_version="broken") == 1

    @pytest.mark.asyncio
    async def test_requires_authentication(self, make_service, count_rows):
        service = make_service(user_id=None)

        with pytest.raises(AuthenticationRequired):
            await service.create_food_entry(_create("Bagel"))
        assert await count_rows("raw_entry") == 0

    @pytest.mark.asyncio
    async def test_store_failure_leaves_earlier_writes(self, service, repo, count_rows):
        repo.create_dish_event = AsyncMock(side_effect=PersistenceFailure("disk full"))

        with pytest.raises(PersistenceFailure):
            await service.create_food_entry(_create("Bagel"))

        assert await count_rows("raw_entry") == 1
        assert await count_rows("predicted_dish") == 1
        assert await count_rows("dish") == 1
        assert await count_rows("dish_events") == 0


class TestConfirmFoodEntry:
    @pytest.mark.asyncio
    async def test_confirm_persists_triggers_and_marks_events(self, service, count_rows):
        created = await service.create_food_entry(_create("Chocolate Croissant and Matcha Latte"))

        response = await service.confirm_food_entry(
            created.entry_id, _confirm(*(_confirmed(d) for d in created.dishes))
        )

        assert response.entry_id == created.entry_id
        assert [d.dish_name for d in response.dishes] == ["Chocolate Croissant", "Matcha Latte"]
        assert _trigger_names(response.dishes[0].triggers) == ["gluten"]
        assert _trigger_names(response.dishes[1].triggers) == ["caffeine"]
        assert await count_rows("dish_events", confirmed_by_user=True) == 2
        assert await count_rows("dish_triggers") == 2

    @pytest.mark.asyncio
    async def test_empty_trigger_list_clears_confirmed_but_not_predicted(
        self, service, catalog, count_rows
    ):
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        dish = created.dishes[0]
        dairy = catalog.by_name("dairy").id

        await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(dish, trigger_ids=[dairy]))
        )
        response = await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(dish, trigger_ids=[]))
        )

        assert response.dishes[0].triggers == []
        assert await count_rows("dish_triggers", dish_event_id=dish.dish_event_id) == 0
        assert await count_rows("predicted_dish_triggers", dish_event_id=dish.dish_event_id) == 1

    @pytest.mark.asyncio
    async def test_reconfirm_replaces_trigger_set(self, service, catalog):
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        dish = created.dishes[0]
        gluten = catalog.by_name("gluten").id
        dairy = catalog.by_name("dairy").id

        await service.confirm_food_entry(created.entry_id, _confirm(_confirmed(dish, trigger_ids=[gluten])))
        response = await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(dish, trigger_ids=[dairy, dairy]))
        )

        assert _trigger_names(response.dishes[0].triggers) == ["dairy"]

    @pytest.mark.asyncio
    async def test_omitted_dishes_are_still_confirmed(self, service, count_rows):
        created = await service.create_food_entry(_create("Chocolate Croissant and Matcha Latte"))

        response = await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(created.dishes[0]))
        )

        assert await count_rows("dish_events", raw_entry_id=created.entry_id, confirmed_by_user=True) == 2
        omitted = response.dishes[1]
        assert omitted.dish_name == "Unknown"
        assert omitted.triggers == []

    @pytest.mark.asyncio
    async def test_empty_payload_confirms_whole_entry(self, service, count_rows):
        created = await service.create_food_entry(_create("Bagel"))

        await service.confirm_food_entry(created.entry_id, _confirm())

        assert await count_rows("dish_events", confirmed_by_user=True) == 1

    @pytest.mark.asyncio
    async def test_rename_applies_to_dish(self, service, repo):
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        dish = created.dishes[0]

        response = await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(dish, final_name="Pain au Chocolat"))
        )

        stored = await repo.get_dish(dish.dish_id)
        assert stored.dish_name == "Pain au Chocolat"
        assert stored.normalized_dish_name == "pain au chocolat"
        assert response.dishes[0].dish_name == "Pain au Chocolat"

    @pytest.mark.asyncio
    async def test_recasing_own_name_is_not_a_conflict(self, service, repo):
        created = await service.create_food_entry(_create("Chocolate Croissant"))
        dish = created.dishes[0]

        await service.confirm_food_entry(
            created.entry_id, _confirm(_confirmed(dish, final_name="chocolate croissant"))
        )

        stored = await repo.get_dish(dish.dish_id)
        assert stored.dish_name == "chocolate croissant"

    @pytest.mark.asyncio
    async def test_rename_onto_existing_dish_conflicts(self, service, repo):
        created = await service.create_food_entry(_create("Chocolate Croissant and Matcha Latte"))
        latte = created.dishes[1]

        with pytest.raises(Conflict):
            await service.confirm_food_entry(
                created.entry_id, _confirm(_confirmed(latte, final_name="CHOCOLATE croissant"))
            )

        stored = await repo.get_dish(latte.dish_id)
        assert stored.dish_name == "Matcha Latte"
        assert stored.normalized_dish_name == "matcha latte"

    @pytest.mark.asyncio
    async def test_rename_racing_past_lookup_still_conflicts(self, service, repo):
        created = await service.create_food_entry(_create("Chocolate Croissant and Matcha Latte"))
        latte = created.dishes[1]
        # Another request took the name between the clash check and the update
        repo.find_dish_by_normalized_name = AsyncMock(return_value=None)

        with pytest.raises(Conflict):
            await service.confirm_food_entry(
                created.entry_id, _confirm(_confirmed(latte, final_name="Chocolate Croissant"))
            )

        stored = await repo.get_dish(latte.dish_id)
        assert stored.dish_name == "Matcha Latte"

    @pytest.mark.asyncio
    async def test_confirm_response_lists_events_in_extraction_order(self, service, repo):
        created = await service.create_food_entry(_create("Bagel and Coffee and Muffin"))
        created_ids = [d.dish_event_id for d in created.dishes]

        response = await service.confirm_food_entry(
            created.entry_id, _confirm(*(_confirmed(d) for d in reversed(created.dishes)))
        )

        assert [d.dish_name for d in created.dishes] == ["Bagel", "Coffee", "Muffin"]
        assert [d.dish_event_id for d in response.dishes] == created_ids
        listed = await repo.list_dish_events_for_entry(created.entry_id)
        assert [e.id for e in listed] == created_ids

    @pytest.mark.asyncio
    async def test_unknown_dish_event(self, service):
        created = await service.create_food_entry(_create("Bagel"))
        dish = created.dishes[0]
        payload = _confirm(
            _confirmed(dish).model_copy(update={"dish_event_id": "does-not-exist"})
        )

        with pytest.raises(NotFound, match="Dish event not found"):
            await service.confirm_food_entry(created.entry_id, payload)

    @pytest.mark.asyncio
    async def test_event_from_another_entry(self, service):
        first = await service.create_food_entry(_create("Bagel"))
        second = await service.create_food_entry(_create("Muffin"))

        with pytest.raises(NotFound):
            await service.confirm_food_entry(
                second.entry_id, _confirm(_confirmed(first.dishes[0]))
            )

    @pytest.mark.asyncio
    async def test_unknown_dish(self, service):
        created = await service.create_food_entry(_create("Bagel"))
        payload = _confirm(
            _confirmed(created.dishes[0]).model_copy(update={"dish_id": "does-not-exist"})
        )

        with pytest.raises(NotFound, match="Dish not found"):
            await service.confirm_food_entry(created.entry_id, payload)

    @pytest.mark.asyncio
    async def test_dish_of_another_user_is_forbidden(self, make_service):
        mine = make_service()
        theirs = make_service(user_id=OTHER_USER_ID)
        created = await mine.create_food_entry(_create("Bagel"))
        foreign = await theirs.create_food_entry(_create("Muffin"))
        payload = _confirm(
            _confirmed(created.dishes[0]).model_copy(
                update={"dish_id": foreign.dishes[0].dish_id}
            )
        )

        with pytest.raises(Forbidden):
            await mine.confirm_food_entry(created.entry_id, payload)

    @pytest.mark.asyncio
    async def test_other_users_entry_is_not_found(self, make_service):
        mine = make_service()
        theirs = make_service(user_id=OTHER_USER_ID)
        created = await mine.create_food_entry(_create("Bagel"))

        with pytest.raises(NotFound):
            await theirs.confirm_food_entry(created.entry_id, _confirm(_confirmed(created.dishes[0])))

    @pytest.mark.asyncio
    async def test_unknown_trigger_id(self, service, count_rows):
        created = await service.create_food_entry(_create("Chocolate Croissant"))

        with pytest.raises(NotFound, match="Trigger not found"):
            await service.confirm_food_entry(
                created.entry_id,
                _confirm(_confirmed(created.dishes[0], trigger_ids=["not-a-trigger"])),
            )
        assert await count_rows("dish_events", confirmed_by_user=True) == 0

    @pytest.mark.asyncio
    async def test_occurred_at_applies_to_every_event(self, service, count_rows):
        created = await service.create_food_entry(_create("Bagel and Coffee"))

        await service.confirm_food_entry(created.entry_id, _confirm(occurred_at=1_700_000_000_000))

        assert await count_rows("dish_events", occurred_at=1_700_000_000_000) == 2

    @pytest.mark.asyncio
    async def test_requires_authentication(self, make_service):
        created = await make_service().create_food_entry(_create("Bagel"))

        with pytest.raises(AuthenticationRequired):
            await make_service(user_id="   ").confirm_food_entry(created.entry_id, _confirm())


class TestDeleteAndHistory:
    @pytest.mark.asyncio
    async def test_history_lists_confirmed_events_newest_first(self, service):
        first = await service.create_food_entry(_create("Bagel"))
        await service.confirm_food_entry(first.entry_id, _confirm(occurred_at=1_000))
        second = await service.create_food_entry(_create("Chocolate Croissant"))
        await service.confirm_food_entry(
            second.entry_id, _confirm(_confirmed(second.dishes[0]), occurred_at=2_000)
        )
        await service.create_food_entry(_create("Unreviewed Muffin"))

        history = await service.list_food_history()

        assert [i.dish_name for i in history.items] == ["Chocolate Croissant", "Bagel"]
        assert history.items[0].entry_id == second.entry_id
        assert [t.trigger_name for t in history.items[0].triggers] == ["gluten"]
        assert history.items[0].triggers[0].display_text == "Gluten"

    @pytest.mark.asyncio
    async def test_history_paging(self, service):
        for name in ("Bagel", "Muffin", "Scone"):
            created = await service.create_food_entry(_create(name))
            await service.confirm_food_entry(created.entry_id, _confirm())

        page = await service.list_food_history(limit=2, offset=2)

        assert [i.dish_name for i in page.items] == ["Bagel"]
        assert page.limit == 2
        assert page.offset == 2

    @pytest.mark.asyncio
    async def test_soft_deleted_event_leaves_history_and_confirm(self, service, count_rows):
        created = await service.create_food_entry(_create("Bagel and Coffee"))
        await service.confirm_food_entry(created.entry_id, _confirm())
        bagel, coffee = created.dishes

        await service.delete_dish_event(bagel.dish_event_id)

        history = await service.list_food_history()
        assert [i.dish_event_id for i in history.items] == [coffee.dish_event_id]
        assert await count_rows("dish_events", id=bagel.dish_event_id) == 1

        with pytest.raises(NotFound):
            await service.confirm_food_entry(created.entry_id, _confirm(_confirmed(bagel)))
        response = await service.confirm_food_entry(created.entry_id, _confirm())
        assert [d.dish_event_id for d in response.dishes] == [coffee.dish_event_id]

    @pytest.mark.asyncio
    async def test_delete_is_idempotent_for_owner(self, service, repo):
        created = await service.create_food_entry(_create("Bagel"))
        event_id = created.dishes[0].dish_event_id

        await service.delete_dish_event(event_id)
        first = (await repo.get_dish_event(event_id)).deleted_at
        await service.delete_dish_event(event_id)

        assert (await repo.get_dish_event(event_id)).deleted_at == first

    @pytest.mark.asyncio
    async def test_delete_other_users_event_is_not_found(self, make_service):
        created = await make_service().create_food_entry(_create("Bagel"))

        with pytest.raises(NotFound):
            await make_service(user_id=OTHER_USER_ID).delete_dish_event(
                created.dishes[0].dish_event_id
            )
