from franchise_ops.features.action_engine.services.reconciler import plan_reconciliation


def test_new_rule_is_created(action_items, make_output):
    plan = plan_reconciliation([make_output("CALL_001")], [])

    assert [o.rule_id for o in plan.create] == ["CALL_001"]
    assert plan.update == ()
    assert plan.resolve == ()


def test_refire_updates_existing_item(action_items, make_output):
    existing = action_items.add("loc-omaha", "CALL_001")

    plan = plan_reconciliation([make_output("CALL_001")], [existing])

    assert plan.create == ()
    assert len(plan.update) == 1
    item, output = plan.update[0]
    assert item.id == existing.id
    assert output.rule_id == "CALL_001"


def test_open_item_resolved_when_rule_stops_firing(action_items, make_output):
    stale = action_items.add("loc-omaha", "LEAD_001")
    kept = action_items.add("loc-omaha", "CALL_001")

    plan = plan_reconciliation([make_output("CALL_001")], [stale, kept])

    assert [i.id for i in plan.resolve] == [stale.id]


def test_in_progress_item_is_never_resolved(action_items):
    working = action_items.add("loc-omaha", "COMP_001", status="in_progress")

    plan = plan_reconciliation([], [working])

    assert plan.resolve == ()
    assert plan.is_empty


def test_in_progress_item_is_updated_not_duplicated(action_items, make_output):
    working = action_items.add("loc-omaha", "COMP_001", status="in_progress")

    plan = plan_reconciliation([make_output("COMP_001", priority="critical")], [working])

    assert plan.create == ()
    assert plan.update[0][0].id == working.id


def test_empty_fired_set_resolves_every_open_item(action_items):
    items = [action_items.add("loc-omaha", rule) for rule in ("LEAD_001", "MKT_001", "REP_001")]

    plan = plan_reconciliation([], items)

    assert {i.id for i in plan.resolve} == {i.id for i in items}


def test_duplicate_outputs_for_one_rule_collapse(make_output):
    plan = plan_reconciliation(
        [make_output("CALL_001", title="first"), make_output("CALL_001", title="second")], []
    )

    assert len(plan.create) == 1
    assert plan.create[0].title == "first"
    assert plan.fired_rule_ids == frozenset({"CALL_001"})


def test_terminal_items_are_ignored(action_items, make_output):
    dismissed = action_items.add("loc-omaha", "CALL_001", status="dismissed")

    plan = plan_reconciliation([make_output("CALL_001")], [dismissed])

    assert plan.resolve == ()
    assert plan.update == ()
    assert [o.rule_id for o in plan.create] == ["CALL_001"]
