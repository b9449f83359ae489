from dataclasses import replace
from datetime import timedelta

import pytest

SMS = ("send_sms", {"message": "Hi {{first_name}}, this is {{location_name}}"}, 0)
EMAIL = ("send_email", {"subject": "Welcome", "body": "Hello"}, 0)


@pytest.fixture
def lead(automation_repo):
    return automation_repo.add_lead(
        "lead-1", first_name="Jamie", last_name="Cho", phone="402-555-0199", email="j@example.com"
    )


@pytest.mark.asyncio
async def test_due_enrollment_advances_to_next_step(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(
        steps=[SMS, EMAIL, ("send_sms", {"message": "Still there?"}, 3600)]
    )
    enrollment = automation_repo.enroll(automation, lead, position=2, due=now - timedelta(minutes=1))

    result = await build_processor().run()

    assert result.to_dict() == {
        "processed": 1,
        "errors": 0,
        "total": 1,
        "skipped": 0,
        "error_messages": [],
    }
    after = automation_repo.enrollments[enrollment.id]
    assert after.current_step_order == 3
    assert after.status == "active"
    assert after.next_execution_at == now + timedelta(seconds=3600)

    [log] = activity_logs.automation_logs
    assert log["status"] == "success"
    assert log["step_id"] == "auto-1-step-2"
    assert log["result"]["type"] == "email"

    [activity] = activity_logs.activities
    assert activity["activity_type"] == "email_sent"
    assert activity["metadata"] == {"automation_name": "New lead nurture", "step_position": 2}


@pytest.mark.asyncio
async def test_last_step_completes_enrollment(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(steps=[SMS])
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    after = automation_repo.enrollments[enrollment.id]
    assert after.status == "completed"
    assert after.completed_at == now
    assert len(activity_logs.automation_logs) == 1


@pytest.mark.asyncio
async def test_missing_step_completes_without_logging(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(steps=[SMS])
    enrollment = automation_repo.enroll(automation, lead, position=4, due=now)

    result = await build_processor().run()

    assert result.processed == 1
    assert automation_repo.enrollments[enrollment.id].status == "completed"
    assert activity_logs.automation_logs == []
    assert activity_logs.activities == []


@pytest.mark.asyncio
async def test_paused_automation_is_left_untouched(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(is_active=False, steps=[SMS, EMAIL])
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    result = await build_processor().run()

    assert result.skipped == 1
    assert result.processed == 0
    assert automation_repo.enrollments[enrollment.id] == enrollment
    assert activity_logs.automation_logs == []


@pytest.mark.asyncio
async def test_future_enrollments_are_not_due(build_processor, automation_repo, lead, now):
    automation = automation_repo.add_automation(steps=[SMS])
    automation_repo.enroll(automation, lead, position=1, due=now + timedelta(hours=1))

    result = await build_processor().run()

    assert result.total == 0
    assert result.processed == 0


@pytest.mark.asyncio
async def test_mock_mode_prefixes_timeline_notes(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(steps=[SMS, EMAIL])
    automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor(mock_mode=True).run()

    [activity] = activity_logs.activities
    assert activity["notes"] == '[MOCK] Would send SMS to 402-555-0199: "Hi Jamie, this is Omaha..."'
    assert activity["activity_type"] == "sms_sent"


@pytest.mark.asyncio
async def test_live_mode_has_no_prefix(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(steps=[SMS, EMAIL])
    automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor(mock_mode=False).run()

    assert not activity_logs.activities[0]["notes"].startswith("[MOCK]")


@pytest.mark.asyncio
async def test_allow_listed_update_is_applied(build_processor, automation_repo, lead, now):
    automation = automation_repo.add_automation(
        steps=[("update_lead", {"field": "score", "value": 80}, 0), EMAIL]
    )
    automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    assert automation_repo.lead_updates == [("lead-1", "score", 80)]
    assert automation_repo.leads["lead-1"].score == 80


@pytest.mark.asyncio
async def test_non_editable_field_is_never_written(build_processor, automation_repo, activity_logs, lead, now):
    automation = automation_repo.add_automation(
        steps=[("update_lead", {"field": "organization_id", "value": "evil"}, 0), EMAIL]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    result = await build_processor().run()

    assert result.errors == 0
    assert automation_repo.lead_updates == []
    assert automation_repo.enrollments[enrollment.id].current_step_order == 2
    assert activity_logs.automation_logs[0]["result"]["applied"] is False


@pytest.mark.asyncio
async def test_change_stage_mutates_lead(build_processor, automation_repo, lead, now):
    automation = automation_repo.add_automation(
        steps=[("change_stage", {"stage_id": "stage-contacted", "stage_name": "Contacted"}, 0)]
    )
    automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    assert automation_repo.lead_updates == [("lead-1", "stage_id", "stage-contacted")]


@pytest.mark.asyncio
async def test_failed_mutation_still_advances_and_logs_failure(
    build_processor, automation_repo, activity_logs, lead, now
):
    automation_repo.fail_mutations = True
    automation = automation_repo.add_automation(
        steps=[("update_lead", {"field": "source", "value": "referral"}, 0), EMAIL]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    result = await build_processor().run()

    assert result.processed == 1
    assert result.errors == 0
    assert result.error_messages == [
        f"Step 1 mutation failed for enrollment {enrollment.id}: leads table locked"
    ]
    assert automation_repo.enrollments[enrollment.id].current_step_order == 2
    assert [log["status"] for log in activity_logs.automation_logs] == ["success", "failed"]
    assert activity_logs.automation_logs[1]["result"]["column"] == "source"


@pytest.mark.asyncio
async def test_failed_log_write_rolls_back_lead_update(
    build_processor, automation_repo, activity_logs, lead, now
):
    automation = automation_repo.add_automation(
        steps=[("update_lead", {"field": "source", "value": "referral"}, 0), EMAIL]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    async def log_table_unavailable(*args, **kwargs):
        raise RuntimeError("automation_logs unavailable")

    activity_logs.insert_automation_log = log_table_unavailable

    result = await build_processor().run()

    assert result.processed == 0
    assert result.errors == 1
    assert result.error_messages == [
        f"Enrollment {enrollment.id} failed: automation_logs unavailable"
    ]
    assert automation_repo.lead_updates == []
    assert automation_repo.leads[lead.id].source is None
    assert automation_repo.enrollments[enrollment.id].current_step_order == 1
    assert activity_logs.activities == []


@pytest.mark.asyncio
async def test_enrollment_moved_by_another_writer_is_reported(
    build_processor, automation_repo, activity_logs, lead, now
):
    automation = automation_repo.add_automation(steps=[SMS, EMAIL, SMS])
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)
    original_load_step = automation_repo.load_step

    async def moved_meanwhile(automation_id, position):
        current = automation_repo.enrollments[enrollment.id]
        if current.current_step_order == 1 and position == 2:
            automation_repo.enrollments[enrollment.id] = replace(current, current_step_order=2)
        return await original_load_step(automation_id, position)

    automation_repo.load_step = moved_meanwhile

    result = await build_processor().run()

    assert result.processed == 0
    assert result.errors == 1
    assert result.error_messages == [
        f"Enrollment {enrollment.id} failed: "
        f"Enrollment {enrollment.id} is no longer active at step 1"
    ]
    assert automation_repo.enrollments[enrollment.id].current_step_order == 2
    assert activity_logs.automation_logs == []
    assert activity_logs.activities == []


@pytest.mark.asyncio
async def test_one_failing_enrollment_does_not_stop_the_batch(
    build_processor, automation_repo, lead, now
):
    broken = automation_repo.add_automation(
        "auto-broken", steps=[("condition", {"field": "password", "operator": "equals"}, 0)]
    )
    healthy = automation_repo.add_automation("auto-ok", steps=[SMS, EMAIL])
    bad = automation_repo.enroll(broken, lead, position=1, due=now - timedelta(minutes=5))
    good = automation_repo.enroll(healthy, lead, position=1, due=now)

    result = await build_processor().run()

    assert result.total == 2
    assert result.processed == 1
    assert result.errors == 1
    assert result.error_messages[0].startswith(f"Enrollment {bad.id} failed:")
    assert automation_repo.enrollments[bad.id].current_step_order == 1
    assert automation_repo.enrollments[good.id].current_step_order == 2


@pytest.mark.asyncio
async def test_locked_enrollment_is_skipped(build_processor, automation_repo, fake_lock, lead, now):
    automation = automation_repo.add_automation(steps=[SMS, EMAIL])
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)
    fake_lock.held.add(f"automation:enrollment:{enrollment.id}")

    result = await build_processor().run()

    assert result.skipped == 1
    assert automation_repo.enrollments[enrollment.id].current_step_order == 1


@pytest.mark.asyncio
async def test_batch_size_limits_work_per_tick(build_processor, automation_repo, now):
    automation = automation_repo.add_automation(steps=[SMS, EMAIL])
    for i in range(3):
        lead = automation_repo.add_lead(f"lead-{i}", first_name=f"L{i}")
        automation_repo.enroll(automation, lead, position=1, due=now - timedelta(minutes=i))

    result = await build_processor(batch_size=2).run()

    assert result.total == 2
    assert result.processed == 2


@pytest.mark.asyncio
async def test_true_condition_continues(build_processor, automation_repo, lead, now):
    automation = automation_repo.add_automation(
        steps=[
            ("condition", {"field": "phone", "operator": "is_not_empty", "on_false": "end"}, 0),
            SMS,
        ]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    assert automation_repo.enrollments[enrollment.id].current_step_order == 2


@pytest.mark.asyncio
async def test_false_condition_ends_enrollment(build_processor, automation_repo, activity_logs, now):
    lead = automation_repo.add_lead("lead-2", first_name="Ana")
    automation = automation_repo.add_automation(
        steps=[("condition", {"field": "phone", "operator": "is_not_empty"}, 0), SMS]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    assert automation_repo.enrollments[enrollment.id].status == "completed"
    assert activity_logs.automation_logs[0]["result"]["passed"] is False
    assert activity_logs.activities[0]["activity_type"] == "automation_step"


@pytest.mark.asyncio
async def test_false_condition_skip_jumps_over_next_step(build_processor, automation_repo, now):
    lead = automation_repo.add_lead("lead-3", source="walk_in")
    automation = automation_repo.add_automation(
        steps=[
            ("condition", {"field": "source", "operator": "equals", "value": "google", "on_false": "skip"}, 0),
            SMS,
            ("send_email", {"subject": "Walk-in follow up"}, 600),
        ]
    )
    enrollment = automation_repo.enroll(automation, lead, position=1, due=now)

    await build_processor().run()

    after = automation_repo.enrollments[enrollment.id]
    assert after.current_step_order == 3
    assert after.next_execution_at == now + timedelta(seconds=600)
