import pytest

from franchise_ops.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


def test_registry_exposes_both_schedulers_and_single_passes():
    assert set(worker.JOB_REGISTRY) == {
        "action_engine",
        "automation_processor",
        "action_engine_once",
        "automation_processor_once",
    }


def test_job_name_from_environment(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["worker"])
    monkeypatch.setenv("WORKER_JOB", " Automation_Processor ")

    assert worker._resolve_job_name() == "automation_processor"
