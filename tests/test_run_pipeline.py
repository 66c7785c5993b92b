import yaml

import run_pipeline
from gigradar.models import FixedBudget
from gigradar.store import Store


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_add_manual_posting(tmp_path) -> None:
    db = str(tmp_path / "data" / "gigradar.db")
    src = _write(
        tmp_path / "job.yaml",
        {
            "source_id": "manual-1",
            "url": "https://example.com/job",
            "title": "Manual React gig",
            "description": "Hand-entered posting used to exercise scoring.",
            "budget": {"type": "fixed", "amount": 4000},
            "skill_tags": ["React"],
            "client": {"country": "Canada", "payment_verified": True},
        },
    )

    assert run_pipeline.add_manual(src, db) == 0

    with Store(db) as store:
        saved = store.get_raw_by_source_id("manual-1")
        assert saved.budget == FixedBudget(amount=4000.0)
        assert saved.client.country == "Canada"
        assert [p.source_id for p in store.pending_postings()] == ["manual-1"]


def test_add_manual_duplicate(tmp_path) -> None:
    db = str(tmp_path / "gigradar.db")
    src = _write(tmp_path / "job.yaml", {"source_id": "dup", "url": "u", "description": "d"})
    assert run_pipeline.add_manual(src, db) == 0
    assert run_pipeline.add_manual(src, db) == 1


def test_main_runs_process_only(monkeypatch, tmp_path) -> None:
    profile = tmp_path / "profile.yaml"
    profile.write_text("skills: [React]\n", encoding="utf-8")
    monkeypatch.setattr(run_pipeline, "PROFILE_PATH", profile)
    calls = {}

    def fake_run_once(query, max_items, **kwargs):
        calls.update(kwargs, query=query, max_items=max_items)
        return {"success": True, "scraped": 0, "known": 0, "processed": 2, "failed": 0, "notified": 0}

    monkeypatch.setattr("gigradar.agent.run_once", fake_run_once)

    assert run_pipeline.main(["--process-only"]) == 0
    assert calls["process_only"] is True
    assert calls["query"] is None


def test_main_without_profile(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(run_pipeline, "PROFILE_PATH", tmp_path / "missing.yaml")
    assert run_pipeline.main([]) == 1
