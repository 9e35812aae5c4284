"""Tests for the sequential preview backfill."""

from __future__ import annotations

import pytest

from drawing_previews.backfill import BackfillDriver, ItemOutcome
from drawing_previews.errors import RepositoryError


class _FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class _UnavailableRepository:
    def list_missing_previews(self):
        raise RepositoryError("Listing drawings without previews failed: connection refused")


def _driver(repository, store, pipeline, associator, **kwargs) -> BackfillDriver:
    kwargs.setdefault("sleep", _FakeSleep())
    return BackfillDriver(repository, store, pipeline, associator, **kwargs)


def test_corrupt_item_does_not_stop_the_run(repository, store, pipeline, associator, add_document, image_bytes, pdf_bytes) -> None:
    """Three pending drawings with a corrupt middle one: two previews, one failure."""

    newest = add_document("newest.png", "png", image_bytes(1600, 1200), created_at=300.0)
    corrupt = add_document("broken.pdf", "pdf", b"%PDF-1.4 not really", created_at=200.0)
    oldest = add_document("oldest.pdf", "pdf", pdf_bytes, created_at=100.0)

    run = _driver(repository, store, pipeline, associator).run()

    assert run.succeeded == 2
    assert run.failed == 1
    assert run.skipped == 0
    assert run.failures[0].document_id == corrupt.id
    assert run.failures[0].file_name == "broken.pdf"

    assert repository.get(newest.id).preview_key == f"thumbnails/{newest.id}.jpg"
    assert repository.get(oldest.id).preview_key == f"thumbnails/{oldest.id}.jpg"
    assert repository.get(corrupt.id).preview_key is None
    assert not store.exists(f"thumbnails/{corrupt.id}.jpg")


def test_items_are_processed_newest_first(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    first = add_document("a.png", "png", image_bytes(20, 20), created_at=10.0)
    third = add_document("c.png", "png", image_bytes(20, 20), created_at=30.0)
    second = add_document("b.png", "png", image_bytes(20, 20), created_at=20.0)
    seen: list[str] = []

    def _record(index, total, document, outcome, detail) -> None:
        seen.append(document.id)

    _driver(repository, store, pipeline, associator, on_progress=_record).run()

    assert seen == [third.id, second.id, first.id]


def test_unsupported_items_are_skipped(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    """CAD files are counted as skipped and keep a null preview."""

    cad = add_document("plan.dwg", "dwg", b"AC1032 binary", created_at=2.0)
    photo = add_document("photo.jpg", "jpg", image_bytes(100, 80, fmt="JPEG"), created_at=1.0)
    outcomes: list[ItemOutcome] = []

    run = _driver(
        repository,
        store,
        pipeline,
        associator,
        on_progress=lambda index, total, document, outcome, detail: outcomes.append(outcome),
    ).run()

    assert (run.succeeded, run.skipped, run.failed) == (1, 1, 0)
    assert outcomes == [ItemOutcome.SKIPPED, ItemOutcome.SUCCEEDED]
    assert repository.get(cad.id).preview_key is None
    assert repository.get(photo.id).preview_key is not None


def test_already_linked_drawings_are_not_listed(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    add_document("done.png", "png", image_bytes(10, 10), created_at=1.0, preview_key="thumbnails/done.jpg")

    run = _driver(repository, store, pipeline, associator).run()

    assert run.total == 0


def test_missing_source_object_is_a_failure(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    document = add_document("gone.png", "png", image_bytes(10, 10), created_at=1.0)
    store._path_for(document.storage_key).unlink()

    run = _driver(repository, store, pipeline, associator).run()

    assert run.failed == 1
    assert "Download failed" in run.failures[0].message


def test_delay_between_items_but_not_after_last(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    for index in range(4):
        add_document(f"{index}.png", "png", image_bytes(10, 10), created_at=float(index))
    sleep = _FakeSleep()

    _driver(repository, store, pipeline, associator, sleep=sleep, delay_seconds=0.5).run()

    assert sleep.calls == [0.5, 0.5, 0.5]


def test_zero_delay_never_sleeps(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    add_document("a.png", "png", image_bytes(10, 10), created_at=1.0)
    add_document("b.png", "png", image_bytes(10, 10), created_at=2.0)
    sleep = _FakeSleep()

    _driver(repository, store, pipeline, associator, sleep=sleep, delay_seconds=0).run()

    assert sleep.calls == []


def test_listing_failure_aborts_the_run(store, pipeline, associator) -> None:
    with pytest.raises(RepositoryError):
        _driver(_UnavailableRepository(), store, pipeline, associator).run()


def test_progress_reports_position_and_total(repository, store, pipeline, associator, add_document, image_bytes) -> None:
    add_document("a.png", "png", image_bytes(10, 10), created_at=1.0)
    add_document("b.png", "png", image_bytes(10, 10), created_at=2.0)
    positions: list[tuple[int, int]] = []

    _driver(
        repository,
        store,
        pipeline,
        associator,
        on_progress=lambda index, total, document, outcome, detail: positions.append((index, total)),
    ).run()

    assert positions == [(1, 2), (2, 2)]


def test_summary_lists_failures(repository, store, pipeline, associator, add_document) -> None:
    document = add_document("bad.png", "png", b"not an image", created_at=1.0)

    summary = _driver(repository, store, pipeline, associator).run().summary()

    assert summary["succeeded"] == 0
    assert summary["failed"] == 1
    assert summary["failures"][0]["document_id"] == document.id
