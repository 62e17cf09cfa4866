from __future__ import annotations

import asyncio

from enrichment import EnrichmentCoordinator, build_transcript_payload
from errors import ApiError
from models import TranscriptEntry


def _entries(n: int, start: int = 1) -> list[TranscriptEntry]:
    return [
        TranscriptEntry(id=i, time="10:00:00", speaker="Speaker", text=f"line {i}")
        for i in range(start, start + n)
    ]


def test_payload_keeps_last_30_lines() -> None:
    payload = build_transcript_payload(_entries(40))
    lines = payload.split("\n")

    assert len(lines) == 30
    assert lines[0] == "Speaker: line 11"
    assert lines[-1] == "Speaker: line 40"


def test_payload_is_truncated_from_the_front() -> None:
    entries = [TranscriptEntry(id=i, time="", speaker="Speaker", text="x" * 200) for i in range(30)]
    payload = build_transcript_payload(entries)

    assert len(payload) == 3500
    assert payload.endswith("x" * 200)


def test_first_notify_calls_immediately(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        changes: list[bool] = []
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler, on_change=lambda: changes.append(True))

        coordinator.notify(_entries(1))
        assert coordinator.is_updating is True
        await scheduler.settle()

        assert enrichment_service.calls == ["Speaker: line 1"]
        assert coordinator.is_updating is False
        assert coordinator.result.knowledge_cards[0].title == "call 1"
        assert coordinator.result.fetched_at == 0.0
        assert coordinator.error is None
        assert changes

    asyncio.run(scenario())


def test_notify_inside_window_is_deferred_not_dropped(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)

        coordinator.notify(_entries(1))
        await scheduler.settle()
        await scheduler.advance(1.0)

        coordinator.notify(_entries(2))
        await scheduler.advance(0.5)
        coordinator.notify(_entries(3))

        assert len(enrichment_service.calls) == 1
        assert coordinator.retry_pending is True
        assert len(scheduler.pending_timers()) == 1

        await scheduler.advance(2.0)  # t=3.5, still inside the window
        assert len(enrichment_service.calls) == 1

        await scheduler.advance(0.5)  # t=4.0, retry fires with the freshest list
        assert len(enrichment_service.calls) == 2
        assert enrichment_service.calls[1].endswith("Speaker: line 3")
        assert coordinator.retry_pending is False

    asyncio.run(scenario())


def test_at_most_one_call_per_window(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)
        starts: list[float] = []
        original = enrichment_service.enrich

        async def recording_enrich(transcript: str):
            starts.append(scheduler.now())
            return await original(transcript)

        enrichment_service.enrich = recording_enrich

        for i in range(1, 41):
            coordinator.notify(_entries(i))
            await scheduler.advance(0.5)
        await scheduler.advance(10)

        assert all(b - a >= 4.0 for a, b in zip(starts, starts[1:]))
        assert enrichment_service.calls[-1].endswith("Speaker: line 40")

    asyncio.run(scenario())


def test_in_flight_call_blocks_new_calls(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        enrichment_service.hold = asyncio.Event()
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)

        coordinator.notify(_entries(1))
        await scheduler.settle()
        await scheduler.advance(5.0)
        coordinator.notify(_entries(2))
        await scheduler.advance(3.0)

        assert len(enrichment_service.calls) == 1
        assert coordinator.is_updating is True

        enrichment_service.hold.set()
        await scheduler.settle()
        assert coordinator.is_updating is False

        await scheduler.advance(1.0)
        assert len(enrichment_service.calls) == 2
        assert enrichment_service.calls[1].endswith("Speaker: line 2")

    asyncio.run(scenario())


def test_failure_keeps_previous_result_and_sets_error(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)

        coordinator.notify(_entries(1))
        await scheduler.settle()
        previous = coordinator.result

        enrichment_service.error = ApiError("All Groq keys failed or rate-limited", status=429)
        await scheduler.advance(5.0)
        coordinator.notify(_entries(2))
        await scheduler.settle()

        assert coordinator.result is previous
        assert coordinator.error == "All Groq keys failed or rate-limited"
        assert coordinator.is_updating is False
        assert coordinator.retry_pending is False

        enrichment_service.error = None
        await scheduler.advance(5.0)
        coordinator.notify(_entries(3))
        await scheduler.settle()

        assert coordinator.error is None
        assert coordinator.result.knowledge_cards[0].title == "call 3"

    asyncio.run(scenario())


def test_last_update_seconds_ago(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)
        assert coordinator.last_update_seconds_ago is None

        coordinator.notify(_entries(1))
        await scheduler.settle()
        await scheduler.advance(7.4)

        assert coordinator.last_update_seconds_ago == 7

    asyncio.run(scenario())


def test_clear_drops_result_and_pending_retry(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)
        coordinator.notify(_entries(1))
        await scheduler.settle()
        coordinator.notify(_entries(2))
        assert coordinator.retry_pending is True

        coordinator.clear()
        await scheduler.advance(10.0)

        assert coordinator.result.is_empty()
        assert coordinator.last_update_seconds_ago is None
        assert len(enrichment_service.calls) == 1

    asyncio.run(scenario())


def test_result_arriving_after_clear_is_discarded(scheduler, enrichment_service) -> None:
    async def scenario() -> None:
        enrichment_service.hold = asyncio.Event()
        coordinator = EnrichmentCoordinator(enrichment_service, scheduler)
        coordinator.notify(_entries(1))
        await scheduler.settle()

        coordinator.clear()
        enrichment_service.hold.set()
        await scheduler.settle()

        assert coordinator.result.is_empty()
        assert coordinator.is_updating is False

    asyncio.run(scenario())
