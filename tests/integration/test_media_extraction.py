#!/usr/bin/env python3

"""
Media Extraction Pipeline Integration Tests

Runs the pipeline against the in-memory transcoding engine: staged progress,
shared engine bootstrap, batch partial failure and job lifetime.
"""

import asyncio

import pytest

from ancplus.config import ExtractionConfig
from ancplus.errors import DecodeError, TranscodeError, UnsupportedContainer
from ancplus.extraction.media_pipeline import MediaExtractionPipeline
from ancplus.extraction.options import AudioFormat, ExtractionOptions, Quality
from ancplus.extraction.progress import ExtractionStage
from tests.test_utils import (
    FakeTranscodingEngine,
    assert_result_failure,
    assert_result_success,
    create_test_video_file,
    wait_for_condition
)


@pytest.mark.integration
@pytest.mark.extraction
class TestExtractionJobs:

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(self, extraction_pipeline, temp_dir):
        video = create_test_video_file(temp_dir, "holiday.mp4")

        job = extraction_pipeline.submit(video)
        updates = [update async for update in job.progress]
        output = assert_result_success(await job.result())

        percentages = [u.percentage for u in updates]
        assert percentages == sorted(percentages)
        assert percentages[-1] == 100.0
        assert updates[-1].stage is ExtractionStage.COMPLETE
        assert [s for s in dict.fromkeys(u.stage for u in updates)] == [
            ExtractionStage.LOADING, ExtractionStage.EXTRACTING, ExtractionStage.COMPLETE
        ]
        assert all(0.0 <= p <= 100.0 for p in percentages)

        assert output.job_id == job.job_id
        assert output.format == "wav"
        assert output.mime_type == "audio/wav"
        assert output.size > 0
        assert output.buffer is None
        assert job.done()

    @pytest.mark.asyncio
    async def test_extracting_band_follows_engine_progress(self, extraction_pipeline, temp_dir):
        job = extraction_pipeline.submit(create_test_video_file(temp_dir, "talk.mov"))
        updates = [update async for update in job.progress]
        await job.result()

        extracting = [u.percentage for u in updates if u.stage is ExtractionStage.EXTRACTING]
        assert extracting[:5] == [10.0, 30.0, 50.0, 70.0, 90.0]
        assert all(u.time_remaining is not None for u in updates
                   if u.stage is ExtractionStage.EXTRACTING and u.percentage > 10.0)

    @pytest.mark.asyncio
    async def test_decode_adds_converting_stage(self, extraction_pipeline, temp_dir):
        job = extraction_pipeline.submit(create_test_video_file(temp_dir, "clip.mkv"), decode=True)
        updates = [update async for update in job.progress]
        output = assert_result_success(await job.result())

        stages = list(dict.fromkeys(u.stage for u in updates))
        assert stages == [
            ExtractionStage.LOADING, ExtractionStage.EXTRACTING,
            ExtractionStage.CONVERTING, ExtractionStage.COMPLETE
        ]
        assert output.buffer is not None
        assert output.buffer.duration == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_output_options_reach_the_engine(self, extraction_pipeline, fake_engine, temp_dir):
        options = ExtractionOptions(format=AudioFormat.MP3, quality=Quality.LOW, channels=1,
                                    start_time=2.0, end_time=8.0)

        output = assert_result_success(
            await extraction_pipeline.extract(create_test_video_file(temp_dir, "a.webm"), options)
        )

        command = fake_engine.commands[0]
        assert command[command.index("-acodec") + 1] == "libmp3lame"
        assert command[command.index("-b:a") + 1] == "128k"
        assert command[command.index("-ss") + 1] == "2.0"
        assert command[command.index("-ac") + 1] == "1"
        assert output.mime_type == "audio/mpeg"
        assert output.blob.startswith(b"FAKE-")

    @pytest.mark.asyncio
    async def test_workspace_files_are_removed(self, extraction_pipeline, fake_engine, temp_dir):
        await extraction_pipeline.extract(create_test_video_file(temp_dir, "a.mp4"))
        await extraction_pipeline.extract(create_test_video_file(temp_dir, "bad.mp4", corrupt=True))

        assert fake_engine.files == {}


@pytest.mark.integration
@pytest.mark.extraction
class TestEngineBootstrap:

    @pytest.mark.asyncio
    async def test_concurrent_jobs_load_engine_once(self, extraction_pipeline, fake_engine, temp_dir):
        videos = [create_test_video_file(temp_dir, f"v{i}.mp4") for i in range(4)]

        results = await asyncio.gather(*(extraction_pipeline.extract(v) for v in videos))

        assert all(r.is_success() for r in results)
        assert fake_engine.load_calls == 1
        assert extraction_pipeline.engine_load_count == 1
        assert extraction_pipeline.engine_loaded
        assert len({r.get_value().job_id for r in results}) == 4

    @pytest.mark.asyncio
    async def test_engine_load_failure_is_reported_and_retryable(self, decoder, temp_dir):
        engine = FakeTranscodingEngine(fail_load=True)
        pipeline = MediaExtractionPipeline(engine=engine, decoder=decoder,
                                           config=ExtractionConfig(work_dir=temp_dir))
        video = create_test_video_file(temp_dir, "clip.mp4")

        job = pipeline.submit(video)
        updates = [update async for update in job.progress]
        error = assert_result_failure(await job.result(), TranscodeError)

        assert error.stage == "loading"
        assert error.job_id == job.job_id
        assert "initialize" in error.user_message
        assert updates[-1].stage is ExtractionStage.FAILED
        assert not pipeline.engine_loaded

        engine.fail_load = False
        assert_result_success(await pipeline.extract(video))
        assert engine.load_calls == 2
        await pipeline.dispose()

    @pytest.mark.asyncio
    async def test_dispose_terminates_engine(self, fake_engine, decoder, temp_dir):
        pipeline = MediaExtractionPipeline(engine=fake_engine, decoder=decoder,
                                           config=ExtractionConfig(work_dir=temp_dir))
        await pipeline.extract(create_test_video_file(temp_dir, "clip.mp4"))

        await pipeline.dispose()

        assert fake_engine.terminated
        assert not pipeline.engine_loaded

    @pytest.mark.asyncio
    async def test_dispose_without_engine_is_a_no_op(self, fake_engine, decoder):
        pipeline = MediaExtractionPipeline(engine=fake_engine, decoder=decoder)
        await pipeline.dispose()

        assert not fake_engine.terminated


@pytest.mark.integration
@pytest.mark.extraction
class TestFailures:

    @pytest.mark.asyncio
    async def test_unsupported_container(self, extraction_pipeline, fake_engine, temp_dir):
        job = extraction_pipeline.submit(create_test_video_file(temp_dir, "notes.txt"))
        updates = [update async for update in job.progress]
        error = assert_result_failure(await job.result(), UnsupportedContainer)

        assert error.container == "txt"
        assert error.job_id == job.job_id
        assert [u.stage for u in updates] == [ExtractionStage.FAILED]
        assert fake_engine.load_calls == 0

    @pytest.mark.asyncio
    async def test_corrupt_input_fails_in_extracting(self, extraction_pipeline, temp_dir):
        job = extraction_pipeline.submit(create_test_video_file(temp_dir, "broken.mp4", corrupt=True))
        updates = [update async for update in job.progress]
        error = assert_result_failure(await job.result(), TranscodeError)

        assert error.stage == "extracting"
        assert "Invalid data" in error.details
        assert "Invalid data" not in error.user_message
        assert updates[-1].stage is ExtractionStage.FAILED
        assert updates[-1].percentage == updates[-2].percentage

    @pytest.mark.asyncio
    async def test_undecodable_output_fails_in_converting(self, extraction_pipeline, temp_dir):
        job = extraction_pipeline.submit(create_test_video_file(temp_dir, "talk.mp4"),
                                         ExtractionOptions(format=AudioFormat.MP3), decode=True)

        error = assert_result_failure(await job.result(), DecodeError)
        assert error.job_id == job.job_id
        assert error.stage == "converting"
        assert error.to_dict()["stage"] == "converting"
        assert job.stage is ExtractionStage.FAILED

    @pytest.mark.asyncio
    async def test_batch_continues_past_failures(self, extraction_pipeline, temp_dir):
        files = [
            create_test_video_file(temp_dir, "a.mp4"),
            create_test_video_file(temp_dir, "b.mp4", corrupt=True),
            create_test_video_file(temp_dir, "c.mov"),
        ]

        results = await extraction_pipeline.batch_extract(files)

        assert [r.index for r in results] == [0, 1, 2]
        assert [r.file_name for r in results] == ["a.mp4", "b.mp4", "c.mov"]
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, TranscodeError)
        assert results[1].output is None
        assert results[0].output.size > 0 and results[2].output.size > 0

    @pytest.mark.asyncio
    async def test_empty_batch(self, extraction_pipeline):
        assert await extraction_pipeline.batch_extract([]) == []


@pytest.mark.integration
@pytest.mark.extraction
class TestJobLifetime:

    @pytest.mark.asyncio
    async def test_abandoned_wait_does_not_cancel_job(self, decoder, temp_dir):
        engine = FakeTranscodingEngine(exec_delay=0.03)
        pipeline = MediaExtractionPipeline(engine=engine, decoder=decoder)
        job = pipeline.submit(create_test_video_file(temp_dir, "slow.mp4"))

        waiter = asyncio.create_task(job.result())
        await asyncio.sleep(0.02)
        waiter.cancel()

        output = assert_result_success(await job.result())
        assert output.size > 0
        assert waiter.cancelled()
        await pipeline.dispose()

    @pytest.mark.asyncio
    async def test_dispose_cancels_running_jobs(self, decoder, temp_dir):
        engine = FakeTranscodingEngine(exec_delay=0.5)
        pipeline = MediaExtractionPipeline(engine=engine, decoder=decoder)
        job = pipeline.submit(create_test_video_file(temp_dir, "long.mp4"))

        assert await wait_for_condition(lambda: job.stage is ExtractionStage.EXTRACTING, timeout=2.0)
        await pipeline.dispose()

        error = assert_result_failure(await job.result(), TranscodeError)
        assert error.stage == "extracting"
        assert error.job_id == job.job_id
        assert job.stage is ExtractionStage.FAILED
        assert job.progress.closed

    @pytest.mark.asyncio
    async def test_dispose_during_batch_reports_every_file(self, decoder, temp_dir):
        engine = FakeTranscodingEngine(exec_delay=0.2)
        pipeline = MediaExtractionPipeline(engine=engine, decoder=decoder)
        files = [create_test_video_file(temp_dir, f"{name}.mp4") for name in ("a", "b", "c")]

        batch = asyncio.create_task(pipeline.batch_extract(files))
        await asyncio.sleep(0.3)
        await pipeline.dispose()
        results = await batch

        assert [r.file_name for r in results] == ["a.mp4", "b.mp4", "c.mp4"]
        assert all(isinstance(r.error, TranscodeError) for r in results)
        assert [r.error.stage for r in results] == ["extracting", "loading", "loading"]
        assert engine.terminated
        assert engine.load_calls == 1

    @pytest.mark.asyncio
    async def test_dispose_waits_for_engine_bootstrap(self, decoder, temp_dir):
        engine = FakeTranscodingEngine(load_delay=0.2)
        pipeline = MediaExtractionPipeline(engine=engine, decoder=decoder)
        job = pipeline.submit(create_test_video_file(temp_dir, "slow.mp4"))

        assert await wait_for_condition(lambda: engine.load_calls == 1, timeout=2.0)
        await pipeline.dispose()

        assert engine.terminated
        assert not pipeline.engine_loaded
        assert assert_result_failure(await job.result(), TranscodeError).stage == "loading"


@pytest.mark.integration
@pytest.mark.extraction
class TestProbe:

    @pytest.mark.asyncio
    async def test_probe(self, extraction_pipeline, temp_dir):
        info = assert_result_success(await extraction_pipeline.probe(create_test_video_file(temp_dir, "a.mp4")))

        assert info.duration == 12.5
        assert info.has_audio
        assert info.video_codec == "h264"

    @pytest.mark.asyncio
    async def test_probe_corrupt(self, extraction_pipeline, temp_dir):
        video = create_test_video_file(temp_dir, "a.mp4", corrupt=True)
        assert_result_failure(await extraction_pipeline.probe(video), TranscodeError)

    @pytest.mark.asyncio
    async def test_probe_unsupported(self, extraction_pipeline, temp_dir):
        video = create_test_video_file(temp_dir, "a.doc")
        assert_result_failure(await extraction_pipeline.probe(video), UnsupportedContainer)


@pytest.mark.integration
@pytest.mark.events
class TestExtractionEvents:

    @pytest.mark.asyncio
    async def test_completed_and_failed_events(self, extraction_pipeline, event_recorder, temp_dir):
        ok = await extraction_pipeline.extract(create_test_video_file(temp_dir, "good.mp4"))
        bad = await extraction_pipeline.extract(create_test_video_file(temp_dir, "bad.mp4", corrupt=True))

        assert await wait_for_condition(
            lambda: event_recorder.of_type("extraction.completed") and event_recorder.of_type("extraction.failed")
        )
        completed = event_recorder.of_type("extraction.completed")[0]
        failed = event_recorder.of_type("extraction.failed")[0]

        assert completed.data["job_id"] == ok.get_value().job_id
        assert completed.data["file_name"] == "good.mp4"
        assert completed.data["format"] == "wav"
        assert failed.data["job_id"] == bad.get_error().job_id
        assert failed.data["stage"] == "extracting"
