#!/usr/bin/env python3

"""
Test Configuration and Fixtures

Provides shared fixtures for unit, integration and end-to-end tests.
"""

import shutil
import tempfile

import pytest
import pytest_asyncio

from ancplus.audio.decoder import AudioDecoder
from ancplus.capabilities.base import CapabilityCategory
from ancplus.config import DecoderConfig, ExtractionConfig
from ancplus.events.event_bus import EventBus
from ancplus.extraction.media_pipeline import MediaExtractionPipeline
from ancplus.loading.module_registry import CapabilitySpec, ModuleRegistry
from ancplus.pipeline.audio_pipeline import AudioPipeline
from tests.test_utils import (
    CountingFactory,
    FakeDetector,
    FakeSeparationEngine,
    FakeTranscodingEngine,
    RecordingHandler,
    create_test_wav_data
)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    temp_path = tempfile.mkdtemp(prefix="ancplus_test_")
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_fake_instances():
    FakeSeparationEngine.instances.clear()
    yield
    FakeSeparationEngine.instances.clear()


@pytest_asyncio.fixture
async def test_event_bus():
    """Create a started event bus"""
    event_bus = EventBus()
    await event_bus.start()

    yield event_bus

    await event_bus.stop()


@pytest.fixture
def event_recorder(test_event_bus):
    recorder = RecordingHandler()
    test_event_bus.subscribe_all(recorder)
    return recorder


@pytest.fixture
def separation_factory():
    return CountingFactory(FakeSeparationEngine, delay=0.05)


@pytest.fixture
def fake_registry(separation_factory, test_event_bus):
    """Registry over fake capabilities only"""
    specs = [
        CapabilitySpec("source-separation", CapabilityCategory.SEPARATION, separation_factory),
        CapabilitySpec("voice-detection", CapabilityCategory.DETECTION, FakeDetector),
    ]
    groups = {"separate": ["source-separation", "voice-detection"], "upload": ["voice-detection"]}
    return ModuleRegistry(specs, groups, event_bus=test_event_bus)


@pytest.fixture
def decoder():
    # soundfile handles every format used in tests
    return AudioDecoder(DecoderConfig(ffmpeg_fallback=False))


@pytest.fixture
def fake_engine():
    return FakeTranscodingEngine(load_delay=0.02)


@pytest_asyncio.fixture
async def extraction_pipeline(fake_engine, decoder, test_event_bus, temp_dir):
    pipeline = MediaExtractionPipeline(
        engine=fake_engine,
        decoder=decoder,
        config=ExtractionConfig(work_dir=temp_dir),
        event_bus=test_event_bus,
    )
    yield pipeline
    await pipeline.dispose()


@pytest.fixture
def audio_pipeline(fake_registry, decoder, test_event_bus, extraction_pipeline):
    return AudioPipeline(fake_registry, decoder, test_event_bus, extraction_pipeline)


@pytest.fixture
def sample_audio_data():
    """Sample audio data for testing"""
    return create_test_wav_data(duration=1.0, sample_rate=16000)


def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "pipeline: Audio pipeline tests")
    config.addinivalue_line("markers", "events: Event system tests")
    config.addinivalue_line("markers", "extraction: Media extraction tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location"""
    for item in items:
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.path):
            item.add_marker(pytest.mark.integration)
        elif "e2e" in str(item.path):
            item.add_marker(pytest.mark.e2e)
