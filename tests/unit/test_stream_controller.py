#!/usr/bin/env python3

"""
Stream Controller Unit Tests

Volume bounds, idempotence and isolation between streams.
"""

import math

import pytest

from ancplus.audio.streams import AudioStream, PlaybackState, StreamController, StreamType
from ancplus.errors import OutOfRange
from tests.test_utils import assert_result_failure, assert_result_success, create_test_buffer


def make_stream(stream_id: str = "s-voice", stream_type: StreamType = StreamType.VOICE,
                state: PlaybackState = None) -> AudioStream:
    return AudioStream(id=stream_id, type=stream_type, source=create_test_buffer(0.1),
                       state=state or PlaybackState())


@pytest.mark.unit
class TestStreamController:

    def test_set_volume_within_bounds(self):
        controller = StreamController(make_stream())

        state = assert_result_success(controller.set_volume(0.25))
        assert state.volume == 0.25
        assert controller.state.volume == 0.25

    @pytest.mark.parametrize("volume", [0.0, 1.0])
    def test_volume_bounds_are_inclusive(self, volume):
        controller = StreamController(make_stream())
        assert_result_success(controller.set_volume(volume))
        assert controller.state.volume == volume

    @pytest.mark.parametrize("volume", [-0.01, 1.01, 5, math.nan, math.inf, "0.5", None, True])
    def test_invalid_volume_rejected_without_change(self, volume):
        controller = StreamController(make_stream(state=PlaybackState(volume=0.4)))

        error = assert_result_failure(controller.set_volume(volume), OutOfRange)
        assert error.field == "volume"
        assert controller.state.volume == 0.4

    def test_set_volume_is_idempotent(self):
        controller = StreamController(make_stream())
        controller.set_volume(0.5)
        first = controller.state
        controller.set_volume(0.5)

        assert controller.state == first

    def test_mute_and_active_toggles(self):
        controller = StreamController(make_stream())

        controller.set_mute(True)
        controller.set_mute(True)
        assert controller.state.is_muted

        controller.set_active(False)
        assert not controller.state.is_active

    def test_effective_gain(self):
        controller = StreamController(make_stream())
        controller.set_volume(0.7)
        assert controller.effective_gain == 0.7

        controller.set_mute(True)
        assert controller.effective_gain == 0.0

        controller.set_mute(False)
        controller.set_active(False)
        assert controller.effective_gain == 0.0

    def test_apply_rejects_whole_update_on_bad_volume(self):
        controller = StreamController(make_stream())

        assert_result_failure(controller.apply(volume=2.0, muted=True), OutOfRange)
        assert not controller.state.is_muted
        assert controller.state.volume == 1.0

    def test_apply_updates_several_fields(self):
        controller = StreamController(make_stream())

        state = assert_result_success(controller.apply(volume=0.2, muted=True, active=False))
        assert (state.volume, state.is_muted, state.is_active) == (0.2, True, False)

    def test_controllers_do_not_share_state(self):
        voice = StreamController(make_stream("a", StreamType.VOICE))
        music = StreamController(make_stream("b", StreamType.MUSIC))

        voice.set_volume(0.1)
        voice.set_mute(True)

        assert music.state == PlaybackState()

    def test_state_is_a_copy(self):
        controller = StreamController(make_stream())
        snapshot = controller.state
        snapshot.volume = 0.0

        assert controller.state.volume == 1.0

    def test_invalid_initial_state_rejected(self):
        with pytest.raises(OutOfRange):
            StreamController(make_stream(state=PlaybackState(volume=1.5)))

    def test_snapshot_is_serializable(self):
        controller = StreamController(make_stream())
        controller.set_volume(0.3)

        snapshot = controller.snapshot()
        assert snapshot["id"] == "s-voice"
        assert snapshot["type"] == "voice"
        assert snapshot["name"] == "Voice"
        assert snapshot["volume"] == 0.3
        assert snapshot["isMuted"] is False
        assert snapshot["isActive"] is True


@pytest.mark.unit
class TestAudioStream:

    def test_default_labels(self):
        assert make_stream(stream_type=StreamType.NOISE).name == "Background Noise"
        assert make_stream(stream_type=StreamType.AMBIENT).name == "Ambient"

    def test_samples_are_read_only(self):
        buffer = create_test_buffer(0.1)
        stream = AudioStream(id="x", type=StreamType.MUSIC, source=buffer, samples=buffer.mono())

        with pytest.raises(ValueError):
            stream.samples[0] = 1.0
