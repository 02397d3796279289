"""Tests for the playback state machine, keep-alive leases, and now-playing commands."""

import asyncio

import pytest

from noveltts.core.dispatch import AsyncioDispatcher
from noveltts.playback.engine import HighlightRange, PlaybackEngine, PlaybackPhase
from noveltts.playback.keepalive import BackgroundActivity
from noveltts.playback.now_playing import NowPlayingCenter


@pytest.fixture
def engine(synth, dispatcher):
    return PlaybackEngine(synth, dispatcher)


class TestStateMachine:
    def test_starts_idle(self, engine):
        assert engine.phase == PlaybackPhase.IDLE
        assert engine.highlight is None

    def test_hello_world_example(self, engine, synth):
        engine.speak("hello world")
        synth.say_range(0, 5)
        assert engine.highlight == HighlightRange(0, 5)
        assert engine.phase == PlaybackPhase.SPEAKING

        engine.pause()
        assert engine.phase == PlaybackPhase.PAUSED
        assert engine.highlight == HighlightRange(0, 5)

        engine.toggle_play_pause("hello world")
        assert engine.phase == PlaybackPhase.SPEAKING
        assert engine.highlight is None
        assert synth.calls[-1] == ("speak", "hello world")
        assert ("resume",) not in synth.calls

    def test_resume_only_from_paused(self, engine, synth):
        engine.resume()
        assert engine.phase == PlaybackPhase.IDLE
        engine.speak("abc")
        engine.resume()
        assert ("resume",) not in synth.calls

        engine.pause()
        engine.resume()
        assert engine.phase == PlaybackPhase.SPEAKING
        assert synth.calls[-1] == ("resume",)

    def test_pause_only_from_speaking(self, engine, synth):
        engine.pause()
        assert engine.phase == PlaybackPhase.IDLE
        assert synth.calls == []

    def test_speak_cancels_in_flight(self, engine, synth):
        engine.speak("one")
        engine.speak("two")
        assert synth.calls == [("speak", "one"), ("cancel",), ("speak", "two")]

    @pytest.mark.parametrize("pause_first", [False, True])
    def test_stop_clears_everything(self, engine, synth, pause_first):
        engine.speak("some text")
        synth.say_range(5, 4)
        if pause_first:
            engine.pause()
        engine.stop()
        assert engine.phase == PlaybackPhase.IDLE
        assert engine.highlight is None
        assert synth.calls[-1] == ("cancel",)

    def test_toggle_pauses_when_speaking(self, engine, synth):
        engine.toggle_play_pause("page")
        engine.toggle_play_pause("page")
        assert engine.phase == PlaybackPhase.PAUSED
        assert synth.calls[-1] == ("pause",)

    def test_range_is_not_validated(self, engine, synth):
        engine.speak("short")
        synth.say_range(3, 2)
        synth.say_range(0, 99)
        assert engine.highlight == HighlightRange(0, 99)


class TestCompletion:
    def test_finish_resets_and_notifies(self, engine, synth):
        advanced = []
        engine.add_finished_listener(lambda: advanced.append(True))
        engine.speak("text")
        synth.say_range(0, 4)
        synth.finish()
        assert engine.phase == PlaybackPhase.IDLE
        assert engine.highlight is None
        assert advanced == [True]

    def test_callbacks_after_stop_are_ignored(self, engine, synth):
        advanced = []
        engine.add_finished_listener(lambda: advanced.append(True))
        engine.speak("text")
        old = synth.utterance
        engine.stop()
        synth.say_range(0, 4, utterance=old)
        synth.finish(utterance=old)
        assert engine.highlight is None
        assert advanced == []

    def test_callbacks_from_replaced_utterance_are_ignored(self, engine, synth):
        engine.speak("first")
        old = synth.utterance
        engine.speak("second")
        synth.say_range(1, 3, utterance=old)
        assert engine.highlight is None
        synth.finish(utterance=old)
        assert engine.phase == PlaybackPhase.SPEAKING

    def test_failure_returns_to_idle(self, engine, synth):
        engine.speak("text")
        synth.fail(RuntimeError("no audio device"))
        assert engine.phase == PlaybackPhase.IDLE


class TestKeepAlive:
    def test_lease_held_while_speaking(self, synth, dispatcher):
        background = BackgroundActivity()
        engine = PlaybackEngine(synth, dispatcher, background=background)
        engine.speak("a")
        assert background.active == 1
        engine.speak("b")
        assert background.active == 1
        engine.pause()
        assert background.active == 1
        engine.stop()
        assert background.active == 0

    def test_lease_released_on_finish(self, synth, dispatcher):
        background = BackgroundActivity()
        engine = PlaybackEngine(synth, dispatcher, background=background)
        engine.speak("a")
        synth.finish()
        assert background.active == 0

    def test_release_is_idempotent(self):
        background = BackgroundActivity()
        with background.acquire("test") as lease:
            lease.release()
        assert background.active == 0


class TestNowPlaying:
    def test_remote_commands_route_to_engine(self, engine, synth):
        center = NowPlayingCenter(engine)
        center.publish("Moby Dick", b"png")
        assert center.to_dict() == {"title": "Moby Dick", "has_artwork": True, "phase": "idle"}

        engine.speak("call me ishmael")
        center.pause()
        assert engine.phase == PlaybackPhase.PAUSED
        center.play()
        assert engine.phase == PlaybackPhase.SPEAKING
        assert synth.calls[-1] == ("resume",)

    def test_remote_play_when_idle_does_nothing(self, engine, synth):
        center = NowPlayingCenter(engine)
        center.play()
        assert engine.phase == PlaybackPhase.IDLE
        assert synth.calls == []


class TestAsyncioDispatcher:
    def test_callbacks_are_marshaled_onto_the_loop(self, synth):
        async def scenario():
            loop = asyncio.get_running_loop()
            dispatcher = AsyncioDispatcher(loop)
            engine = PlaybackEngine(synth, dispatcher)
            engine.speak("hello world")

            # Synthesizer reports from its own thread
            await loop.run_in_executor(None, synth.say_range, 6, 5)
            await asyncio.sleep(0)
            highlight = engine.highlight

            result = asyncio.get_running_loop().create_future()
            dispatcher.run_in_worker(lambda: 2 + 2, result.set_result)
            value = await asyncio.wait_for(result, timeout=5)
            dispatcher.shutdown()
            return highlight, value

        highlight, value = asyncio.run(scenario())
        assert highlight == HighlightRange(6, 5)
        assert value == 4
