"""Tests for the inference loop: no queuing, discard after stop, isolation."""

import asyncio
import threading

import numpy as np

from mindcanvas.gestures import GestureLabel
from mindcanvas.metrics import MetricsCollector
from mindcanvas.scheduler import InferenceLoop, event_label
from mindcanvas.stabilizer import ActionEvent, DrawPointEvent, GestureEvent
from mindcanvas.strokes import Point

FRAME = np.zeros((4, 4, 3), dtype=np.uint8)


class FakeSource:
    def __init__(self, frame=FRAME):
        self.frame = frame
        self.reads = 0
        self.consumers = set()

    def frame_ready(self, consumer="default"):
        return self.frame is not None

    def current_frame(self, consumer="default"):
        self.reads += 1
        self.consumers.add(consumer)
        return self.frame


class FakePipeline:
    name = "fake"

    def __init__(self, gated=False, fail_load=False, fail_infer=False, fail_apply=False):
        self.gate = threading.Event()
        if not gated:
            self.gate.set()
        self.fail_load = fail_load
        self.fail_infer = fail_infer
        self.fail_apply = fail_apply
        self.inferred = 0
        self.applied = []
        self.closed = 0
        self.log = []

    def load(self):
        self.log.append("load")
        if self.fail_load:
            raise RuntimeError("no model")

    def infer(self, frame):
        self.gate.wait(timeout=5)
        self.inferred += 1
        if self.fail_infer:
            raise ValueError("bad frame")
        return "result"

    def apply(self, result):
        if self.fail_apply:
            raise ValueError("bad result")
        self.applied.append(result)
        return [GestureEvent(GestureLabel.DRAW, GestureLabel.NONE, 0.0)]

    def close(self):
        self.closed += 1
        self.log.append("close")


def manual_loop(pipeline, source=None, metrics=None):
    # A very long interval keeps the background loop from ticking on its own.
    return InferenceLoop(pipeline, source or FakeSource(), interval=3600, metrics=metrics)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestLifecycle:
    def test_start_and_stop(self):
        async def run():
            pipeline = FakePipeline()
            loop = manual_loop(pipeline)
            assert await loop.start() is True
            assert loop.enabled
            assert not loop.loading
            await loop.stop()
            assert not loop.enabled
            assert pipeline.closed == 1

        asyncio.run(run())

    def test_load_failure_keeps_loop_inert(self):
        async def run():
            loop = manual_loop(FakePipeline(fail_load=True))
            assert await loop.start() is False
            assert loop.failed
            assert not loop.enabled
            assert loop.tick() is False
            assert await loop.start() is False

        asyncio.run(run())

    def test_tick_when_stopped(self):
        loop = manual_loop(FakePipeline())
        assert loop.tick() is False

    def test_stop_before_start_does_not_close(self):
        async def run():
            pipeline = FakePipeline()
            loop = manual_loop(pipeline)
            await loop.stop()
            assert pipeline.closed == 0

        asyncio.run(run())


class TestNoQueuing:
    def test_tick_skipped_while_in_flight(self):
        async def run():
            metrics = MetricsCollector()
            pipeline = FakePipeline(gated=True)
            loop = manual_loop(pipeline, metrics=metrics)
            await loop.start()

            assert loop.tick() is True
            await settle()
            assert loop.busy
            assert loop.tick() is False
            assert loop.tick() is False
            assert metrics.skipped_ticks("fake") == 2

            pipeline.gate.set()
            await loop.drain()
            assert not loop.busy
            assert pipeline.inferred == 1
            assert pipeline.applied == ["result"]
            assert metrics.event_counts("fake") == {"gesture:draw": 1}

            await loop.stop()

        asyncio.run(run())

    def test_reads_frames_under_pipeline_name(self):
        async def run():
            source = FakeSource()
            loop = manual_loop(FakePipeline(), source=source)
            await loop.start()
            loop.tick()
            await loop.drain()
            await loop.stop()
            return source.consumers

        assert asyncio.run(run()) == {"fake"}

    def test_no_frame_no_cycle(self):
        async def run():
            pipeline = FakePipeline()
            loop = manual_loop(pipeline, source=FakeSource(frame=None))
            await loop.start()
            assert loop.tick() is False
            await loop.stop()
            assert pipeline.inferred == 0

        asyncio.run(run())


class TestDiscardAfterStop:
    def test_late_result_is_dropped_and_model_released_after(self):
        async def run():
            pipeline = FakePipeline(gated=True)
            loop = manual_loop(pipeline)
            await loop.start()
            loop.tick()
            await settle()

            await loop.stop()
            assert pipeline.closed == 0

            pipeline.gate.set()
            await loop.drain()
            await settle()

            assert pipeline.inferred == 1
            assert pipeline.applied == []
            assert pipeline.closed == 1

        asyncio.run(run())


class TestRestart:
    def test_restart_waits_for_stale_cycle(self):
        async def run():
            pipeline = FakePipeline(gated=True)
            loop = manual_loop(pipeline)
            await loop.start()
            loop.tick()
            await settle()
            await loop.stop()

            restart = asyncio.create_task(loop.start())
            await settle()
            assert loop.loading
            assert not loop.enabled

            pipeline.gate.set()
            assert await restart is True
            assert pipeline.applied == []
            assert pipeline.closed == 1
            assert pipeline.log == ["load", "close", "load"]

            assert loop.tick() is True
            await loop.drain()
            assert pipeline.applied == ["result"]
            await loop.stop()
            assert pipeline.closed == 2

        asyncio.run(run())

    def test_restart_when_idle(self):
        async def run():
            pipeline = FakePipeline()
            loop = manual_loop(pipeline)
            await loop.start()
            await loop.stop()
            assert await loop.start() is True
            loop.tick()
            await loop.drain()
            assert pipeline.applied == ["result"]
            await loop.stop()
            assert pipeline.log == ["load", "close", "load", "close"]

        asyncio.run(run())


class TestFailureIsolation:
    def test_infer_exception_is_swallowed(self):
        async def run():
            metrics = MetricsCollector()
            pipeline = FakePipeline(fail_infer=True)
            loop = manual_loop(pipeline, metrics=metrics)
            await loop.start()
            loop.tick()
            await loop.drain()
            assert metrics.failures("fake") == 1
            assert loop.enabled

            pipeline.fail_infer = False
            loop.tick()
            await loop.drain()
            assert pipeline.applied == ["result"]
            await loop.stop()

        asyncio.run(run())

    def test_apply_exception_is_swallowed(self):
        async def run():
            metrics = MetricsCollector()
            loop = manual_loop(FakePipeline(fail_apply=True), metrics=metrics)
            await loop.start()
            loop.tick()
            await loop.drain()
            assert metrics.failures("fake") == 1
            assert loop.enabled
            await loop.stop()

        asyncio.run(run())


class TestCadence:
    def test_frame_driven_loop_runs(self):
        async def run():
            pipeline = FakePipeline()
            loop = InferenceLoop(pipeline, FakeSource(), interval=None, poll_interval=0.001)
            await loop.start()
            for _ in range(200):
                if len(pipeline.applied) >= 3:
                    break
                await asyncio.sleep(0.005)
            await loop.stop()
            await loop.drain()
            assert len(pipeline.applied) >= 3

        asyncio.run(run())

    def test_interval_loop_runs(self):
        async def run():
            pipeline = FakePipeline()
            loop = InferenceLoop(pipeline, FakeSource(), interval=0.01)
            await loop.start()
            for _ in range(200):
                if len(pipeline.applied) >= 2:
                    break
                await asyncio.sleep(0.005)
            await loop.stop()
            await loop.drain()
            assert len(pipeline.applied) >= 2

        asyncio.run(run())


class TestEventLabel:
    def test_labels(self):
        assert event_label(GestureEvent(GestureLabel.UNDO, GestureLabel.NONE, 0.0)) == "gesture:undo"
        assert event_label(ActionEvent(GestureLabel.CLEAR, 0.0)) == "action:clear"
        assert event_label(DrawPointEvent(Point(0.1, 0.2), 0.0)) == "draw_point"
