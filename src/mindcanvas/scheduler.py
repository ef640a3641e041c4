"""Cadence and lifecycle for inference pipelines.

An ``InferenceLoop`` runs one pipeline on its own schedule, either a fixed
interval or "whenever the frame source has a new frame". It never queues
work: while an inference is in flight further ticks are skipped. Results
that resolve after the loop was stopped are dropped, and a failing cycle is
logged and forgotten rather than crashing the loop.

Usage:
    loop = InferenceLoop(AttentionPipeline(model), source, interval=0.3)
    await loop.start()
    ...
    await loop.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

from mindcanvas.camera import FrameSource
from mindcanvas.metrics import MetricsCollector

logger = logging.getLogger("mindcanvas.scheduler")


class Pipeline(Protocol):
    name: str

    def load(self) -> None: ...

    def infer(self, frame: Any) -> Any: ...

    def apply(self, result: Any) -> list: ...

    def close(self) -> None: ...


def event_label(event) -> str:
    """Metric label for an emitted event, e.g. ``gesture:draw``."""
    data = event.to_dict()
    for key in ("gesture", "action", "emotion", "state"):
        if key in data:
            return f"{data['type']}:{data[key]}"
    return data.get("type", type(event).__name__)


class InferenceLoop:
    """Drives a single pipeline with at most one inference in flight."""

    def __init__(
        self,
        pipeline: Pipeline,
        source: FrameSource,
        interval: Optional[float] = None,
        poll_interval: float = 0.005,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.pipeline = pipeline
        self.source = source
        self.interval = interval
        self.poll_interval = poll_interval
        self.metrics = metrics or MetricsCollector()

        self._enabled = False
        self._loading = False
        self._failed = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.pipeline.name

    async def start(self) -> bool:
        """Load the model and start ticking.

        Returns False if the model failed to load; the loop then stays inert
        for good.
        """
        if self._enabled or self._failed or self._loading:
            return self._enabled

        self._loading = True
        # A cycle left over from the previous run releases the model when it
        # finishes; wait for that before loading again.
        await self.drain()
        try:
            await asyncio.to_thread(self.pipeline.load)
        except Exception as e:
            logger.error("%s model failed to load: %s", self.name, e)
            self._failed = True
            return False
        finally:
            self._loading = False

        self._generation += 1
        self._enabled = True
        self._task = asyncio.create_task(self._run(), name=f"{self.name}-loop")
        logger.info("%s pipeline started", self.name)
        return True

    async def _run(self):
        while self._enabled:
            if self.interval is not None:
                await asyncio.sleep(self.interval)
                self.tick()
            else:
                # Frame-driven: a busy pipeline lets frames be replaced.
                if not self.busy and self.source.frame_ready(self.name):
                    self.tick()
                await asyncio.sleep(self.poll_interval)

    def tick(self) -> bool:
        """Start one inference cycle if possible. Returns True if started."""
        if not self._enabled:
            return False

        if self.busy:
            self.metrics.record_tick(self.name, skipped=True)
            return False

        frame = self.source.current_frame(self.name)
        if frame is None:
            return False

        self.metrics.record_tick(self.name)
        self._in_flight = asyncio.create_task(self._cycle(frame, self._generation))
        return True

    async def _cycle(self, frame, generation: int):
        t0 = time.perf_counter()
        try:
            result = await asyncio.to_thread(self.pipeline.infer, frame)
        except Exception as e:
            logger.debug("%s inference failed: %s", self.name, e)
            self.metrics.record_failure(self.name)
            return
        self.metrics.record_latency(self.name, time.perf_counter() - t0)

        if not self._enabled or generation != self._generation:
            logger.debug("%s result discarded, pipeline stopped", self.name)
            return

        try:
            events = self.pipeline.apply(result)
        except Exception as e:
            logger.debug("%s result could not be applied: %s", self.name, e)
            self.metrics.record_failure(self.name)
            return

        for event in events or []:
            self.metrics.record_event(self.name, event_label(event))

    async def stop(self):
        """Stop ticking and release the model.

        An inference already in flight is allowed to finish; its result is
        discarded and the model is released once it's done.
        """
        was_enabled = self._enabled
        self._enabled = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if not was_enabled:
            return

        if self.busy:
            self._in_flight.add_done_callback(lambda _: self._release())
        else:
            self._release()
        logger.info("%s pipeline stopped", self.name)

    async def drain(self):
        """Wait for the in-flight cycle, if any, to finish."""
        if self._in_flight is not None:
            await asyncio.shield(self._in_flight)

    def _release(self):
        try:
            self.pipeline.close()
        except Exception as e:
            logger.warning("%s model release failed: %s", self.name, e)

    @property
    def busy(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def failed(self) -> bool:
        return self._failed
