"""
Parallel render scheduler.

The image is cut into contiguous row ranges, one per worker. Each range is
traced by a single task and copied into its own slice of the raster buffer,
so no two tasks ever write the same pixel and the result does not depend on
how many workers there are.
"""
import logging
import time
from concurrent.futures import ProcessPoolExecutor, FIRST_COMPLETED, wait

import numpy as np

from .config import RenderSettings
from .errors import RenderCancelled
from .ray import trace_pixel_checked

logger = logging.getLogger(__name__)

# How often (seconds) the scheduler wakes up to look at the cancel flag.
POLL_INTERVAL = 0.1

# Scene installed in each worker process by the pool initializer.
_worker_scene = None


def partition_rows(height, workers):
    """Split rows [0, height) into min(workers, height) contiguous ranges.

    Ranges are returned in order as (y0, y1) pairs; sizes differ by at most one row.
    """
    n = max(1, min(workers, height))
    base, extra = divmod(height, n)
    ranges = []
    y0 = 0
    for i in range(n):
        y1 = y0 + base + (1 if i < extra else 0)
        ranges.append((y0, y1))
        y0 = y1
    return ranges


def row_rng(seed, y):
    """Random stream for row y; the same (seed, row) always gives the same numbers."""
    return np.random.default_rng([seed, y])


def render_rows(scene, y0, y1, width, height, samples, seed=0, shading='phong', cancel=None):
    """Trace rows y0..y1-1 and return (block, failed_pixels).

    block has shape (y1 - y0, width, 3).
    """
    camera = scene.camera
    block = np.zeros((y1 - y0, width, 3), np.float64)
    failures = 0
    for j, y in enumerate(range(y0, y1)):
        if cancel is not None and cancel.is_set():
            raise RenderCancelled(f"render cancelled at row {y}")
        rng = row_rng(seed, y)
        for x in range(width):
            block[j, x], failed = trace_pixel_checked(x, y, width, height, samples, camera, scene, rng, shading)
            failures += failed
    return block, failures


def _init_worker(scene):
    global _worker_scene
    _worker_scene = scene


def _render_task(y0, y1, width, height, samples, seed, shading):
    block, failures = render_rows(_worker_scene, y0, y1, width, height, samples, seed, shading)
    return y0, y1, block, failures


def render(scene, width, height, samples=1, workers=0, seed=0, cancel=None, shading='phong'):
    """Render scene into a (height, width, 3) float64 buffer of linear colors in [0, 1].

    Parameters:
      scene : Scene -- validated before any work starts
      width, height : int -- output resolution
      samples : int -- rays per pixel; 1 traces the pixel center
      workers : int -- worker processes; 0 uses the CPU count
      seed : int -- seed for jittered samples and lens samples
      cancel : object with is_set() -- when set, the render stops and RenderCancelled is raised
      shading : 'phong' or 'normals'
    Raises:
      ConfigurationError, InvalidSceneError -- before anything is traced
      RenderCancelled -- if cancel was set; the partial buffer is discarded
    """
    settings = RenderSettings(width, height, samples, workers, seed, shading).validate()
    scene.validate()

    n_workers = settings.effective_workers
    ranges = partition_rows(height, n_workers)
    buf = np.zeros((height, width, 3), np.float64)

    logger.info(f"Rendering {width}x{height}, {samples} sample(s)/pixel, "
                f"{len(scene.surfs)} primitive(s), {len(scene.lights)} light(s), {n_workers} worker(s)")
    start = time.perf_counter()

    if n_workers == 1:
        failures = _render_in_process(scene, buf, ranges, settings, cancel)
    else:
        failures = _render_in_pool(scene, buf, ranges, settings, cancel)

    if failures:
        logger.warning(f"{failures} pixel(s) hit a numeric failure and were set to the background color")
    logger.info(f"Render finished in {time.perf_counter() - start:.2f}s")
    return buf


def _render_in_process(scene, buf, ranges, settings, cancel):
    failures = 0
    for y0, y1 in ranges:
        block, failed = render_rows(scene, y0, y1, settings.width, settings.height, settings.samples,
                                    settings.seed, settings.shading, cancel)
        buf[y0:y1] = block
        failures += failed
        logger.debug(f"rows {y0}-{y1 - 1} done")
    return failures


def _render_in_pool(scene, buf, ranges, settings, cancel):
    failures = 0
    done_rows = 0
    executor = ProcessPoolExecutor(max_workers=len(ranges), initializer=_init_worker, initargs=(scene,))
    try:
        pending = {
            executor.submit(_render_task, y0, y1, settings.width, settings.height,
                            settings.samples, settings.seed, settings.shading)
            for y0, y1 in ranges
        }
        while pending:
            if cancel is not None and cancel.is_set():
                raise RenderCancelled(f"render cancelled with {len(pending)} row range(s) outstanding")
            done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
            for future in done:
                y0, y1, block, failed = future.result()
                buf[y0:y1] = block
                failures += failed
                done_rows += y1 - y0
                logger.info(f"Progress: {done_rows}/{settings.height} rows")
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return failures
