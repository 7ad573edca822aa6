"""
Tests for the compilation pipeline, detector pool and progress accounting.
"""

import asyncio

import numpy as np
import pytest

from imagetarget.core.base import FeaturePoint, PyramidLevel, TargetImage
from imagetarget.pipeline.compiler import CompilerBase


class FakeDetector:
    """Detector returning two points per level and recording its calls."""

    def __init__(self, width, height, log, fail_on=None):
        self.width = width
        self.height = height
        self.log = log
        self.fail_on = fail_on
        self.disposed = False

    def detect(self, level):
        assert not self.disposed, "detect() after dispose()"
        target = int(level.data[0, 0])
        self.log.append((target, level.width))
        if self.fail_on is not None and target == self.fail_on:
            raise RuntimeError("detector exploded")
        descriptor = np.full(32, target, dtype=np.uint8)
        return [
            FeaturePoint(1.0, 2.0, 1.5, 0.0, True, descriptor),
            FeaturePoint(3.0, 4.0, 1.5, 0.0, False, descriptor),
        ]

    def dispose(self):
        self.disposed = True


class FakePyramidBuilder:
    """Levels of fixed widths, every pixel holding the target's first pixel value."""

    def __init__(self, widths=(40, 30, 20, 10)):
        self.widths = widths

    def build_matching_pyramid(self, image):
        value = image.data[0, 0]
        return [
            PyramidLevel(width=w, height=w, scale=w / self.widths[0],
                         data=np.full((w, w), value, dtype=np.uint8))
            for w in self.widths
        ]

    def build_tracking_pyramid(self, image):
        return [PyramidLevel(width=8, height=8, scale=0.2, data=np.zeros((8, 8), np.uint8))]


class PassThroughCompiler(CompilerBase):
    """Compiler over TargetImages with a trivial tracking hook."""

    def create_process_canvas(self, image):
        return image

    async def compile_track(self, targets, tracking_pyramids, progress_callback, base_percent):
        if progress_callback:
            progress_callback(100.0)
        return [[{"levels": len(levels)}] for levels in tracking_pyramids]


def _targets(*values):
    """Grey target images whose pixels all equal the given values."""
    return [
        TargetImage(width=40, height=40, data=np.full((40, 40), v, dtype=np.uint8))
        for v in values
    ]


def _compiler(log, detectors=None, fail_on=None, **kwargs):
    detectors = detectors if detectors is not None else []

    def factory(width, height):
        d = FakeDetector(width, height, log, fail_on)
        detectors.append(d)
        return d

    return PassThroughCompiler(
        pyramid_builder=FakePyramidBuilder(),
        detector_factory=factory,
        **kwargs,
    )


class TestHooks:
    """Tests for the lifecycle hook capability check."""

    def test_base_cannot_be_constructed(self):
        """Test that the base class lacks both hooks."""
        from imagetarget.core.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="create_process_canvas, compile_track"):
            CompilerBase()

    def test_missing_one_hook(self):
        """Test that the error names the class and the missing hook."""
        from imagetarget.core.errors import ConfigurationError

        class CanvasOnly(CompilerBase):
            def create_process_canvas(self, image):
                return image

        with pytest.raises(ConfigurationError, match="CanvasOnly.*compile_track"):
            CanvasOnly()

    def test_complete_subclass(self):
        """Test that a subclass with both hooks constructs."""
        from imagetarget.pipeline import ImageTargetCompiler

        assert PassThroughCompiler().data is None
        assert ImageTargetCompiler().data is None

    def test_invalid_config(self):
        """Test that configuration errors surface at construction."""
        from imagetarget.core.config import Config
        from imagetarget.core.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            PassThroughCompiler(config=Config(yield_interval=-1))


class TestDetectorPool:
    """Tests for DetectorPool."""

    def test_reuse(self):
        """Test that each size is constructed once."""
        from imagetarget.pipeline.pool import DetectorPool

        calls = []
        pool = DetectorPool(lambda w, h: calls.append((w, h)) or object())
        first = pool.acquire(64, 48)
        for _ in range(5):
            assert pool.acquire(64, 48) is first
        pool.acquire(48, 64)

        assert calls == [(64, 48), (48, 64)]
        assert pool.created == 2
        assert len(pool) == 2
        assert (64, 48) in pool

    def test_release_all(self):
        """Test disposal and closing."""
        from imagetarget.core.errors import CompilerStateError
        from imagetarget.pipeline.pool import DetectorPool

        log = []
        pool = DetectorPool(lambda w, h: FakeDetector(w, h, log))
        detectors = [pool.acquire(10, 10), pool.acquire(20, 20)]
        pool.release_all()

        assert all(d.disposed for d in detectors)
        assert len(pool) == 0
        assert pool.closed
        with pytest.raises(CompilerStateError):
            pool.acquire(10, 10)

    def test_context_manager(self):
        """Test release on exit."""
        from imagetarget.pipeline.pool import DetectorPool

        with DetectorPool(lambda w, h: FakeDetector(w, h, [])) as pool:
            detector = pool.acquire(5, 5)
        assert detector.disposed

    def test_detectors_without_dispose(self):
        """Test that detectors lacking dispose() are simply dropped."""
        from imagetarget.pipeline.pool import DetectorPool

        pool = DetectorPool(lambda w, h: object())
        pool.acquire(1, 1)
        pool.release_all()
        assert pool.closed


class TestProgress:
    """Tests for progress accounting."""

    def test_slices_are_disjoint(self):
        """Test that targets own disjoint sub-ranges."""
        from imagetarget.pipeline.progress import ProgressReporter

        reporter = ProgressReporter(None, 0.0, 50.0, 4)
        slices = [reporter.slice(i, 3) for i in range(4)]
        assert [(s.start, s.end) for s in slices] == [
            (0.0, 12.5), (12.5, 25.0), (25.0, 37.5), (37.5, 50.0),
        ]

    def test_interleaved_progress(self):
        """Test per-slice bounds and aggregate monotonicity under interleaving."""
        from imagetarget.pipeline.progress import ProgressReporter

        seen = []
        reporter = ProgressReporter(seen.append, 0.0, 50.0, 2)
        a = reporter.slice(0, 3)
        b = reporter.slice(1, 2)
        slice_values = {0: [], 1: []}
        for s, key in [(a, 0), (b, 1), (a, 0), (a, 0), (b, 1)]:
            s.advance()
            slice_values[key].append(s.value)

        assert seen == sorted(seen)
        assert seen[-1] == pytest.approx(50.0)
        for key, s in ((0, a), (1, b)):
            values = slice_values[key]
            assert values == sorted(values)
            assert all(s.start <= v <= s.end for v in values)
        assert a.value == pytest.approx(a.end)

    def test_extra_advance_is_ignored(self):
        """Test that a slice never overruns its range."""
        from imagetarget.pipeline.progress import ProgressReporter

        reporter = ProgressReporter(None, 50.0, 100.0, 1)
        s = reporter.slice(0, 1)
        s.advance()
        s.advance()
        assert s.value == 100.0
        assert reporter.percent == 100.0


class TestCompile:
    """Tests for CompilerBase.compile_image_targets with fake collaborators."""

    def test_records(self):
        """Test the assembled records."""
        log = []
        compiler = _compiler(log)
        targets = asyncio.run(compiler.compile_image_targets(_targets(1, 2)))

        assert compiler.data is targets
        assert len(targets) == 2
        for value, target in zip((1, 2), targets):
            assert (target.width, target.height) == (40, 40)
            assert [k.width for k in target.matching_data] == [40, 30, 20, 10]
            for k in target.matching_data:
                assert len(k.maxima_points) == 1 and len(k.minima_points) == 1
                assert k.maxima_points[0].descriptor[0] == value
                assert k.maxima_cluster["root_node"]["point_indexes"] == [0]
            assert target.tracking_data == [{"levels": 1}]
            assert target.grey_image is not None

    def test_pool_reuse_across_targets(self):
        """Test that same-sized levels of different targets share detectors."""
        log, detectors = [], []
        compiler = _compiler(log, detectors)
        asyncio.run(compiler.compile_image_targets(_targets(1, 2, 3)))

        assert len(log) == 12
        assert sorted(d.width for d in detectors) == [10, 20, 30, 40]

    def test_pool_released_after_join(self):
        """Test that every detector is disposed once compilation ends."""
        log, detectors = [], []
        compiler = _compiler(log, detectors)
        asyncio.run(compiler.compile_image_targets(_targets(1, 2)))
        assert detectors and all(d.disposed for d in detectors)

    def test_tasks_interleave(self):
        """Test that the suspension point lets other targets proceed."""
        from imagetarget.core.config import Config

        log = []
        compiler = _compiler(log, config=Config(yield_interval=1))
        asyncio.run(compiler.compile_image_targets(_targets(1, 2)))

        assert {target for target, _ in log[:2]} == {1, 2}
        for value in (1, 2):
            assert [w for t, w in log if t == value] == [40, 30, 20, 10]

    @pytest.mark.parametrize("interval,expected", [(0, 0), (1, 8), (3, 4), (10, 2)])
    def test_suspension_count(self, interval, expected):
        """Test that the task suspends every interval-th level."""
        from imagetarget.core.config import Config

        calls = []

        async def suspend():
            calls.append(1)
            await asyncio.sleep(0)

        compiler = _compiler([], config=Config(yield_interval=interval), suspend=suspend)
        asyncio.run(compiler.compile_image_targets(_targets(1, 2)))
        assert len(calls) == expected

    def test_progress(self):
        """Test progress values over the whole compile."""
        seen = []
        compiler = _compiler([])
        asyncio.run(compiler.compile_image_targets(_targets(1, 2, 3), seen.append))

        matching = [p for p in seen if p <= 50.0 + 1e-9]
        assert len(matching) == 12
        assert seen == sorted(seen)
        assert matching[-1] == pytest.approx(50.0)
        assert seen[-1] == pytest.approx(100.0)

    def test_compile_twice(self):
        """Test that a compiler instance compiles once."""
        from imagetarget.core.errors import CompilerStateError

        compiler = _compiler([])
        asyncio.run(compiler.compile_image_targets(_targets(1)))
        with pytest.raises(CompilerStateError):
            asyncio.run(compiler.compile_image_targets(_targets(1)))

    def test_empty_input(self):
        """Test that an empty image set is rejected."""
        from imagetarget.core.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            asyncio.run(_compiler([]).compile_image_targets([]))

    def test_malformed_dimensions(self):
        """Test that a malformed image fails the whole call and names the target."""
        from imagetarget.core.errors import InvalidInputError

        bad = TargetImage(width=40, height=0, data=np.zeros((0, 40), dtype=np.uint8))
        compiler = _compiler([])
        with pytest.raises(InvalidInputError, match="Target 1"):
            asyncio.run(compiler.compile_image_targets(_targets(1) + [bad]))
        assert compiler.data is None

    def test_target_failure_fails_whole_call(self):
        """Test that one failing target aborts compilation after all tasks finish."""
        from imagetarget.core.errors import CompilationError

        log, detectors = [], []
        compiler = _compiler(log, detectors, fail_on=2)
        with pytest.raises(CompilationError, match="Target 1") as exc_info:
            asyncio.run(compiler.compile_image_targets(_targets(1, 2, 3)))

        assert exc_info.value.target_index == 1
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert compiler.data is None
        assert all(d.disposed for d in detectors)
        # The other targets ran to completion before the pool was released
        assert len([t for t, _ in log if t == 3]) == 4

    def test_zero_points_is_not_an_error(self):
        """Test that a level without points clusters an empty set."""

        class NoPoints(FakeDetector):
            def detect(self, level):
                return []

        compiler = PassThroughCompiler(
            pyramid_builder=FakePyramidBuilder(widths=(12,)),
            detector_factory=lambda w, h: NoPoints(w, h, []),
        )
        targets = asyncio.run(compiler.compile_image_targets(_targets(5)))
        keyframe = targets[0].matching_data[0]
        assert keyframe.maxima_points == [] and keyframe.minima_points == []
        assert keyframe.maxima_cluster["root_node"]["point_indexes"] == []

    def test_float_descriptors_fail_target(self):
        """Test that a detector returning non-binary descriptors fails its target."""
        from imagetarget.core.errors import CompilationError, InvalidInputError

        class FloatDescriptors(FakeDetector):
            def detect(self, level):
                return [FeaturePoint(1.0, 2.0, 1.5, 0.0, True,
                                     np.array([0.25, 1.7, 300.0], dtype=np.float32))]

        compiler = PassThroughCompiler(
            pyramid_builder=FakePyramidBuilder(widths=(12,)),
            detector_factory=lambda w, h: FloatDescriptors(w, h, []),
        )
        with pytest.raises(CompilationError, match="Target 0") as exc_info:
            asyncio.run(compiler.compile_image_targets(_targets(5)))
        assert isinstance(exc_info.value.__cause__, InvalidInputError)
        assert compiler.data is None

    def test_export_before_compile(self):
        """Test that exporting without data is an error."""
        from imagetarget.core.errors import CompilerStateError

        with pytest.raises(CompilerStateError):
            _compiler([]).export_data()


class TestImageTargetCompiler:
    """End-to-end tests with the default collaborators."""

    def test_canvas_inputs(self, tmp_path, textured_image):
        """Test arrays, files and TargetImages as inputs."""
        import cv2
        from imagetarget.core.errors import InvalidInputError
        from imagetarget.pipeline import ImageTargetCompiler

        compiler = ImageTargetCompiler()
        rgb = textured_image(30, 20)
        from_array = compiler.create_process_canvas(rgb)
        assert (from_array.width, from_array.height) == (30, 20)

        path = tmp_path / "target.png"
        cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
        from_file = compiler.create_process_canvas(path)
        assert np.array_equal(from_file.data, rgb)

        assert compiler.create_process_canvas(from_array) is from_array

        with pytest.raises(InvalidInputError):
            compiler.create_process_canvas(tmp_path / "missing.png")
        with pytest.raises(InvalidInputError):
            compiler.create_process_canvas(42)

    def test_compile(self, textured_image):
        """Test a full compile of two images."""
        from imagetarget.pipeline import ImageTargetCompiler

        seen = []
        compiler = ImageTargetCompiler()
        targets = asyncio.run(compiler.compile_image_targets(
            [textured_image(200, 160, seed=3), textured_image(160, 200, seed=4)],
            seen.append,
        ))

        assert [(t.width, t.height) for t in targets] == [(200, 160), (160, 200)]
        for target in targets:
            assert target.matching_data[0].scale == 1.0
            assert sum(k.num_points for k in target.matching_data) > 0
            assert len(target.tracking_data) == 2
            for record in target.tracking_data:
                assert len(record["data"]) == record["width"] * record["height"]
                assert len(record["points"]) > 0
        assert seen == sorted(seen)
        assert seen[-1] == pytest.approx(100.0)

    def test_yield_interval_does_not_change_results(self, textured_image):
        """Test that suspension timing has no effect on output."""
        from imagetarget.core.config import Config
        from imagetarget.pipeline import ImageTargetCompiler

        images = [textured_image(180, 140, seed=5), textured_image(140, 180, seed=6)]
        results = []
        for interval in (0, 1, 3):
            compiler = ImageTargetCompiler(config=Config(yield_interval=interval))
            targets = asyncio.run(compiler.compile_image_targets(images))
            results.append([(t.matching_data, t.tracking_data) for t in targets])
        assert results[0] == results[1] == results[2]

    def test_same_size_targets_share_detectors(self, textured_image):
        """Test pool reuse with the real detector."""
        from imagetarget.features.detector import Detector
        from imagetarget.pipeline import ImageTargetCompiler

        created = []

        def factory(width, height):
            created.append((width, height))
            return Detector(width, height)

        compiler = ImageTargetCompiler(detector_factory=factory)
        images = [textured_image(150, 150, seed=s) for s in range(3)]
        targets = asyncio.run(compiler.compile_image_targets(images))

        levels = len(targets[0].matching_data)
        assert len(created) == levels
        assert len(set(created)) == levels
