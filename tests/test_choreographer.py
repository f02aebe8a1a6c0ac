"""
粒子编排器测试
"""

import logging

import numpy as np
import pytest

from treeconfig.settings import SpringConfig
from treecore.choreographer import ParticleChoreographer
from treecore.formation import ElementClass, FormationGenerator
from treecore.interaction import SceneMode

DT = 1 / 60


def run(choreographer, seconds, mode, focus_id=None, dt=DT):
    for _ in range(int(round(seconds / dt))):
        choreographer.step(dt, mode, focus_id)


@pytest.fixture
def choreographer():
    generator = FormationGenerator(seed=11)
    c = ParticleChoreographer(SpringConfig(), seed=1)
    for element_class, count in [
        (ElementClass.AMBIENT, 60),
        (ElementClass.GEM, 8),
        (ElementClass.PHOTO, 4),
    ]:
        c.add_elements(
            element_class,
            generator.tree_positions(element_class, count),
            generator.galaxy_positions(element_class, count),
            np.full(count, 0.1),
        )
    return c


class TestSetup:

    def test_ids_are_contiguous(self, choreographer):
        assert len(choreographer) == 72
        np.testing.assert_array_equal(choreographer.ids_of(ElementClass.GEM), np.arange(60, 68))

    def test_starts_at_tree_targets(self, choreographer):
        np.testing.assert_array_equal(choreographer.positions, choreographer.tree_targets)
        assert choreographer.is_settled()

    def test_mismatched_lengths(self):
        c = ParticleChoreographer()
        with pytest.raises(ValueError):
            c.add_elements(ElementClass.GEM, np.zeros((3, 3)), np.zeros((2, 3)), [0.1] * 3)

    def test_record_snapshot(self, choreographer):
        record = choreographer.record(61)
        assert record.element_class == ElementClass.GEM
        assert record.base_scale == pytest.approx(0.1)
        assert 0.5 <= record.speed <= 1.0

    def test_record_out_of_range(self, choreographer):
        with pytest.raises(IndexError):
            choreographer.record(-1)
        with pytest.raises(IndexError):
            choreographer.record(len(choreographer))

    def test_clear(self, choreographer):
        choreographer.clear()
        assert len(choreographer) == 0
        choreographer.step(DT, SceneMode.GALAXY)
        assert choreographer.is_settled()


class TestConvergence:

    def test_converges_to_galaxy(self, choreographer):
        run(choreographer, 3.0, SceneMode.GALAXY)
        assert choreographer.is_settled()
        np.testing.assert_allclose(
            choreographer.positions, choreographer.galaxy_targets, atol=SpringConfig().settle_epsilon
        )

    def test_round_trip_returns_to_tree(self, choreographer):
        galaxy_before = choreographer.galaxy_targets.copy()
        run(choreographer, 3.0, SceneMode.GALAXY)
        run(choreographer, 3.0, SceneMode.TREE)
        assert choreographer.is_settled()
        np.testing.assert_allclose(choreographer.positions, choreographer.tree_targets, atol=0.05)
        # 星系目标不会被重新采样
        np.testing.assert_array_equal(choreographer.galaxy_targets, galaxy_before)

    def test_no_unbounded_overshoot(self, choreographer):
        start = choreographer.positions.copy()
        target = choreographer.galaxy_targets.copy()
        span = np.linalg.norm(target - start, axis=1)

        for _ in range(240):
            choreographer.step(DT, SceneMode.GALAXY)
            distance = np.linalg.norm(choreographer.positions - target, axis=1)
            assert np.all(distance <= span * 1.05 + 1e-9)

    def test_retarget_mid_transition_keeps_velocity(self, choreographer):
        run(choreographer, 0.3, SceneMode.GALAXY)
        velocity = choreographer.record(0).velocity
        choreographer.step(DT, SceneMode.TREE)
        after = choreographer.record(0).velocity
        # 速度连续变化，不会被清零或跳变到反方向的最大值
        assert np.linalg.norm(np.subtract(after, velocity)) < np.linalg.norm(velocity)

    def test_large_dt_is_clamped(self, choreographer):
        before = choreographer.positions.copy()
        choreographer.step(5.0, SceneMode.GALAXY)
        after = choreographer.positions.copy()

        reference = ParticleChoreographer(SpringConfig(), seed=1)
        reference.add_elements(
            ElementClass.AMBIENT,
            before, choreographer.galaxy_targets, np.full(len(before), 0.1)
        )
        reference.step(SpringConfig().max_dt, SceneMode.GALAXY)
        np.testing.assert_allclose(after, reference.positions)
        assert choreographer.elapsed == pytest.approx(SpringConfig().max_dt)

    def test_zero_dt_is_noop(self, choreographer):
        before = choreographer.positions.copy()
        choreographer.step(0.0, SceneMode.GALAXY)
        np.testing.assert_array_equal(choreographer.positions, before)


class TestFocus:

    def test_focused_element_moves_to_camera(self, choreographer):
        run(choreographer, 3.0, SceneMode.TREE, focus_id=70)
        record = choreographer.record(70)
        np.testing.assert_allclose(record.position, SpringConfig().focus_target, atol=0.05)
        assert record.scale == pytest.approx(SpringConfig().focus_scale, abs=0.05)
        assert choreographer.focused_id == 70

    def test_only_one_element_focused(self, choreographer):
        run(choreographer, 3.0, SceneMode.GALAXY, focus_id=70)
        targets = np.array([choreographer.current_target(i) for i in range(len(choreographer))])
        at_focus = np.all(np.isclose(targets, SpringConfig().focus_target), axis=1)
        assert at_focus.sum() == 1
        assert choreographer.is_settled()

    def test_release_returns_to_mode_target(self, choreographer):
        run(choreographer, 2.0, SceneMode.GALAXY, focus_id=70)
        run(choreographer, 3.0, SceneMode.GALAXY, focus_id=None)
        record = choreographer.record(70)
        np.testing.assert_allclose(record.position, record.galaxy_target, atol=0.05)
        assert record.scale == pytest.approx(0.1, abs=0.01)

    def test_out_of_range_focus_ignored(self, choreographer):
        choreographer.step(DT, SceneMode.TREE, focus_id=999)
        assert choreographer.focused_id is None

    def test_out_of_range_focus_warns_once(self, choreographer, caplog):
        with caplog.at_level(logging.WARNING, logger="treecore.choreographer"):
            run(choreographer, 0.5, SceneMode.TREE, focus_id=999)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_new_focus_clears_previous_override(self, choreographer):
        focus = np.array(SpringConfig().focus_target)
        run(choreographer, 1.0, SceneMode.TREE, focus_id=70)

        # 下一帧换成另一个元素，旧的覆盖立即失效
        choreographer.step(DT, SceneMode.TREE, focus_id=71)
        assert choreographer.focused_id == 71
        np.testing.assert_array_equal(choreographer.current_target(70), choreographer.tree_targets[70])
        np.testing.assert_array_equal(choreographer.current_target(71), focus)
        assert choreographer.current_target_scale(70) == pytest.approx(0.1)
        assert choreographer.current_target_scale(71) == pytest.approx(SpringConfig().focus_scale)

        targets = np.array([choreographer.current_target(i) for i in range(len(choreographer))])
        assert np.all(np.isclose(targets, focus), axis=1).sum() == 1


class TestSecondaryMotion:

    def test_sway_applies_to_settled_ambient_only(self, choreographer):
        run(choreographer, 0.5, SceneMode.TREE)
        rendered = choreographer.render_positions()
        delta = np.abs(rendered - choreographer.positions)

        ambient = choreographer.ids_of(ElementClass.AMBIENT)
        others = choreographer.ids_of(ElementClass.GEM)
        assert delta[ambient, 1].max() > 0
        assert delta[ambient, 1].max() <= SpringConfig().sway_amplitude + 1e-9
        assert np.all(delta[others] == 0)
        # 摆动只影响渲染，不写回物理状态
        np.testing.assert_allclose(choreographer.positions, choreographer.tree_targets, atol=1e-9)

    def test_no_sway_while_travelling(self, choreographer):
        # 摆动权重以 sway_fade_rate 渐出，0.6 秒后完全消失
        run(choreographer, 0.6, SceneMode.GALAXY)
        np.testing.assert_array_equal(choreographer.render_positions(), choreographer.positions)
        np.testing.assert_array_equal(choreographer.render_scales(), choreographer.scales)

    def test_sway_fades_in_without_jump(self, choreographer):
        run(choreographer, 3.0, SceneMode.GALAXY)
        offset = choreographer.render_positions() - choreographer.positions
        ratio = choreographer.render_scales() / choreographer.scales

        # 切换目标的那一帧以及之后，摆动和闪烁都逐帧平滑变化
        for _ in range(120):
            choreographer.step(DT, SceneMode.TREE)
            new_offset = choreographer.render_positions() - choreographer.positions
            new_ratio = choreographer.render_scales() / choreographer.scales
            assert np.abs(new_offset - offset).max() < 0.003
            assert np.abs(new_ratio - ratio).max() < 0.02
            offset, ratio = new_offset, new_ratio

    def test_twinkle_bounded(self, choreographer):
        run(choreographer, 0.5, SceneMode.TREE)
        ratio = choreographer.render_scales() / choreographer.scales
        amplitude = SpringConfig().twinkle_amplitude
        assert ratio.min() >= 1 - amplitude - 1e-9
        assert ratio.max() <= 1 + amplitude + 1e-9
