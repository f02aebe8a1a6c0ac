"""
场景相机测试
"""

import math

import numpy as np
import pytest

from treeconfig.settings import CameraDirectorConfig
from treecore.camera import CameraDirector
from treecore.interaction import OrbitRotation, SceneMode


@pytest.fixture
def director():
    return CameraDirector(CameraDirectorConfig())


def test_starts_at_configured_position(director):
    assert director.pose.position == (0.0, 2.0, 12.0)
    assert director.pose.look_at == (0.0, 0.0, 0.0)


def test_tree_target_uses_orbit(director):
    target = director.target_for(SceneMode.TREE, OrbitRotation(0.0, 0.0))
    np.testing.assert_allclose(target, [0.0, 2.0, 12.0])

    orbit = OrbitRotation(x=0.3, y=math.pi / 2)
    target = director.target_for(SceneMode.TREE, orbit)
    np.testing.assert_allclose(target, [12.0, math.sin(0.3) * 5 + 2, 0.0], atol=1e-9)


def test_galaxy_is_farther(director):
    tree = director.target_for(SceneMode.TREE, OrbitRotation())
    galaxy = director.target_for(SceneMode.GALAXY, OrbitRotation())
    assert np.linalg.norm(galaxy) > np.linalg.norm(tree)


def test_hand_drives_camera_in_galaxy(director):
    target = director.target_for(SceneMode.GALAXY, OrbitRotation(), (1.0, 0.0), is_tracking=True)
    np.testing.assert_allclose(target, [10.0, 7.0, 18.0])


def test_hand_ignored_in_tree_mode(director):
    with_hand = director.target_for(SceneMode.TREE, OrbitRotation(), (1.0, 0.0), is_tracking=True)
    without = director.target_for(SceneMode.TREE, OrbitRotation())
    np.testing.assert_allclose(with_hand, without)


def test_hand_ignored_when_not_tracking(director):
    target = director.target_for(SceneMode.GALAXY, OrbitRotation(), (1.0, 0.0), is_tracking=False)
    np.testing.assert_allclose(target, [0.0, 2.0, 18.0])


def test_smoothing_is_frame_rate_independent():
    fast = CameraDirector()
    slow = CameraDirector()
    for _ in range(120):
        fast.update(1 / 120, SceneMode.GALAXY, OrbitRotation())
    for _ in range(30):
        slow.update(1 / 30, SceneMode.GALAXY, OrbitRotation())
    np.testing.assert_allclose(fast.pose.position, slow.pose.position, atol=1e-9)


def test_exponential_decay(director):
    pose = director.update(0.25, SceneMode.GALAXY, OrbitRotation())
    expected_z = 12.0 + (18.0 - 12.0) * (1 - math.exp(-4.0 * 0.25))
    assert pose.position[2] == pytest.approx(expected_z)


def test_reset(director):
    director.update(1.0, SceneMode.GALAXY, OrbitRotation())
    director.reset()
    assert director.pose.position == (0.0, 2.0, 12.0)


def test_pose_to_dict(director):
    data = director.pose.to_dict()
    assert data == {"position": [0.0, 2.0, 12.0], "look_at": [0.0, 0.0, 0.0]}
