"""
场景运行时测试
"""

import numpy as np
import pytest

from treecore.formation import ElementClass
from treecore.gesture import GestureState, GestureType
from treecore.interaction import PointerEvent, SceneMode
from treecore.scene import TreeScene


@pytest.fixture
def scene(small_config):
    return TreeScene(small_config)


def open_hand():
    return GestureState(GestureType.OPEN, (0.5, 0.5), 0.2, True)


def test_builds_all_classes(scene):
    counts = {c: len(r) for c, r in scene.ranges.items()}
    assert counts == {
        ElementClass.AMBIENT: 40,
        ElementClass.GIFT_BOX: 4,
        ElementClass.GEM: 6,
        ElementClass.RIBBON: 10,
        ElementClass.PHOTO: 3,
    }
    assert len(scene.choreographer) == 63
    assert len(scene.styles) == 63
    assert list(scene.photo_ids) == [60, 61, 62]


def test_photo_records_reference_assets(scene):
    record = scene.choreographer.record(60)
    assert record.visual_ref is scene.photos[0]
    assert scene.choreographer.record(0).visual_ref["shape"] == "sphere"


def test_gesture_drives_galaxy_formation(scene):
    scene.frame(0.0)
    scene.controller.submit_gesture(open_hand())
    events = scene.frame(1 / 60)
    assert [e.event_type for e in events] == ["mode_change"]

    for i in range(2, 240):
        scene.frame(i / 60)

    assert scene.controller.mode == SceneMode.GALAXY
    assert scene.choreographer.is_settled()
    np.testing.assert_allclose(
        scene.choreographer.positions, scene.choreographer.galaxy_targets, atol=0.05
    )


def test_first_frame_does_not_move(scene):
    before = scene.choreographer.positions.copy()
    scene.controller.submit_gesture(open_hand())
    scene.frame(100.0)
    np.testing.assert_array_equal(scene.choreographer.positions, before)


def test_pinch_focuses_photo(scene):
    photo = scene.photo_ids[1]
    scene.controller.candidates.update([(photo, 0.5, 0.5)])
    scene.frame(0.0)
    scene.controller.submit_gesture(GestureState(GestureType.PINCH, (0.5, 0.5), 0.01, True))

    for i in range(1, 180):
        scene.frame(i / 60)

    record = scene.choreographer.record(photo)
    np.testing.assert_allclose(record.position, scene.config.spring.focus_target, atol=0.05)
    assert scene.snapshot()["effective_mode"] == "focus"


def test_switching_focus_restores_previous_target(scene):
    first, second = scene.photo_ids[0], scene.photo_ids[2]
    scene.controller.candidates.update([(first, 0.3, 0.5), (second, 0.7, 0.5)])
    scene.frame(0.0)
    scene.controller.submit_gesture(GestureState(GestureType.PINCH, (0.3, 0.5), 0.01, True))
    for i in range(1, 30):
        scene.frame(i / 60)
    assert scene.choreographer.focused_id == first

    scene.controller.submit_gesture(GestureState(GestureType.NONE, (0.5, 0.5), 0.2, True))
    scene.controller.submit_gesture(GestureState(GestureType.PINCH, (0.7, 0.5), 0.01, True))
    scene.frame(30 / 60)

    choreographer = scene.choreographer
    assert choreographer.focused_id == second
    np.testing.assert_array_equal(choreographer.current_target(first), choreographer.tree_targets[first])
    np.testing.assert_array_equal(choreographer.current_target(second), scene.config.spring.focus_target)
    assert choreographer.current_target_scale(first) == pytest.approx(choreographer.record(first).base_scale)


def test_double_click_toggles(scene):
    scene.controller.submit_pointer(PointerEvent("down", 10, 10, 0.0))
    scene.controller.submit_pointer(PointerEvent("up", 10, 10, 50.0))
    scene.controller.submit_pointer(PointerEvent("down", 10, 10, 150.0))
    scene.frame(0.2)
    assert scene.controller.mode == SceneMode.GALAXY


def test_snapshot(scene):
    scene.frame(0.0)
    snapshot = scene.snapshot()
    assert snapshot["mode"] == "tree"
    assert snapshot["camera"]["position"] == [0.0, 2.0, 12.0]
    assert snapshot["tracking_available"] is False
    assert snapshot["settled"] is True
    assert snapshot["frame"] == 1


def test_particles_payload(scene):
    payload = scene.particles_payload()
    assert len(payload["positions"]) == 63
    assert len(payload["positions"][0]) == 3
    assert len(payload["scales"]) == 63


def test_setup_payload(scene):
    setup = scene.setup_payload()
    assert [c["class"] for c in setup["classes"]] == ["ambient", "gift_box", "gem", "ribbon", "photo"]
    assert setup["classes"][-1] == {"class": "photo", "start": 60, "count": 3}
    assert len(setup["tree_targets"]) == 63
    assert len(setup["photos"]) == 3
    assert setup["photos"][0]["placeholder"] is True
    assert setup["photos"][0]["image"].startswith("data:image/jpeg")


def test_teardown_is_idempotent(scene):
    scene.frame(0.0)
    scene.teardown()
    scene.teardown()
    assert len(scene.choreographer) == 0
    assert scene.particles_payload() == {"positions": [], "scales": []}
    scene.frame(1.0)
