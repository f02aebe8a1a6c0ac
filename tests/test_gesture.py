"""
手势分类测试
"""

import pytest

from treecore.gesture import NO_HAND, GestureClassifier, GestureType
from treecore.landmarks import LandmarkFrame

ALL_FINGERS = ("index", "middle", "ring", "pinky")


@pytest.fixture
def classifier():
    return GestureClassifier()


class TestClassify:

    def test_pinch_takes_precedence_over_open_hand(self, classifier, make_hand):
        frame = make_hand(extended=ALL_FINGERS, pinch=True)
        assert classifier.classify(frame) == GestureType.PINCH

    def test_pinch_takes_precedence_over_fist(self, classifier, make_hand):
        frame = make_hand(extended=(), pinch=True)
        assert classifier.classify(frame) == GestureType.PINCH

    def test_open_hand(self, classifier, make_hand):
        assert classifier.classify(make_hand(extended=ALL_FINGERS)) == GestureType.OPEN

    def test_three_fingers_is_open(self, classifier, make_hand):
        frame = make_hand(extended=("index", "middle", "ring"))
        assert classifier.classify(frame) == GestureType.OPEN

    def test_fist(self, classifier, make_hand):
        assert classifier.classify(make_hand(extended=())) == GestureType.FIST

    def test_single_non_index_finger_is_fist(self, classifier, make_hand):
        assert classifier.classify(make_hand(extended=("pinky",))) == GestureType.FIST

    def test_pointing(self, classifier, make_hand):
        assert classifier.classify(make_hand(extended=("index",))) == GestureType.POINTING

    def test_two_fingers_is_none(self, classifier, make_hand):
        frame = make_hand(extended=("index", "middle"))
        assert classifier.classify(frame) == GestureType.NONE

    def test_no_hand(self, classifier):
        assert classifier.classify(None) == GestureType.NONE

    def test_incomplete_frame_is_none(self, classifier):
        frame = LandmarkFrame.from_points([(0.5, 0.5)] * 10)
        assert classifier.classify(frame) == GestureType.NONE

    def test_custom_pinch_threshold(self, make_hand):
        strict = GestureClassifier(pinch_threshold=0.005)
        frame = make_hand(extended=ALL_FINGERS, pinch=True)
        assert strict.classify(frame) == GestureType.OPEN


class TestAnalyze:

    def test_no_hand_state(self, classifier):
        state = classifier.analyze(None)
        assert state is NO_HAND
        assert not state.is_tracking
        assert state.hand_position is None
        assert state.pinch_distance == 1.0

    def test_hand_position_is_mirrored_palm(self, classifier, make_hand):
        state = classifier.analyze(make_hand(extended=ALL_FINGERS, offset=(0.1, 0.0)))
        # 中指指根 x=0.6 -> 镜像后 0.4
        assert state.hand_position == pytest.approx((0.4, 0.6))
        assert state.is_tracking
        assert state.gesture == GestureType.OPEN

    def test_pinch_distance_reported(self, classifier, make_hand):
        state = classifier.analyze(make_hand(pinch=True))
        assert state.pinch_distance == pytest.approx(0.01)

    def test_incomplete_frame_tracks_without_position(self, classifier):
        frame = LandmarkFrame.from_points([(0.5, 0.5, 0.0)] * 5)
        state = classifier.analyze(frame)
        assert state.is_tracking
        assert state.gesture == GestureType.NONE
        assert state.hand_position is None

    def test_to_dict(self, classifier, make_hand):
        data = classifier.analyze(make_hand(extended=("index",))).to_dict()
        assert data["gesture"] == "pointing"
        assert data["is_tracking"] is True
        assert len(data["hand_position"]) == 2
