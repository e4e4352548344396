from fractions import Fraction

import pytest

from backend.engine.attendance import AttendanceCalculator, UnreachableTargetError

TARGETS = [33.33, 50, 65, 75, 80, 85.5, 99]


def meets(attended, total, target):
    exact = Fraction(100 * attended, total) if total else Fraction(0)
    return exact >= Fraction(target)


def count_needed(attended, total, target):
    percentage = AttendanceCalculator.current_percentage(attended, total)
    if percentage >= target or meets(attended, total, target):
        return 0
    classes = 0
    while True:
        classes += 1
        if meets(attended + classes, total + classes, target):
            return classes


def count_bunkable(attended, total, target):
    percentage = AttendanceCalculator.current_percentage(attended, total)
    if percentage < target or not meets(attended, total, target):
        return 0
    best = 0
    for bunks in range(0, total * 200 + 10):
        if meets(attended, total + bunks + 1, target):
            best = bunks
        else:
            break
    return best


def small_records():
    for total in range(0, 21):
        for attended in range(0, total + 1):
            yield attended, total


class TestCurrentPercentage:
    def test_no_classes_held(self):
        assert AttendanceCalculator.current_percentage(0, 0) == 0.0

    def test_three_quarters(self):
        assert AttendanceCalculator.current_percentage(30, 40) == 75.0

    def test_stays_within_bounds(self):
        for attended, total in small_records():
            assert 0 <= AttendanceCalculator.current_percentage(attended, total) <= 100


class TestClassesNeeded:
    def test_reaches_target_exactly(self):
        # 30/40 is exactly 75%, 29/39 is not
        assert AttendanceCalculator.classes_needed(20, 30, 75) == 10

    def test_zero_when_at_target(self):
        assert AttendanceCalculator.classes_needed(30, 40, 75) == 0
        assert AttendanceCalculator.classes_needed(35, 40, 75) == 0

    def test_nothing_held_yet(self):
        assert AttendanceCalculator.classes_needed(0, 0, 75) == 1

    def test_from_zero_attended(self):
        assert AttendanceCalculator.classes_needed(0, 10, 50) == 10

    def test_full_attendance_target_already_met(self):
        assert AttendanceCalculator.classes_needed(10, 10, 100) == 0

    def test_unreachable_target(self):
        with pytest.raises(UnreachableTargetError):
            AttendanceCalculator.classes_needed(9, 10, 100)
        with pytest.raises(UnreachableTargetError):
            AttendanceCalculator.classes_needed(10, 10, 120)

    @pytest.mark.parametrize("target", TARGETS)
    def test_matches_class_by_class_count(self, target):
        for attended, total in small_records():
            assert AttendanceCalculator.classes_needed(
                attended, total, target
            ) == count_needed(attended, total, target), (attended, total)

    def test_large_counts(self):
        needed = AttendanceCalculator.classes_needed(100, 1000, 75)
        assert needed == count_needed(100, 1000, 75)


class TestClassesBunkable:
    def test_stays_at_or_above_target(self):
        assert AttendanceCalculator.classes_bunkable(30, 35, 75) == 4

    def test_zero_when_below_target(self):
        assert AttendanceCalculator.classes_bunkable(20, 30, 75) == 0

    def test_zero_when_exactly_at_target(self):
        assert AttendanceCalculator.classes_bunkable(30, 40, 75) == 0

    def test_nothing_held_yet(self):
        assert AttendanceCalculator.classes_bunkable(0, 0, 75) == 0

    def test_full_attendance_at_full_target(self):
        assert AttendanceCalculator.classes_bunkable(10, 10, 100) == 0

    def test_other_target(self):
        # 9/15 is exactly 60%
        assert AttendanceCalculator.classes_bunkable(9, 10, 60) == 4

    def test_unbounded_target(self):
        with pytest.raises(UnreachableTargetError):
            AttendanceCalculator.classes_bunkable(5, 10, 0)

    @pytest.mark.parametrize("target", TARGETS)
    def test_matches_class_by_class_count(self, target):
        for attended, total in small_records():
            assert AttendanceCalculator.classes_bunkable(
                attended, total, target
            ) == count_bunkable(attended, total, target), (attended, total)

    @pytest.mark.parametrize("target", TARGETS)
    def test_never_both_needed_and_bunkable(self, target):
        for attended, total in small_records():
            needed = AttendanceCalculator.classes_needed(attended, total, target)
            bunks = AttendanceCalculator.classes_bunkable(attended, total, target)
            assert needed == 0 or bunks == 0


class TestTargetEdges:
    @pytest.mark.parametrize("target", [99.9999999999, 99.99999999999999])
    def test_needed_close_to_hundred(self, target):
        needed = AttendanceCalculator.classes_needed(30, 35, target)

        assert meets(30 + needed, 35 + needed, target)
        assert not meets(30 + needed - 1, 35 + needed - 1, target)

    @pytest.mark.parametrize("target", [1e-12, 1e-20, 1e-30])
    def test_bunkable_with_tiny_target(self, target):
        bunks = AttendanceCalculator.classes_bunkable(30, 35, target)

        assert meets(30, 35 + bunks + 1, target)
        assert not meets(30, 35 + bunks + 2, target)

    @pytest.mark.parametrize("target", [99.9999999999, 1e-20])
    def test_needed_and_bunkable_other_side(self, target):
        if target > 50:
            assert AttendanceCalculator.classes_bunkable(30, 35, target) == 0
        else:
            assert AttendanceCalculator.classes_needed(30, 35, target) == 0

    def test_full_target_after_one_missed_class(self):
        with pytest.raises(UnreachableTargetError):
            AttendanceCalculator.classes_needed(34, 35, 100)
        assert AttendanceCalculator.classes_bunkable(34, 35, 100) == 0

    def test_target_equal_to_reported_percentage(self):
        for attended, total in small_records():
            target = AttendanceCalculator.current_percentage(attended, total)
            if target <= 0:
                continue
            assert AttendanceCalculator.classes_needed(attended, total, target) == 0
