from __future__ import annotations

import math

import pytest

from map_quiz.geometry import Affine, BoundingBox, SingularTransformError, union_all


def test_composition_applies_right_operand_first() -> None:
    m = Affine.translate(10, 20) @ Affine.scale(2)
    p = m.apply(1, 1)
    assert (p.x, p.y) == pytest.approx((12.0, 22.0))

    m2 = Affine.scale(2) @ Affine.translate(10, 20)
    p2 = m2.apply(1, 1)
    assert (p2.x, p2.y) == pytest.approx((22.0, 42.0))


def test_inverse_undoes_rotation_skew_and_translation() -> None:
    m = Affine.translate(7, -3) @ Affine.rotate(33) @ Affine.skew_x(12) @ Affine.scale(1.5, 0.5)
    back = (m.inverse() @ m).apply(4.25, -9.5)
    assert (back.x, back.y) == pytest.approx((4.25, -9.5))


def test_rotate_about_center() -> None:
    p = Affine.rotate(90, 5, 5).apply(10, 5)
    assert (p.x, p.y) == pytest.approx((5.0, 10.0))


@pytest.mark.parametrize(
    "matrix",
    [
        Affine.scale(0),
        Affine(a=1, b=2, c=2, d=4),
        Affine(a=math.nan),
    ],
)
def test_singular_matrices_cannot_be_inverted(matrix: Affine) -> None:
    with pytest.raises(SingularTransformError):
        matrix.inverse()


def test_box_union_and_padding() -> None:
    a = BoundingBox(10, 10, 10, 5)
    b = BoundingBox(25, 12, 5, 8)
    u = a.union(b)
    assert u == BoundingBox(10, 10, 20, 10)

    padded = u.padded(0.1)
    assert (padded.x, padded.y, padded.width, padded.height) == pytest.approx((8.0, 9.0, 24.0, 12.0))


def test_union_all_skips_missing_boxes() -> None:
    assert union_all([None, None]) is None
    assert union_all([None, BoundingBox(1, 2, 3, 4)]) == BoundingBox(1, 2, 3, 4)


def test_degenerate_boxes() -> None:
    assert BoundingBox(0, 0, 0, 5).is_degenerate()
    assert BoundingBox(0, 0, 5, -1).is_degenerate()
    assert BoundingBox(math.inf, 0, 5, 5).is_degenerate()
    assert not BoundingBox(0, 0, 0.01, 0.01).is_degenerate()


def test_transformed_box_uses_all_four_corners() -> None:
    square = BoundingBox(0, 0, 2, 2)
    rotated = square.transformed(Affine.rotate(45))
    diag = 2 * math.sqrt(2)
    assert rotated.x == pytest.approx(-diag / 2)
    assert rotated.y == pytest.approx(0.0, abs=1e-9)
    assert rotated.width == pytest.approx(diag)
    assert rotated.height == pytest.approx(diag)
