import logging

import pytest

from signcompose.coordinates import Box, clamp, resolve
from signcompose.errors import NoValidCoordinates
from signcompose.schemas import Field, PercentPosition, PixelPosition

PAGES = [(612, 792), (595.28, 841.89), (300, 144)]
PERCENTS = [(0, 0, 100, 100), (10, 20, 30, 5), (50, 50, 25, 8), (99, 1, 1, 99), (0, 95, 100, 5)]


@pytest.mark.parametrize("page", PAGES)
@pytest.mark.parametrize("left,top,width,height", PERCENTS)
def test_percent_round_trip(page, left, top, width, height):
    W, H = page
    box = resolve(PercentPosition(left_percent=left, top_percent=top, width_percent=width, height_percent=height), W, H)
    assert box.x == pytest.approx(left / 100 * W)
    assert box.x + box.width == pytest.approx((left + width) / 100 * W)
    assert H - box.y - box.height == pytest.approx(top / 100 * H)
    assert box.height == pytest.approx(height / 100 * H)


def test_pixel_form_scales_from_original_size():
    pos = PixelPosition(x=100, y=200, width=300, height=50, original_width=1224, original_height=1584)
    box = resolve(pos, 612, 792)
    assert box == Box(50, 792 - 100 - 25, 150, 25)


def test_pixel_form_without_original_size_is_unscaled(caplog):
    with caplog.at_level(logging.WARNING, logger="signcompose.coordinates"):
        box = resolve(PixelPosition(x=10, y=20, width=100, height=30), 612, 792)
    assert box == Box(10, 792 - 20 - 30, 100, 30)
    assert "no original size" in caplog.text


def test_in_bounds_box_is_unchanged():
    box = Box(10, 20, 30, 40)
    assert clamp(box, 612, 792) is box
    edge = Box(0, 0, 612, 792)
    assert clamp(edge, 612, 792) is edge


@pytest.mark.parametrize(
    "box",
    [Box(-20, 10, 100, 50), Box(580, 780, 100, 50), Box(-5, -5, 1000, 1000), Box(700, 900, 10, 10), Box(10, 10, -5, 20)],
)
def test_out_of_bounds_box_is_clamped(box):
    W, H = 612, 792
    clamped = clamp(box, W, H)
    assert 0 <= clamped.x <= W and 0 <= clamped.y <= H
    assert clamped.width >= 0 and clamped.height >= 0
    assert clamped.x + clamped.width <= W
    assert clamped.y + clamped.height <= H
    assert clamp(clamped, W, H) == clamped


def test_percent_beyond_page_is_clamped_not_rejected():
    box = resolve(PercentPosition(left_percent=90, top_percent=-10, width_percent=30, height_percent=20), 600, 800)
    assert (box.x, box.y, box.width, box.height) == pytest.approx((540, 720, 60, 80))


def test_field_without_position_raises():
    field = Field(id="x", type="text")
    with pytest.raises(NoValidCoordinates):
        resolve(field, 612, 792)
    with pytest.raises(NoValidCoordinates):
        resolve(None, 612, 792)
