"""Tests for taleweaver.ledger — SceneLedger."""

import pytest

from taleweaver.ledger import LedgerError, SceneLedger
from taleweaver.models import Scene, Segment


def _scene(text: str, segments: int = 1) -> Scene:
    return Scene(segments=[Segment(text=f"{text} {i}") for i in range(segments)])


class TestAppend:
    def test_empty_ledger(self) -> None:
        ledger = SceneLedger()
        assert len(ledger) == 0
        assert ledger.cursor == -1
        assert ledger.current is None
        assert ledger.is_viewing_latest

    def test_append_moves_cursor(self) -> None:
        ledger = SceneLedger()
        assert ledger.append(_scene("a")) == 0
        assert ledger.append(_scene("b")) == 1
        assert ledger.cursor == 1
        assert ledger.current.segments[0].text == "b 0"

    def test_append_refused_while_viewing_history(self) -> None:
        ledger = SceneLedger([_scene("a"), _scene("b")])
        ledger.navigate(0)
        with pytest.raises(LedgerError):
            ledger.append(_scene("c"))
        assert len(ledger) == 2


class TestNavigate:
    def test_clamped_to_bounds(self) -> None:
        ledger = SceneLedger([_scene("a"), _scene("b"), _scene("c")])
        assert ledger.navigate(-5) == 0
        assert ledger.navigate(99) == 2

    def test_no_op_on_empty(self) -> None:
        ledger = SceneLedger()
        assert ledger.navigate(3) == -1

    def test_history_untouched(self) -> None:
        scenes = [_scene("a"), _scene("b")]
        ledger = SceneLedger(scenes)
        before = [s.model_copy(deep=True) for s in ledger.scenes]
        ledger.navigate(0)
        ledger.navigate(1)
        assert ledger.scenes == before

    def test_restored_cursor(self) -> None:
        ledger = SceneLedger([_scene("a"), _scene("b")], cursor=0)
        assert ledger.cursor == 0
        assert not ledger.is_viewing_latest


class TestPatchSegmentImage:
    def test_patches_in_place(self) -> None:
        ledger = SceneLedger([_scene("a", segments=2)])
        assert ledger.patch_segment_image(0, 1, "data:image/png;base64,AA==")
        assert ledger.scenes[0].segments[1].image == "data:image/png;base64,AA=="
        assert ledger.scenes[0].segments[0].image == ""

    def test_patch_historical_scene(self) -> None:
        ledger = SceneLedger([_scene("a"), _scene("b")])
        assert ledger.patch_segment_image(0, 0, "img")
        assert ledger.cursor == 1

    @pytest.mark.parametrize("scene,segment", [(1, 0), (0, 3), (-1, 0)])
    def test_out_of_range_ignored(self, scene: int, segment: int) -> None:
        ledger = SceneLedger([_scene("a", segments=2)])
        assert not ledger.patch_segment_image(scene, segment, "img")
        assert all(s.image == "" for s in ledger.scenes[0].segments)
