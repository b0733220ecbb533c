"""
Tests for Layer, ClipboardLayer and LayerStack.
"""
import pytest

from sprite_stacker.core.errors import LastLayerError, LayerNotFoundError
from sprite_stacker.core.layers import ClipboardLayer, HydrationState, Layer, LayerStack

from conftest import RED


# ══════════════════════════════════════════════════════════════════════════
# Layer
# ══════════════════════════════════════════════════════════════════════════

class TestLayer:

    def test_blank_layer_is_ready_and_encoded(self):
        layer = Layer.blank("Layer 1", 4, 4)
        assert layer.is_hydrated
        assert layer.hydration is HydrationState.READY
        assert layer.encoded_image.startswith("data:image/png;base64,")

    def test_from_snapshot_is_pending(self):
        src = Layer.blank("A", 4, 4)
        layer = Layer.from_snapshot(src.to_snapshot(), 4, 4)
        assert layer.buffer is None
        assert layer.hydration is HydrationState.PENDING
        assert layer.id == src.id

    def test_snapshot_keys(self):
        snap = Layer.blank("A", 2, 2).to_snapshot()
        assert set(snap) == {"id", "name", "isVisible", "isLocked", "opacity", "rotation", "encodedImage"}

    def test_malformed_fields_fall_back(self):
        layer = Layer.from_snapshot({"opacity": "lots", "rotation": 100, "name": ""}, 4, 4)
        assert layer.opacity == 1.0
        assert layer.rotation == 90
        assert layer.name == "Layer"
        assert layer.id

    def test_opacity_clamped(self):
        layer = Layer(id="x", name="x", width=2, height=2, opacity=3.0)
        assert layer.opacity == 1.0

    def test_snapshot_without_image_gets_blank_buffer(self):
        layer = Layer.from_snapshot({"id": "q", "name": "Q"}, 3, 3)
        assert layer.is_hydrated
        assert layer.buffer.count_opaque() == 0

    def test_legacy_data_url_key(self):
        src = Layer.blank("A", 2, 2)
        layer = Layer.from_snapshot({"id": "b", "dataURL": src.encoded_image}, 2, 2)
        assert layer.encoded_image == src.encoded_image


# ══════════════════════════════════════════════════════════════════════════
# LayerStack
# ══════════════════════════════════════════════════════════════════════════

class TestLayerStack:

    def test_create_orders_newest_on_top(self, stack3):
        assert [layer.name for layer in stack3] == ["Layer 3", "Layer 2", "Layer 1"]
        assert stack3.active_index == 0

    def test_add_layer_goes_on_top_and_becomes_active(self, stack3):
        layer = stack3.add_layer()
        assert stack3[0] is layer
        assert stack3.active_layer_id == layer.id
        assert layer.name == "Layer 4"

    def test_delete_last_layer_refused(self):
        stack = LayerStack.create(4, 4, 1)
        with pytest.raises(LastLayerError, match="Cannot delete the last layer."):
            stack.delete_layer()
        assert len(stack) == 1

    def test_cut_last_layer_message(self):
        stack = LayerStack.create(4, 4, 1)
        with pytest.raises(LastLayerError, match="Cannot cut the last layer."):
            stack.delete_layer(action="cut")

    def test_delete_active_selects_layer_above(self, stack3):
        stack3.select_layer(stack3[2].id)
        above = stack3[1].id
        stack3.delete_layer()
        assert stack3.active_layer_id == above
        assert len(stack3) == 2

    def test_delete_top_keeps_index_zero(self, stack3):
        stack3.delete_layer(stack3[0].id)
        assert stack3.active_index == 0

    def test_delete_unknown(self, stack3):
        with pytest.raises(LayerNotFoundError):
            stack3.delete_layer("missing")

    def test_reorder(self, stack3):
        names = [layer.name for layer in stack3]
        assert stack3.reorder(0, 2)
        assert [layer.name for layer in stack3] == [names[1], names[2], names[0]]

    @pytest.mark.parametrize("src,dst", [(0, 0), (-1, 1), (0, 3)])
    def test_reorder_rejects_bad_indices(self, stack3, src, dst):
        before = stack3.ids()
        assert not stack3.reorder(src, dst)
        assert stack3.ids() == before

    def test_select_unknown_layer(self, stack3):
        active = stack3.active_layer_id
        assert not stack3.select_layer("nope")
        assert stack3.active_layer_id == active

    def test_unique_name(self, stack3):
        assert stack3.unique_name("Fresh") == "Fresh"
        assert stack3.unique_name("Layer 1") == "Layer 1 Copy 1"
        stack3[0].name = "Layer 1 Copy 1"
        assert stack3.unique_name("Layer 1") == "Layer 1 Copy 2"

    def test_property_edits(self, stack3):
        lid = stack3[1].id
        stack3.set_visibility(lid, False)
        stack3.set_locked(lid, True)
        stack3.set_opacity(lid, -2)
        stack3.rename(lid, "  Hull  ")
        layer = stack3.get(lid)
        assert (layer.is_visible, layer.is_locked, layer.opacity, layer.name) == (False, True, 0.0, "Hull")

    def test_blank_rename_ignored(self, stack3):
        stack3.rename(stack3[0].id, "   ")
        assert stack3[0].name == "Layer 3"

    def test_snapshot_restore_keeps_active(self, stack3):
        stack3[1].buffer.set_pixel(0, 0, RED)
        stack3[1].refresh_encoding()
        stack3.select_layer(stack3[1].id)
        snap = stack3.snapshot()
        stack3.add_layer()
        stack3.restore(snap)
        assert len(stack3) == 3
        assert stack3.active_index == 1
        assert stack3[1].buffer is None
        assert stack3[1].encoded_image == snap[1]["encodedImage"]

    def test_restore_falls_back_to_top_layer(self, stack3):
        snap = stack3.snapshot()
        stack3.add_layer()
        stack3.restore(snap)
        assert stack3.active_index == 0

    @pytest.mark.parametrize("snap", [[], ["garbage"], None])
    def test_restore_refuses_empty_snapshot(self, stack3, snap):
        ids = stack3.ids()
        with pytest.raises(ValueError):
            stack3.restore(snap)
        assert stack3.ids() == ids
        assert stack3.active_layer is not None


# ══════════════════════════════════════════════════════════════════════════
# Clipboard
# ══════════════════════════════════════════════════════════════════════════

class TestClipboard:

    def test_round_trip_dict(self):
        layer = Layer.blank("Hull", 2, 2)
        clip = ClipboardLayer.from_layer(layer, name="Hull Copy")
        again = ClipboardLayer.from_dict(clip.to_dict())
        assert again == clip

    @pytest.mark.parametrize("bad", [None, "x", {}, {"name": "no image"}])
    def test_from_dict_rejects_incomplete(self, bad):
        assert ClipboardLayer.from_dict(bad) is None
