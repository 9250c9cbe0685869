import numpy as np
import pytest
from PIL import Image

from backend.image_lib import images_equal
from backend.texture_classes import SourceImage, TextureHandle, TextureRole
from channel_packer import (is_combined_map_name, load_readable_source, pack_channels, packed_texture_path,
                            persist_packed_texture, prepare_normal_map)

from conftest import METALLIC_VALUES, ROUGHNESS_VALUES, read_pixels


def source(name, values, size=(4, 4)):
    image = Image.fromarray(values) if isinstance(values, np.ndarray) else Image.new("L", size, values)
    return SourceImage(name, image, f"wood.fbm/{name}")


def pixels(packed):
    return np.asarray(packed.image)


def test_metallic_and_roughness_follow_the_composition_law():
    packed = pack_channels(metallic=source("wood_metal.png", METALLIC_VALUES), roughness=source("wood_rough.png", ROUGHNESS_VALUES))
    data = pixels(packed)

    assert packed.image.mode == "RGBA"
    assert (packed.width, packed.height) == (4, 4)
    for channel in range(3):
        assert np.array_equal(data[..., channel], METALLIC_VALUES)
    assert np.array_equal(data[..., 3], 255 - ROUGHNESS_VALUES)
    assert packed.source_names == ("wood_metal.png", "wood_rough.png")


def test_metallic_and_smoothness_keep_smoothness_as_is():
    packed = pack_channels(metallic=source("wood_metal.png", 30), smoothness=source("wood_gloss.png", ROUGHNESS_VALUES))
    data = pixels(packed)

    assert np.all(data[..., :3] == 30)
    assert np.array_equal(data[..., 3], ROUGHNESS_VALUES)


def test_roughness_wins_over_smoothness():
    packed = pack_channels(
        metallic=source("wood_metal.png", 30),
        roughness=source("wood_rough.png", 40),
        smoothness=source("wood_gloss.png", 90),
    )
    assert np.all(pixels(packed)[..., 3] == 215)


def test_metallic_only_gets_full_smoothness():
    packed = pack_channels(metallic=source("wood_metal.png", METALLIC_VALUES))
    data = pixels(packed)

    assert np.array_equal(data[..., 0], METALLIC_VALUES)
    assert np.all(data[..., 3] == 255)
    assert packed.source_names == ("wood_metal.png",)


def test_roughness_only_gets_zero_metallic():
    packed = pack_channels(roughness=source("wood_rough.png", ROUGHNESS_VALUES))
    data = pixels(packed)

    assert np.all(data[..., :3] == 0)
    assert np.array_equal(data[..., 3], 255 - ROUGHNESS_VALUES)


def test_smoothness_only():
    packed = pack_channels(smoothness=source("wood_gloss.png", 77))
    data = pixels(packed)

    assert np.all(data[..., :3] == 0)
    assert np.all(data[..., 3] == 77)


def test_nothing_to_pack():
    assert pack_channels() is None
    assert pack_channels(metallic=SourceImage("wood_metal.png", None)) is None


def test_size_mismatch_falls_back_to_metallic_only():
    packed = pack_channels(metallic=source("wood_metal.png", 200, size=(4, 4)), roughness=source("wood_rough.png", 10, size=(8, 8)))
    data = pixels(packed)

    assert (packed.width, packed.height) == (4, 4)
    assert np.all(data[..., 0] == 200)
    assert np.all(data[..., 3] == 255)
    assert packed.source_names == ("wood_metal.png",)


def test_red_channel_is_used_from_color_sources():
    metallic = SourceImage("wood_metal.png", Image.new("RGB", (2, 2), (180, 20, 90)))
    data = pixels(pack_channels(metallic=metallic))

    assert np.all(data[..., :3] == 180)


def test_combined_map_is_passed_through():
    combined = SourceImage("wood_metallicsmoothness.png", None, "wood.fbm/wood_metallicsmoothness.png")
    packed = pack_channels(metallic=combined, roughness=source("wood_rough.png", 10))

    assert packed.is_passthrough
    assert packed.image is None
    assert packed.passthrough_path == "wood.fbm/wood_metallicsmoothness.png"


def test_is_combined_map_name():
    assert is_combined_map_name("Wood_MetallicGloss.png")
    assert is_combined_map_name("wood_metallicsmoothness.png")
    assert not is_combined_map_name("wood_metal.png")
    assert not is_combined_map_name("wood_smooth.png")


def test_packed_texture_path():
    assert packed_texture_path("assets/wood.fbm", "wood") == "assets/wood.fbm/wood_MetallicSmoothness_packed.png"
    assert packed_texture_path("assets/wood.fbm", "wood", "") == "assets/wood.fbm/wood_MetallicSmoothness.png"


# Host interaction:
def test_load_readable_source_flips_flags(host, make_image):
    path = make_image("wood.fbm/wood_metal.png", 150)
    assert host.get_texture_flags(path).readable is False

    loaded = load_readable_source(host, TextureHandle(path, "wood_metal.png", TextureRole.METALLIC, False))

    flags = host.get_texture_flags(path)
    assert flags.readable is True
    assert flags.srgb is False
    assert loaded.image.getpixel((0, 0)) == 150


def test_load_readable_source_missing_file_is_treated_as_missing(host):
    assert load_readable_source(host, TextureHandle("wood.fbm/gone_metal.png", "gone_metal.png", TextureRole.METALLIC)) is None
    assert load_readable_source(host, None) is None


def test_load_readable_source_does_not_read_combined_maps(host):
    loaded = load_readable_source(host, TextureHandle("wood.fbm/wood_metallicsmoothness.png", "wood_metallicsmoothness.png", TextureRole.METALLIC))
    assert loaded.image is None
    assert loaded.path == "wood.fbm/wood_metallicsmoothness.png"


def test_prepare_normal_map(host, make_image):
    path = make_image("wood.fbm/wood_normal.png", (128, 128, 255), mode="RGB")
    handle = TextureHandle(path, "wood_normal.png", TextureRole.NORMAL)

    assert prepare_normal_map(host, handle) is True
    assert prepare_normal_map(host, handle) is False
    flags = host.get_texture_flags(path)
    assert flags.normal_map is True
    assert flags.srgb is False


def test_persist_packed_texture_writes_once(host, tmp_path):
    packed = pack_channels(metallic=source("wood_metal.png", METALLIC_VALUES), roughness=source("wood_rough.png", ROUGHNESS_VALUES))
    target = packed_texture_path(str(tmp_path / "wood.fbm"), "wood")

    handle, changed = persist_packed_texture(host, packed, target)
    assert changed is True
    assert handle.path == target
    assert handle.readable is True
    assert host.get_texture_flags(target).srgb is False
    assert np.array_equal(read_pixels(target)[..., 3], 255 - ROUGHNESS_VALUES)

    again = pack_channels(metallic=source("wood_metal.png", METALLIC_VALUES), roughness=source("wood_rough.png", ROUGHNESS_VALUES))
    _, changed = persist_packed_texture(host, again, target)
    assert changed is False


def test_persist_passthrough_does_not_write(host, tmp_path):
    combined = pack_channels(metallic=SourceImage("wood_metallicsmoothness.png", None, "wood.fbm/wood_metallicsmoothness.png"))
    handle, changed = persist_packed_texture(host, combined, str(tmp_path / "wood.fbm" / "out.png"))

    assert changed is False
    assert handle.path == "wood.fbm/wood_metallicsmoothness.png"
    assert not (tmp_path / "wood.fbm" / "out.png").exists()


@pytest.mark.parametrize("rough_value", [0, 255])
def test_roughness_extremes(rough_value):
    packed = pack_channels(metallic=source("wood_metal.png", 0), roughness=source("wood_rough.png", rough_value))
    assert np.all(pixels(packed)[..., 3] == 255 - rough_value)


def test_images_equal_compares_every_channel():
    base = Image.new("RGBA", (2, 2), (200, 200, 200, 128))

    assert images_equal(base, Image.new("RGBA", (2, 2), (200, 200, 200, 128)))
    assert not images_equal(base, Image.new("RGBA", (2, 2), (0, 0, 0, 128)))
    assert not images_equal(base, Image.new("RGBA", (2, 2), (200, 200, 200, 127)))
    assert not images_equal(base, Image.new("RGB", (2, 2), (200, 200, 200)))


def test_persist_rewrites_when_only_metallic_changes(host, tmp_path):
    target = packed_texture_path(str(tmp_path / "wood.fbm"), "wood")
    persist_packed_texture(host, pack_channels(metallic=source("wood_metal.png", METALLIC_VALUES), roughness=source("wood_rough.png", ROUGHNESS_VALUES)), target)

    edited = pack_channels(metallic=source("wood_metal.png", 50), roughness=source("wood_rough.png", ROUGHNESS_VALUES))
    _, changed = persist_packed_texture(host, edited, target)

    assert changed is True
    data = read_pixels(target)
    assert np.all(data[..., :3] == 50)
    assert np.array_equal(data[..., 3], 255 - ROUGHNESS_VALUES)
