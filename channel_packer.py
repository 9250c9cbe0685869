
""" Packs metallic and roughness/smoothness maps into a single metallic+smoothness texture. """

import os
from typing import List, Optional, Tuple

from backend.image_lib import (ImageObject, get_size, images_equal, invert, merge_channels,
                               new_image_grayscale, red_channel)

from backend.io_backend import AssetHost, HostError, TextureNotReadableError

from backend.texture_classes import PackedChannelImage, SourceImage, TextureFlags, TextureHandle, TextureRole

from settings import COMBINED_MAP_TOKENS, PACKED_TEXTURE_SUFFIX, SHOW_DETAILS
from utils import close_image_files, log, normalize_path


PACKED_TEXTURE_FLAGS: TextureFlags = TextureFlags(readable=True, normal_map=False, srgb=False)
# Packed maps hold linear data; kept readable so later passes can compare them without a reimport.

# Basic packed layout:
# R = G = B = metallic (0 when no metallic map)
# A = 1 - roughness, or the smoothness map itself, or 1 when neither is present




#                                              === Packing ===

def is_combined_map_name(name: str, tokens: Tuple[Tuple[str, ...], ...] = COMBINED_MAP_TOKENS) -> bool:
# True if the name contains a token from every token group, e.g., "wood_metallicsmoothness.png".

    name_lower: str = (name or "").lower()
    return all(any(token in name_lower for token in group) for group in tokens)


def pack_channels(metallic: Optional[SourceImage] = None, roughness: Optional[SourceImage] = None, smoothness: Optional[SourceImage] = None) -> Optional[PackedChannelImage]:
# Builds the packed RGBA image from the available sources; returns None if there is nothing to pack.
# Sources with mismatched sizes aren't combined; packing falls back to the single-source rules.


# Reusing an already combined map:
    for source in (metallic, roughness, smoothness):
        if source is not None and is_combined_map_name(source.name):
            width, height = get_size(source.image) if source.image is not None else (0, 0)
            return PackedChannelImage(width, height, None, source_names=(source.name,), passthrough_path=source.path or source.name)
    # Skips generation; the existing map is bound as it is.

    metallic = metallic if metallic is not None and metallic.image is not None else None
    roughness = roughness if roughness is not None and roughness.image is not None else None
    smoothness = smoothness if smoothness is not None and smoothness.image is not None else None


# Metallic + roughness / smoothness:
    if metallic is not None and roughness is not None:
        if get_size(metallic.image) == get_size(roughness.image):
            return _compose(metallic, alpha_source=roughness, invert_alpha=True)
        _log_size_mismatch(metallic, roughness)
        roughness = None

    if metallic is not None and smoothness is not None:
        if get_size(metallic.image) == get_size(smoothness.image):
            return _compose(metallic, alpha_source=smoothness, invert_alpha=False)
        _log_size_mismatch(metallic, smoothness)
        smoothness = None


# Single source:
    if metallic is not None:
        return _compose(metallic, alpha_source=None)
    if roughness is not None:
        return _compose(None, alpha_source=roughness, invert_alpha=True)
    if smoothness is not None:
        return _compose(None, alpha_source=smoothness, invert_alpha=False)
    return None


def _compose(metallic: Optional[SourceImage], alpha_source: Optional[SourceImage], invert_alpha: bool = False) -> PackedChannelImage:
# Merges RGB = metallic.r and A = (1 -) alpha_source.r; missing channels get the defaults 0 (metal) and 255 (smooth).

    size: Tuple[int, int] = get_size(metallic.image if metallic is not None else alpha_source.image)
    channels: List[ImageObject] = []

    metallic_channel: ImageObject = red_channel(metallic.image) if metallic is not None else new_image_grayscale(size, 0)

    if alpha_source is None:
        alpha_channel: ImageObject = new_image_grayscale(size, 255)
    else:
        alpha_channel = red_channel(alpha_source.image)
        if invert_alpha:
            alpha_channel = invert(alpha_channel)

    channels.extend([metallic_channel, metallic_channel, metallic_channel, alpha_channel])
    packed_image = merge_channels("RGBA", channels)

    source_names = tuple(source.name for source in (metallic, alpha_source) if source is not None)
    return PackedChannelImage(size[0], size[1], packed_image, source_names=source_names)


def _log_size_mismatch(first: SourceImage, second: SourceImage) -> None:
    if SHOW_DETAILS:
        first_width, first_height = get_size(first.image)
        second_width, second_height = get_size(second.image)
        log(f"Size mismatch: {first.name} ({first_width}x{first_height}) and {second.name} ({second_width}x{second_height}) - skipping '{second.name}'.", "warn")
    else:
        log(f"Size mismatch between '{first.name}' and '{second.name}' - skipping '{second.name}'.", "warn")
    # Prints warning.




#                                            === Host interface ===

def load_readable_source(host: AssetHost, texture: Optional[TextureHandle]) -> Optional[SourceImage]:
# Loads a single-channel source, flipping the host's readable (and linear) flags first if needed.
# Returns None if the pixels still can't be read; the packer then treats the source as missing.

    if texture is None:
        return None

    if is_combined_map_name(texture.name):
        return SourceImage(texture.name, None, texture.path)
    # Pass-through maps aren't read at all.

    try:
        flags: TextureFlags = host.get_texture_flags(texture.path)
        if not flags.readable or flags.srgb:
            host.set_texture_flags(texture.path, readable=True, srgb=False)
            log(f"Made readable: {texture.name}", "info")
            # Prints info.
        image = host.load_image(texture.path)
    except TextureNotReadableError:
        log(f"Texture still not readable after reimport: {texture.name} - skipping.", "warn")
        return None
    except (HostError, OSError, ValueError) as error:
        log(f"Cannot open image file: {texture.path} - {error}", "warn")
        return None
    return SourceImage(texture.name, image, texture.path)


def prepare_normal_map(host: AssetHost, texture: Optional[TextureHandle]) -> bool:
# Reimports a texture as a linear normal map; returns True if its import settings changed.

    if texture is None:
        return False
    changed: bool = host.set_texture_flags(texture.path, normal_map=True, srgb=False)
    if changed:
        log(f"Reimported as normal map: {texture.name}", "info")
        # Prints info.
    return changed


def packed_texture_path(folder: str, base_name: str, packed_suffix: str = PACKED_TEXTURE_SUFFIX) -> str:
# E.g., "Chair.fbm/Chair_MetallicSmoothness_packed.png"
    suffix: str = f"_{packed_suffix}" if packed_suffix else ""
    return normalize_path(os.path.join(folder, f"{base_name}_MetallicSmoothness{suffix}.png"))


def persist_packed_texture(host: AssetHost, packed: PackedChannelImage, target_path: str) -> Tuple[TextureHandle, bool]:
# Writes the packed image as a new asset and returns the reloaded persisted copy, and whether anything was written.
# Identical content already on disk is left untouched, so re-running on unchanged sources changes nothing.

    if packed.is_passthrough:
        return TextureHandle(packed.passthrough_path, os.path.basename(packed.passthrough_path), TextureRole.METALLIC, True), False

    existing_image: Optional[ImageObject] = None
    if host.asset_exists(target_path):
        try:
            existing_image = host.load_image(target_path)
        except (HostError, OSError, ValueError):
            existing_image = None

    try:
        if existing_image is not None and images_equal(existing_image.convert("RGBA"), packed.image):
            return _persisted_handle(host, target_path), False

        written_path: str = host.write_image(packed.image, target_path, flags=PACKED_TEXTURE_FLAGS)
        reloaded_image = host.load_image(written_path)
        close_image_files([reloaded_image])
        # Round trip through storage, the binding needs the persisted asset rather than the in-memory buffer.

        log(f"Created: {os.path.basename(written_path)} ({packed.width}x{packed.height})" if SHOW_DETAILS else f"Created: {os.path.basename(written_path)}", "complete")
        # Prints completed.
        return _persisted_handle(host, written_path), True
    finally:
        close_image_files([existing_image])


def _persisted_handle(host: AssetHost, path: str) -> TextureHandle:
    return TextureHandle(normalize_path(path), os.path.basename(path), TextureRole.METALLIC, host.get_texture_flags(path).readable)

