
""" Image processing backend. Currently implemented using Pillow (PIL). PIL exports 8bit images only."""



#                                           === Backend ===

from array import array
from typing import Any, Sequence, Tuple, TypeAlias

from PIL import Image as _PIL
from PIL.Image import Image as PILImage
from PIL import Image as PILImageModule
from PIL import ImageChops

ImageObject: TypeAlias = PILImage


def close_image(image: object) -> None:
    close = getattr(image, "close", None)
    if callable(close):
        close()


def get_channel(image: ImageObject, ch: str) -> ImageObject:
# Extracts a single channel by name ("R","G","B","A","L")
    return image.getchannel(ch.upper())


def get_image_mode(image: Any) -> str:
# Return the Pillow image mode: "RGB", "RGBA", "L"
    return image.mode


def get_size(image: ImageObject) -> Tuple[int, int]:
# Returns the image size as (width, height)
    return image.size


def invert(image: ImageObject) -> ImageObject:
# Per-pixel 255 - value, i.e. 1 - x in normalized units.
    return ImageChops.invert(image)


def merge_channels(mode: str, channels: Sequence[Any]) -> ImageObject:
# Merge separate channels into a single image.
    return _PIL.merge(mode, tuple(channels))


def new_image_grayscale(size: Tuple[int, int], fill: int) -> Any:
# Create a new grayscale image.
    return _PIL.new("L", size, fill)


def open_image(path: str) -> ImageObject:
# Opens and fully loads the file, so the handle isn't kept open.
    with _PIL.open(path) as image:
        image.load()
        return image.copy()


def save_image(image: Any, path: str) -> None:
    image.save(path)




#                                           === Utils ===


def images_equal(image1: ImageObject, image2: ImageObject) -> bool:
# Returns True if both images have the same mode, size and pixels.

    if image1.mode != image2.mode or image1.size != image2.size:
        return False
    return image1.tobytes() == image2.tobytes()
    # Compares every channel; a difference bbox of an RGBA image only reflects alpha.


def is_grayscale(image: ImageObject) -> bool:
# Returns True if the image is of type grayscale image.

    mode = get_image_mode(image)
    return mode in ("L", "LA") or mode == "I" or str(mode).startswith("I;16")


def red_channel(image: ImageObject) -> ImageObject:
# Returns the 8-bit red channel of a source; grayscale images are their own red channel.

    if is_grayscale(image):
        return convert_to_grayscale(image)
    if get_image_mode(image) in ("RGB", "RGBA"):
        return get_channel(image, "R")
    return get_channel(image.convert("RGB"), "R")
    # Palette and other modes are expanded first.


def convert_to_grayscale(image: ImageObject) -> ImageObject:
# Converts an image to 8-bit grayscale.
    mode = image.mode
    if mode == "L":
        return image
    if mode == "LA":
        return get_channel(image, "L")
    if mode in ("I", "I;16", "I;16L", "I;16B"):
        return _16_to_8bit(image)
    return image.convert("L")


def _16_to_8bit(image: ImageObject) -> ImageObject:
# Scales down 16bit range to a 8bit, so values are properly maintained instead of being clipped.

# Preparing the image:
    if image.mode == "I":
        img16 = image.convert("I;16")
    elif image.mode in ("I;16", "I;16L", "I;16B"):
        img16 = image if image.mode == "I;16" else image.convert("I;16")
    # Normalizes the image type to 16bit LE.
    else:
        return image.convert("L")
    # If the image is just 8bit grayscale, passes it though.

    raw = img16.tobytes("raw", "I;16")  # LE 16bit
    data16 = array("H")
    data16.frombytes(raw)

# Scaling:
    data8 = bytearray((v >> 8) & 0xFF for v in data16)
    return PILImageModule.frombytes("L", img16.size, bytes(data8))
