import os

import numpy as np
import pytest
from PIL import Image

from backend.io_backend import FileSystemHost
from pbr_importer import PbrImporter
from settings import DEFAULT_KEYWORDS, _as_keyword_table
from texture_assigner import AutoSingle
from utils import normalize_path


KEYWORD_TABLE = _as_keyword_table(DEFAULT_KEYWORDS)

ROUGHNESS_VALUES = (np.arange(16, dtype=np.uint8) * 16).reshape(4, 4)
METALLIC_VALUES = np.full((4, 4), 200, dtype=np.uint8)


@pytest.fixture
def host(tmp_path):
    return FileSystemHost(str(tmp_path))


@pytest.fixture
def make_image(tmp_path):
    # Writes a grayscale (or given mode) PNG under tmp_path and returns its normalized absolute path.

    def _make(relative_path, values=128, size=(4, 4), mode="L"):
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(values, np.ndarray):
            image = Image.fromarray(values)
        else:
            image = Image.new(mode, size, values)
        image.save(path)
        return normalize_path(str(path))

    return _make


@pytest.fixture
def make_model(tmp_path):
    # Writes an empty model file; the host only needs it to exist.

    def _make(relative_path="wood.fbx"):
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
        return normalize_path(str(path))

    return _make


@pytest.fixture
def wood_model(make_model, make_image):
    model = make_model("wood.fbx")
    make_image("wood.fbm/wood_basecolor.png", 90, mode="L")
    make_image("wood.fbm/wood_normal.png", (128, 128, 255), mode="RGB")
    make_image("wood.fbm/wood_metal.png", METALLIC_VALUES)
    make_image("wood.fbm/wood_rough.png", ROUGHNESS_VALUES)
    return model


@pytest.fixture
def importer(host):
    pipeline = PbrImporter(
        host,
        keyword_table=KEYWORD_TABLE,
        policy=AutoSingle(),
        pipeline="Standard",
        generate_packed=True,
        auto_import_enabled=True,
        model_extensions=[".fbx"],
        texture_folder_pattern="{model_name}.fbm",
        materials_folder_name="Materials",
    )
    pipeline.register()
    return pipeline


def full_commits(host):
    return [path for path, full_reimport in host.commit_log if full_reimport]


def read_pixels(path):
    with Image.open(path) as image:
        return np.asarray(image.convert("RGBA"))


def sibling(path, name):
    return normalize_path(os.path.join(os.path.dirname(path), name))
