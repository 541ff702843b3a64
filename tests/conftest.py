import pytest
from PIL import Image


@pytest.fixture
def jpeg_path(tmp_path):
    path = tmp_path / "example.jpg"
    Image.new("RGB", (32, 24), (120, 160, 200)).save(path, "JPEG", quality=95)
    return path
