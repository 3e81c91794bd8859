import io
import os
import pytest
from starlette.datastructures import Headers, UploadFile

from conftest import png_bytes
from feedapp import core
from feedapp.file_storage import file_storage


def upload(filename, content, content_type, size=None):
    return UploadFile(
        file=io.BytesIO(content),
        size=size,
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


@pytest.mark.asyncio
async def test_save_post_image_writes_under_upload_dir(db):
    stored = await file_storage.save_post_image(upload('cat pic.png', png_bytes(), 'image/png'))
    assert stored.startswith('images/')
    assert stored.endswith('-cat pic.png')
    assert '\\' not in stored
    with open(os.path.join(core.BASE_DIR, stored), 'rb') as f:
        assert f.read() == png_bytes()


@pytest.mark.asyncio
async def test_save_post_image_strips_client_directories(db):
    stored = await file_storage.save_post_image(upload('..\\..\\evil.png', png_bytes(), 'image/png'))
    assert stored.startswith('images/')
    assert stored.endswith('-evil.png')


@pytest.mark.asyncio
async def test_save_post_image_rejects_non_images(db):
    assert await file_storage.save_post_image(None) is None
    assert await file_storage.save_post_image(upload('a.gif', b'GIF89a', 'image/gif')) is None
    # right extension and content type, but not an image
    assert await file_storage.save_post_image(upload('a.png', b'not really', 'image/png')) is None
    assert os.listdir(core.upload_path()) == []


@pytest.mark.asyncio
async def test_save_post_image_rejects_oversized_upload_before_reading(db):
    f = upload('big.png', png_bytes(), 'image/png', size=core.MAX_IMAGE_SIZE + 1)
    assert await file_storage.save_post_image(f) is None
    assert f.file.tell() == 0
    assert os.listdir(core.upload_path()) == []

@pytest.mark.asyncio
async def test_clear_image_removes_file(db):
    stored = await file_storage.save_post_image(upload('x.jpg', png_bytes(), 'image/jpeg'))
    assert await file_storage.clear_image(stored) is True
    assert not os.path.exists(os.path.join(core.BASE_DIR, stored))


@pytest.mark.asyncio
async def test_clear_image_missing_file_is_logged_not_raised(db):
    assert await file_storage.clear_image('images/does-not-exist.png') is False
    assert await file_storage.clear_image(None) is False


@pytest.mark.asyncio
async def test_clear_image_refuses_paths_outside_uploads(db):
    outside = os.path.join(core.BASE_DIR, 'keep.txt')
    with open(outside, 'w') as f:
        f.write('keep')
    assert await file_storage.clear_image('images/../keep.txt') is False
    assert os.path.exists(outside)
