import hashlib
import threading
import time

import pytest

from cssrebase.resolver import FileSystem

JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"
PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


def md5_name(data, ext):
    return hashlib.md5(data).hexdigest() + ext


class CountingFileSystem(FileSystem):
    """In-memory files, counting (and slowing down) every access."""

    def __init__(self, files, delay=0.0):
        self.files = dict(files)
        self.delay = delay
        self.exists_calls = 0
        self.read_calls = 0
        self.lock = threading.Lock()

    def exists(self, path):
        with self.lock:
            self.exists_calls += 1
        time.sleep(self.delay)
        return path in self.files

    def read(self, path):
        with self.lock:
            self.read_calls += 1
        time.sleep(self.delay)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path)


@pytest.fixture
def project(tmp_path):
    """
    A small project tree:

        modules/images/img.jpg
        src/index.css
        src/feature/index.scss
        src/feature/img/icon.png
    """
    (tmp_path / "modules" / "images").mkdir(parents=True)
    (tmp_path / "modules" / "images" / "img.jpg").write_bytes(JPEG)
    (tmp_path / "src" / "feature" / "img").mkdir(parents=True)
    (tmp_path / "src" / "feature" / "img" / "icon.png").write_bytes(PNG)
    (tmp_path / "src" / "index.css").write_text(
        ".c { background: url(~images/img.jpg); }\n", encoding="utf-8"
    )
    (tmp_path / "src" / "feature" / "index.scss").write_text(
        ".some-class-name {\n  unquoted: url(img/icon.png);\n}\n", encoding="utf-8"
    )
    return tmp_path
