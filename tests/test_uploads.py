import asyncio

from src.narrative.domain.uploads import UploadedFile, guess_mime_type


class StubUpload:
    def __init__(self, filename, content, content_type):
        self.filename = filename
        self.content_type = content_type
        self._content = content
        self.closed = False

    async def read(self):
        return self._content

    async def close(self):
        self.closed = True


def test_guess_mime_type_prefers_specific_declared_type():
    assert guess_mime_type("a.png", "image/webp") == "image/webp"
    assert guess_mime_type("a.png") == "image/png"
    assert guess_mime_type("noext") == ""


def test_generic_declared_type_is_replaced_by_guess():
    assert guess_mime_type("paper.pdf", "application/octet-stream") == "application/pdf"
    assert guess_mime_type("blob", "application/octet-stream") == "application/octet-stream"
    upload = UploadedFile.from_bytes("clip.mp4", b"vid", "application/octet-stream")
    assert upload.mime_type == "video/mp4"


def test_from_bytes_strips_directories():
    upload = UploadedFile.from_bytes("../../etc/notes.txt", b"abc")
    assert upload.name == "notes.txt"
    assert upload.mime_type == "text/plain"
    assert upload.size == 3


def test_from_upload_reads_and_closes():
    stub = StubUpload("clip.mp4", b"vid", "video/mp4")
    upload = asyncio.run(UploadedFile.from_upload(stub))
    assert (upload.name, upload.mime_type, upload.data) == ("clip.mp4", "video/mp4", b"vid")
    assert stub.closed
