import io
import os

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.core.exceptions import ValidationError, NotFoundError
from app.database.models import FileDocument
from app.services.document_service import DocumentService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF = b"%PDF-1.4\n" + b"0" * 32


def _upload(name, contents, content_type="application/octet-stream"):
    return UploadFile(file=io.BytesIO(contents), filename=name, headers=Headers({"content-type": content_type}))


@pytest.fixture
def documents(tmp_path):
    return DocumentService(upload_dir=str(tmp_path), max_size=1024)


@pytest.mark.asyncio
async def test_stores_files_under_unique_names(documents, tmp_path):
    stored = await documents.store_documents({
        "aadhar_card": _upload("my aadhar.png", PNG, "image/png"),
        "income_proof": _upload("salary.pdf", PDF),
        "pan_card": None,
    })

    assert set(stored) == {"aadhar_card", "income_proof"}
    aadhar = stored["aadhar_card"]
    assert aadhar.filename.endswith("-my_aadhar.png")
    assert os.path.dirname(aadhar.path) == str(tmp_path)
    with open(aadhar.path, "rb") as fh:
        assert fh.read() == PNG
    assert documents.resolve_path(aadhar) == aadhar.path


@pytest.mark.asyncio
async def test_requires_at_least_one_file(documents):
    with pytest.raises(ValidationError) as exc:
        await documents.store_documents({"aadhar_card": None})
    assert exc.value.message == "No files uploaded"


@pytest.mark.asyncio
async def test_rejects_unknown_slot(documents):
    with pytest.raises(ValidationError):
        await documents.store_documents({"selfie": _upload("me.png", PNG, "image/png")})


@pytest.mark.asyncio
async def test_rejects_empty_oversized_and_unsupported(documents):
    with pytest.raises(ValidationError):
        await documents.store_documents({"pan_card": _upload("empty.pdf", b"", "application/pdf")})
    with pytest.raises(ValidationError):
        await documents.store_documents({"pan_card": _upload("big.pdf", b"%PDF" + b"0" * 2048, "application/pdf")})
    with pytest.raises(ValidationError):
        await documents.store_documents({"pan_card": _upload("script.sh", b"#!/bin/sh\necho hi\n")})


@pytest.mark.asyncio
async def test_failed_batch_leaves_no_files(documents, tmp_path):
    with pytest.raises(ValidationError):
        await documents.store_documents({
            "aadhar_card": _upload("ok.png", PNG, "image/png"),
            "pan_card": _upload("bad.exe", b"MZ\x90\x00", "application/x-msdownload"),
        })
    assert os.listdir(tmp_path) == []


def test_missing_file_on_disk(documents, tmp_path):
    document = FileDocument(filename="gone.pdf", path=str(tmp_path / "gone.pdf"))
    with pytest.raises(NotFoundError):
        documents.resolve_path(document)
