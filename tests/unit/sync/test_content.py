from __future__ import annotations

import json

import pytest

from chat_sync.application.dto.content import (
    FileContent,
    FileEnvelope,
    TextContent,
    VoiceContent,
    format_duration,
    parse_content,
)
from chat_sync.application.dto.message import message_from_payload
from chat_sync.application.exceptions import ValidationError
from tests.conftest import make_message


def test_text_message():
    assert parse_content(make_message(body="hi there")) == TextContent(text="hi there")


def test_file_envelope_is_parsed():
    body = FileEnvelope(
        file_name="photo.png", file_size=2048, file_type="image/png", media_key="uploads/a/1.png",
    ).dumps()

    content = parse_content(make_message(type="file", body=body, media_key="uploads/a/1.png"))

    assert content == FileContent(
        file_name="photo.png", file_size=2048, file_type="image/png", media_key="uploads/a/1.png",
    )


def test_envelope_is_serialized_with_camel_case_keys():
    body = FileEnvelope(file_name="a.txt", file_size=3, file_type="text/plain", media_key="k").dumps()

    assert json.loads(body) == {"fileName": "a.txt", "fileSize": 3, "fileType": "text/plain", "mediaKey": "k"}


def test_unparseable_envelope_falls_back_to_bare_filename():
    content = parse_content(make_message(type="file", body="old-upload.zip", media_key="k1"))

    assert isinstance(content, FileContent)
    assert content.file_name == "old-upload.zip"
    assert content.file_size == 0
    assert content.media_key == "k1"


def test_voice_envelope():
    body = json.dumps({
        "fileName": "Voice Message 0:07",
        "fileSize": 900,
        "fileType": "audio/webm",
        "mediaKey": "uploads/a/v.webm",
        "duration": 7,
        "isVoiceMessage": True,
    })

    content = parse_content(make_message(type="file", body=body))

    assert isinstance(content, VoiceContent)
    assert content.duration == 7
    assert content.media_key == "uploads/a/v.webm"


def test_webm_with_duration_is_voice_without_flag():
    body = json.dumps({"fileName": "clip.webm", "fileType": "audio/webm", "duration": 3})

    assert isinstance(parse_content(make_message(type="file", body=body)), VoiceContent)


def test_media_key_falls_back_to_message_field():
    body = json.dumps({"fileName": "doc.pdf", "fileType": "application/pdf"})

    content = parse_content(make_message(type="file", body=body, media_key="uploads/x/doc.pdf"))

    assert content.media_key == "uploads/x/doc.pdf"


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0:00"), (7, "0:07"), (75, "1:15"), (600, "10:00"), (-3, "0:00")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_message_from_payload_rejects_unknown_type():
    payload = {"conversation_id": "c1", "msg_id": "m1", "created_at": "2024-05-01T12:00:00Z", "type": "sticker"}

    with pytest.raises(ValidationError):
        message_from_payload(payload)
