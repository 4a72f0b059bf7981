"""Tests for descriptor classification and MIME helpers."""

from __future__ import annotations

import pytest

from chatmedia.runtime.media.classify import (
    classify,
    content_type_for,
    looks_like_audio,
    placeholder_kind,
    sniff_content_type,
)
from chatmedia.runtime.media.hosts import MediaHosts
from chatmedia.runtime.media.kinds import MediaKind

PRIMARY = "https://firebasestorage.googleapis.com/v0/b/app.appspot.com/o"


class TestDataUrls:
    @pytest.mark.parametrize(
        ("descriptor", "expected"),
        [
            ("data:image/png;base64,iVBORw0KGgo=", MediaKind.image),
            ("data:image/webp;base64,UklGRg==", MediaKind.sticker),
            ("data:video/mp4;base64,AAAA", MediaKind.video),
            ("data:audio/ogg;base64,T2dnUw==", MediaKind.audio),
            ("data:application/pdf;base64,JVBERi0=", MediaKind.document),
        ],
    )
    def test_media_type_tag(self, descriptor: str, expected: MediaKind) -> None:
        assert classify(descriptor) is expected

    def test_untagged_data_url_is_not_media(self) -> None:
        assert classify("data:,hello") is MediaKind.text


class TestStoreUrls:
    def test_primary_store_video_segment(self) -> None:
        url = f"{PRIMARY}/chats%2Fvideos%2Fclip?alt=media"
        assert classify(url) is MediaKind.video

    def test_primary_store_double_encoded_segment(self) -> None:
        url = f"{PRIMARY}/chats%252Faudios%252Fvoice?alt=media"
        assert classify(url) is MediaKind.audio

    def test_primary_store_defaults_to_image(self) -> None:
        assert classify(f"{PRIMARY}/chats%2Fabc?alt=media") is MediaKind.image

    def test_secondary_store_extension(self, store_hosts: MediaHosts) -> None:
        url = "https://store.example/bucket/report.pdf"
        assert classify(url, store_hosts) is MediaKind.document

    def test_secondary_store_sticker_segment(self, store_hosts: MediaHosts) -> None:
        url = "https://store.example/bucket/stickers/abc"
        assert classify(url, store_hosts) is MediaKind.sticker


class TestMessagingUrls:
    def test_encrypted_defaults_to_image(self) -> None:
        assert classify("https://mmg.whatsapp.net/v/t62.7118-24/abc.enc?oh=1") is MediaKind.image

    def test_extension_overrides_default(self) -> None:
        assert classify("https://mmg.whatsapp.net/v/t62/voice.ogg") is MediaKind.audio


class TestGenericUrls:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("photo.JPG", MediaKind.image),
            ("clip.mkv", MediaKind.video),
            ("song.flac", MediaKind.audio),
            ("sheet.xlsx", MediaKind.document),
            ("sticker.webp", MediaKind.sticker),
            ("archive.bin", MediaKind.document),
            ("", MediaKind.document),
        ],
    )
    def test_extension_table(self, path: str, expected: MediaKind) -> None:
        assert classify(f"https://cdn.example.com/files/{path}") is expected

    def test_query_does_not_affect_extension(self) -> None:
        assert classify("https://cdn.example.com/a.mp3?download=file.pdf") is MediaKind.audio


class TestPlaceholders:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("[Image]", MediaKind.image),
            ("[imagem]", MediaKind.image),
            ("[Vídeo]", MediaKind.video),
            ("[STICKER]", MediaKind.sticker),
            ("[Áudio]", MediaKind.audio),
            ("[Documento]", MediaKind.document),
            ("\U0001f3b5 voice note", MediaKind.audio),
            ("\U0001f4c4 invoice", MediaKind.document),
        ],
    )
    def test_labels(self, text: str, expected: MediaKind) -> None:
        assert classify(text) is expected
        assert placeholder_kind(text) is expected

    def test_label_must_be_whole(self) -> None:
        assert classify("see [image] below") is MediaKind.text


class TestFallbacks:
    def test_unlabeled_payload_is_image(self) -> None:
        assert classify("A" * 101) is MediaKind.image

    def test_short_token_is_text(self) -> None:
        assert classify("A" * 100) is MediaKind.text

    def test_sentence_is_text(self) -> None:
        assert classify("hello there, how are you?") is MediaKind.text

    @pytest.mark.parametrize("value", [None, 42, "", "   ", b"bytes"])
    def test_never_raises(self, value) -> None:
        assert classify(value) is MediaKind.text

    def test_unparsable_url_is_text(self) -> None:
        assert classify("http://[::1") is MediaKind.text


class TestMimeHelpers:
    def test_content_type_for(self) -> None:
        assert content_type_for("voice.OGG") == "audio/ogg"
        assert content_type_for("tickets/1/a.pdf") == "application/pdf"
        assert content_type_for("noext") == "application/octet-stream"

    @pytest.mark.parametrize(
        ("head", "expected"),
        [
            (b"OggS" + b"\x00" * 12, "audio/ogg"),
            (b"ID3\x04" + b"\x00" * 12, "audio/mpeg"),
            (b"RIFF\x00\x00\x00\x00WAVEfmt ", "audio/wav"),
            (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
            (b"\x00\x00\x00\x20ftypM4A \x00\x00", "audio/mp4"),
            (b"\x00\x00\x00\x20ftypisom\x00\x00", "video/mp4"),
            (b"\xff\xd8\xff\xe0" + b"\x00" * 12, "image/jpeg"),
            (b"\x89PNG\r\n\x1a\n" + b"\x00" * 8, "image/png"),
            (b"%PDF-1.7" + b"\x00" * 8, "application/pdf"),
            (b"plain text here!", None),
        ],
    )
    def test_sniff(self, head: bytes, expected: str | None) -> None:
        assert sniff_content_type(head) == expected

    def test_looks_like_audio(self) -> None:
        assert looks_like_audio(b"OggS" + b"\x00" * 12)
        assert looks_like_audio(b"\x00\x00\x00\x20ftypM4A \x00\x00")
        assert not looks_like_audio(b"\x89PNG\r\n\x1a\n" + b"\x00" * 8)
        assert not looks_like_audio(b"OggS")
