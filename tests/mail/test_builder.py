"""Tests for the MailSender fluent builder state."""

from __future__ import annotations

from pathlib import Path

import pytest

from mailsender import (
    NO_SUBJECT,
    BodyMode,
    ConnectionCallbacks,
    MailSender,
    MimeTypedContent,
    TransportCallbacks,
)

# pylint: disable=redefined-outer-name


@pytest.fixture
def sender() -> MailSender:
    """Provide a sender bound to a dummy host."""
    return MailSender("smtp.example.com")


class TestRecipients:
    """Set semantics of To, CC and BCC."""

    def test_add_recipient_is_idempotent(self, sender: MailSender) -> None:
        """Adding the same address twice keeps a single entry."""
        sender.add_recipient("a@example.com").add_recipient("a@example.com")
        assert sender.recipients == ("a@example.com",)

    def test_add_recipients_preserves_insertion_order(self, sender: MailSender) -> None:
        """Variadic add keeps the order addresses were given in."""
        sender.add_recipients("c@example.com", "a@example.com", "b@example.com", "a@example.com")
        assert sender.recipients == ("c@example.com", "a@example.com", "b@example.com")

    def test_set_recipients_replaces_previous_set(self, sender: MailSender) -> None:
        """set_recipients clears then adds, it does not merge."""
        sender.add_recipient("x@example.com").set_recipients("a@example.com", "b@example.com")
        assert sender.recipients == ("a@example.com", "b@example.com")

    def test_set_recipients_without_arguments_clears(self, sender: MailSender) -> None:
        """An empty set_recipients call empties the set."""
        sender.add_recipient("x@example.com").set_recipients()
        assert sender.recipients == ()

    def test_remove_recipient(self, sender: MailSender) -> None:
        """Remove deletes present addresses and ignores absent ones."""
        sender.add_recipients("a@example.com", "b@example.com")
        sender.remove_recipient("a@example.com").remove_recipient("missing@example.com")
        assert sender.recipients == ("b@example.com",)

    def test_cc_and_bcc_are_independent_sets(self, sender: MailSender) -> None:
        """CC and BCC follow the same rules without touching To."""
        sender.add_recipient_cc("cc@example.com").add_recipient_cc("cc@example.com")
        sender.add_recipients_bcc("b1@example.com", "b2@example.com")
        sender.set_recipients_cc("cc2@example.com")
        sender.remove_recipient_bcc("b1@example.com")
        assert sender.recipients == ()
        assert sender.recipients_cc == ("cc2@example.com",)
        assert sender.recipients_bcc == ("b2@example.com",)

    def test_none_address_is_ignored(self, sender: MailSender) -> None:
        """A None address is a no-op."""
        sender.add_recipient(None).add_recipient_cc(None).add_recipient_bcc(None)
        assert sender.recipients == sender.recipients_cc == sender.recipients_bcc == ()

    def test_remove_from_cc_does_not_touch_to(self, sender: MailSender) -> None:
        """Removal only affects the targeted set."""
        sender.add_recipient("a@example.com").add_recipient_cc("a@example.com")
        sender.remove_recipient_cc("a@example.com")
        assert sender.recipients == ("a@example.com",)
        assert sender.recipients_cc == ()


class TestBody:
    """Body text and mode handling."""

    def test_defaults(self, sender: MailSender) -> None:
        """A new sender is in text mode with the default subject."""
        assert sender.mode is BodyMode.TEXT
        assert sender.subject == NO_SUBJECT
        assert sender.sender is None
        assert sender.text == ""

    def test_add_text_appends(self, sender: MailSender) -> None:
        """Text accumulates across calls."""
        sender.add_text("Hello").add_text(", ").add_text("world").add_text(None)
        assert sender.text == "Hello, world"

    def test_add_text_keeps_mode(self, sender: MailSender) -> None:
        """Adding text never changes the body mode."""
        sender.set_html_mode().add_text("<b>hi</b>")
        assert sender.mode is BodyMode.HTML

    def test_mode_switches(self, sender: MailSender) -> None:
        """set_html_mode and set_text_mode toggle the exclusive flag."""
        assert sender.set_html_mode().mode is BodyMode.HTML
        assert sender.set_text_mode().mode is BodyMode.TEXT

    def test_add_image_switches_to_html(self, sender: MailSender, png_file: Path) -> None:
        """Embedding an image flips a text-mode sender to HTML."""
        sender.add_image("logo", png_file)
        assert sender.mode is BodyMode.HTML

    def test_add_image_bytes_switches_to_html(self, sender: MailSender) -> None:
        """The byte-content overload also switches to HTML."""
        sender.add_image("logo", b"png", "image/png")
        assert sender.mode is BodyMode.HTML
        assert sender.image_contents["logo"] == MimeTypedContent(b"png", "image/png")

    @pytest.mark.parametrize(("cid", "source"), [("logo", None), (None, b"png"), ("", b"png")])
    def test_add_image_without_id_or_source_is_ignored(
        self, sender: MailSender, cid: str | None, source: bytes | None
    ) -> None:
        """A missing id or source adds nothing and keeps the mode."""
        assert sender.add_image(cid, source, "image/png") is sender
        assert sender.images == {}
        assert sender.image_contents == {}
        assert sender.mode is BodyMode.TEXT

    def test_image_last_write_wins(self, sender: MailSender, png_file: Path) -> None:
        """A second image under the same id replaces the first."""
        sender.add_image("logo", png_file).add_image("logo", b"other", "image/gif")
        assert "logo" not in sender.images
        assert sender.image_contents["logo"].mime_type == "image/gif"

    def test_subject_none_restores_default(self, sender: MailSender) -> None:
        """set_subject(None) falls back to 'no subject'."""
        sender.set_subject("Report").set_subject(None)
        assert sender.subject == NO_SUBJECT


class TestAttachments:
    """File and byte attachments."""

    def test_add_file_none_is_noop(self, sender: MailSender) -> None:
        """The path-only form ignores None."""
        sender.add_file(None)
        assert sender.files == ()

    def test_add_file_uses_file_name(self, sender: MailSender, text_file: Path) -> None:
        """The path-only form uses the file's own name."""
        sender.add_file(text_file)
        assert sender.files == (("hello.txt", text_file),)

    def test_same_name_keeps_every_file(self, sender: MailSender, tmp_path: Path) -> None:
        """Two files under one name are both kept, in order."""
        first = tmp_path / "a.txt"
        second = tmp_path / "b.txt"
        sender.add_file("hi.txt", first).add_file("hi.txt", second)
        assert sender.files == (("hi.txt", first), ("hi.txt", second))

    def test_add_file_bytes_is_copied(self, sender: MailSender) -> None:
        """Byte content is copied on insertion."""
        buffer = bytearray(b"payload")
        sender.add_file("data.bin", buffer, "application/x-test")
        buffer[:] = b"changed"
        ((name, content),) = sender.file_contents
        assert name == "data.bin"
        assert content.content == b"payload"
        assert content.mime_type == "application/x-test"

    def test_add_file_bytes_default_mime_type(self, sender: MailSender) -> None:
        """Missing MIME type falls back to application/octet-stream."""
        sender.add_file("blob", b"x")
        assert sender.file_contents[0][1].mime_type == "application/octet-stream"


class TestReset:
    """reset() returns the builder to its defaults."""

    def test_reset_clears_message_state(self, sender: MailSender, text_file: Path, png_file: Path) -> None:
        """Everything but the server settings and mode is cleared."""
        (
            sender.set_from("me@example.com")
            .set_subject("Subject")
            .add_text("Body")
            .add_recipient("a@example.com")
            .add_recipient_cc("c@example.com")
            .add_recipient_bcc("b@example.com")
            .add_file(text_file)
            .add_file("data.bin", b"data", "application/octet-stream")
            .add_image("logo", png_file)
            .add_transport_listener(TransportCallbacks())
            .add_connection_listener(ConnectionCallbacks())
        )

        sender.reset()

        assert sender.recipients == sender.recipients_cc == sender.recipients_bcc == ()
        assert sender.files == sender.file_contents == ()
        assert not sender.images
        assert not sender.image_contents
        assert sender.transport_listeners == sender.connection_listeners == ()
        assert sender.subject == NO_SUBJECT
        assert sender.sender is None
        assert sender.text == ""
        assert sender.host == "smtp.example.com"

    def test_reset_keeps_mode(self, sender: MailSender) -> None:
        """The body mode survives reset."""
        sender.set_html_mode().reset()
        assert sender.mode is BodyMode.HTML


class TestMisc:
    """Construction, chaining and rendering."""

    def test_requires_host(self) -> None:
        """An empty host is rejected at construction."""
        with pytest.raises(ValueError):
            MailSender("")

    def test_mutators_return_self(self, sender: MailSender) -> None:
        """Every mutator supports chaining."""
        assert sender.set_from("me@example.com") is sender
        assert sender.add_recipients("a@example.com") is sender
        assert sender.set_recipients_bcc() is sender
        assert sender.set_text_mode() is sender
        assert sender.add_file(None) is sender

    def test_str_summarizes_state(self, sender: MailSender) -> None:
        """str() lists subject, sender, recipients, attachments and mode."""
        sender.set_from("me@example.com").set_subject("Report").add_recipient("a@example.com")
        sender.add_file("data.csv", b"1,2", "text/csv").set_html_mode()
        rendered = str(sender)
        assert rendered.startswith("MailSender {")
        assert "subject: Report" in rendered
        assert "from: me@example.com" in rendered
        assert "a@example.com" in rendered
        assert "data.csv: text/csv" in rendered
        assert "mode: html" in rendered
