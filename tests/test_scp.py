"""
Tests for the single-file scp push.

Tests:
  - header rendering and file-name validation
  - body is exactly the declared size, followed by one NUL terminator
  - a short source surfaces TransferError instead of hanging
  - receiver failures (missing directory, non-zero exit) surface TransferError
"""
import io
import tempfile
import unittest
from pathlib import Path

from fakes import FakeTransport
from sshmirror.errors import TransferError
from sshmirror.operations.scp import push, transfer_header


class TestTransferHeader(unittest.TestCase):

    def test_header_format(self):
        """Mode is four octal digits, size decimal, name bare."""
        self.assertEqual(transfer_header("a.txt", 12, 0o755), b"C0755 12 a.txt\n")
        self.assertEqual(transfer_header("b", 0, 0o644), b"C0644 0 b\n")

    def test_rejects_paths_and_newlines(self):
        for bad in ("dir/a.txt", "", "..", "a\nb"):
            with self.subTest(name=bad):
                with self.assertRaises(ValueError):
                    transfer_header(bad, 1)

    def test_rejects_negative_size(self):
        with self.assertRaises(ValueError):
            transfer_header("a.txt", -1)


class TestPush(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.remote = FakeTransport(Path(self.tmpdir.name))
        self.remote.local("/srv/app").mkdir(parents=True)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_push_writes_header_body_terminator(self):
        """The receiver sees header, N bytes and exactly one NUL."""
        payload = b"hello world\n"
        push(self.remote, io.BytesIO(payload), "/srv/app/a.txt", len(payload), mode=0o644)

        session = self.remote.sessions[-1]
        self.assertEqual(session.command, "scp -qt /srv/app")
        self.assertEqual(bytes(session.stdin), b"C0644 12 a.txt\n" + payload + b"\x00")
        self.assertEqual(self.remote.local("/srv/app/a.txt").read_bytes(), payload)
        self.assertEqual(self.remote.modes["/srv/app/a.txt"], 0o644)
        self.assertTrue(session.closed)

    def test_push_empty_file(self):
        push(self.remote, io.BytesIO(b""), "/srv/app/empty", 0)
        self.assertEqual(self.remote.local("/srv/app/empty").read_bytes(), b"")

    def test_push_large_file_in_chunks(self):
        payload = bytes(range(256)) * 1000
        push(self.remote, io.BytesIO(payload), "/srv/app/big.bin", len(payload))
        self.assertEqual(self.remote.local("/srv/app/big.bin").read_bytes(), payload)

    def test_push_never_sends_more_than_declared(self):
        """A source that grew after the size snapshot is cut at the snapshot."""
        push(self.remote, io.BytesIO(b"0123456789"), "/srv/app/grown.txt", 4)
        self.assertEqual(self.remote.local("/srv/app/grown.txt").read_bytes(), b"0123")
        self.assertEqual(bytes(self.remote.sessions[-1].stdin), b"C0755 4 grown.txt\n0123\x00")

    def test_short_source_raises_transfer_error(self):
        """Declaring N bytes but streaming N-1 is a TransferError, not a hang."""
        with self.assertRaises(TransferError) as ctx:
            push(self.remote, io.BytesIO(b"abc"), "/srv/app/short.txt", 4)
        self.assertEqual(ctx.exception.remote_path, "/srv/app/short.txt")
        self.assertIn("short", str(ctx.exception))
        self.assertFalse(self.remote.local("/srv/app/short.txt").exists())
        # No terminator was sent after the truncated body.
        self.assertFalse(bytes(self.remote.sessions[-1].stdin).endswith(b"\x00"))

    def test_missing_directory_is_transfer_error(self):
        with self.assertRaises(TransferError) as ctx:
            push(self.remote, io.BytesIO(b"x"), "/srv/missing/a.txt", 1)
        self.assertEqual(ctx.exception.status, 1)
        self.assertIn("No such file or directory", str(ctx.exception))

    def test_receiver_rejection_carries_status(self):
        self.remote.fail_names.add("locked.txt")
        with self.assertRaises(TransferError) as ctx:
            push(self.remote, io.BytesIO(b"x"), "/srv/app/locked.txt", 1)
        self.assertEqual(ctx.exception.status, 1)
        self.assertIn("/srv/app/locked.txt", str(ctx.exception))

    def test_directory_is_quoted(self):
        self.remote.local("/srv/my app").mkdir(parents=True)
        push(self.remote, io.BytesIO(b"x"), "/srv/my app/a b.txt", 1)
        self.assertEqual(self.remote.sessions[-1].command, "scp -qt '/srv/my app'")
        self.assertTrue(self.remote.local("/srv/my app/a b.txt").is_file())

    def test_bad_name_fails_before_opening_a_session(self):
        with self.assertRaises(TransferError):
            push(self.remote, io.BytesIO(b"x"), "/srv/app/bad\nname", 1)
        self.assertEqual(self.remote.sessions, [])


if __name__ == "__main__":
    unittest.main()
