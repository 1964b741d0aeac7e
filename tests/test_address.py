"""
Tests for SSH address parsing.
"""
import unittest

from sshmirror.address import SSHAddress, parse_address
from sshmirror.errors import AddressError


class TestParseAddress(unittest.TestCase):

    def test_user_and_host(self):
        self.assertEqual(parse_address("dev@example.com"),
                         SSHAddress(user="dev", host="example.com"))

    def test_full_form(self):
        addr = parse_address("dev:s3cret@example.com:2222:/srv/app")
        self.assertEqual(addr, SSHAddress(user="dev", host="example.com", port=2222,
                                          password="s3cret", path="/srv/app"))

    def test_path_without_port(self):
        addr = parse_address("dev@example.com:/srv/app")
        self.assertEqual(addr.port, 22)
        self.assertEqual(addr.path, "/srv/app")

    def test_relative_path(self):
        self.assertEqual(parse_address("dev@host:proj/src").path, "proj/src")

    def test_port_only(self):
        addr = parse_address("dev@host:2200")
        self.assertEqual((addr.port, addr.path), (2200, None))

    def test_password_may_contain_separators(self):
        addr = parse_address("dev:p:a@ss@host")
        self.assertEqual(addr.password, "p:a@ss")
        self.assertEqual(addr.host, "host")

    def test_empty_password_is_kept(self):
        self.assertEqual(parse_address("dev:@host").password, "")
        self.assertIsNone(parse_address("dev@host").password)

    def test_str_hides_password(self):
        self.assertNotIn("s3cret", str(parse_address("dev:s3cret@host:/x")))

    def test_malformed(self):
        cases = {
            "example.com": "example.com",
            "@host": "",
            "dev@": "",
            "dev@host:abc:/srv": "abc",
            "dev@host:70000": "70000",
            "dev@host:22:": "22:",
        }
        for address, fragment in cases.items():
            with self.subTest(address=address):
                with self.assertRaises(AddressError) as ctx:
                    parse_address(address)
                self.assertEqual(ctx.exception.fragment, fragment)


if __name__ == "__main__":
    unittest.main()
