"""
SSH address strings: `user[:password]@host[:port][:remotePath]`
"""
from dataclasses import dataclass
from typing import Optional

from .errors import AddressError

DEFAULT_PORT = 22


@dataclass(frozen=True)
class SSHAddress:
    user: str
    host: str
    port: int = DEFAULT_PORT
    password: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        # Never echo the password back.
        s = f"{self.user}@{self.host}:{self.port}"
        return f"{s}:{self.path}" if self.path else s


def _parse_port(address: str, raw: str) -> int:
    if not raw.isdigit():
        raise AddressError(address, raw, "invalid port")
    port = int(raw)
    if not 0 < port < 65536:
        raise AddressError(address, raw, "port out of range")
    return port


def parse_address(address: str) -> SSHAddress:
    """
    Parse `user[:password]@host[:port][:remotePath]`.

    The password may itself contain ':' or '@' (the last '@' separates the
    host).  A bare number after the host is a port; anything else is the
    remote path, so `host:22:/srv/app`, `host:/srv/app` and `host:22` are
    all valid.
    """
    userinfo, at, hostinfo = address.rpartition("@")
    if not at:
        raise AddressError(address, address, "expected user@host")

    user, colon, password = userinfo.partition(":")
    if not user:
        raise AddressError(address, userinfo, "missing user name")

    host, _, rest = hostinfo.partition(":")
    if not host:
        raise AddressError(address, hostinfo, "missing host")

    port = DEFAULT_PORT
    path: Optional[str] = None
    if rest:
        first, sep, tail = rest.partition(":")
        if first.isdigit():
            port = _parse_port(address, first)
            if sep:
                if not tail:
                    raise AddressError(address, rest, "empty remote path")
                path = tail
        elif sep:
            # Two colons after the host: the middle fragment must be the port.
            port = _parse_port(address, first)
        else:
            path = rest

    return SSHAddress(user=user, host=host, port=port,
                      password=password if colon else None, path=path)
