"""Lookup of the available transports by name and type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .protocol import Protocol, ProtocolError, ProtocolType, protocol_to_str
from .tcp import create_tcp
from .tls import create_tls
from .udp import create_udp
from .vsock import AF_VSOCK, create_vsock


@dataclass(frozen=True)
class _Entry:
    name: str
    type: ProtocolType
    create: Callable[[str, int], Protocol]


def _entries() -> tuple[_Entry, ...]:
    entries = [
        _Entry("tcp", ProtocolType.TCP, create_tcp),
        _Entry("udp", ProtocolType.UDP, create_udp),
        _Entry("ssl", ProtocolType.SSL, create_tls),
    ]
    if AF_VSOCK is not None:
        entries.append(_Entry("vsock", ProtocolType.VSOCK, create_vsock))
    return tuple(entries)


_ENTRIES = _entries()
_BY_NAME = {e.name: e for e in _ENTRIES}
_BY_TYPE = {e.type: e for e in _ENTRIES}


def protocol_type(name: str) -> ProtocolType:
    """Type of the protocol called ``name`` (any case), or UNSUPPORTED."""
    entry = _BY_NAME.get(name.lower())
    return entry.type if entry else ProtocolType.UNSUPPORTED


def valid_protocol(ptype: int) -> bool:
    """Whether a transport of this type is available."""
    return ptype in _BY_TYPE


def create_protocol(ptype: int, host: str, port: int) -> Protocol:
    """Create an endpoint of the given type for ``host``:``port``."""
    entry = _BY_TYPE.get(ptype)
    if entry is None:
        raise ProtocolError(f"protocol {protocol_to_str(ptype)} is not available")
    return entry.create(host, port)


def destroy_protocol(protocol: Protocol) -> None:
    """Release an endpoint the way its transport requires."""
    if protocol.type not in _BY_TYPE:
        raise ProtocolError(f"protocol {protocol_to_str(protocol.type)} is not available")
    protocol.close()