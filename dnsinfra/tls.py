"""TLS client contexts for upstream DNS connections."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import ssl
from collections.abc import Iterable
from pathlib import Path

ALPN_H2 = "h2"

_PEM_CERT = re.compile(
    rb"-----BEGIN CERTIFICATE-----(.*?)-----END CERTIFICATE-----", re.DOTALL
)

_logger = logging.getLogger(__name__)


def _load_pem_certs(path: Path) -> list[bytes]:
    data = path.read_bytes()
    certs = []
    for match in _PEM_CERT.finditer(data):
        body = b"".join(match.group(1).split())
        try:
            certs.append(base64.b64decode(body, validate=True))
        except (binascii.Error, ValueError) as err:
            raise ValueError(f"Could not load PEM file {str(path)!r}") from err
    return certs


def load_certs_from_path(path: str | os.PathLike[str]) -> list[bytes]:
    """DER certificates from a PEM file, or from every file in a directory."""
    path = Path(path)
    if path.is_dir():
        certs: list[bytes] = []
        for entry in sorted(path.iterdir()):
            if entry.is_file():
                certs.extend(_load_pem_certs(entry))
        return certs
    return _load_pem_certs(path)


def create_tls_client_context(paths: Iterable[str | os.PathLike[str]]) -> ssl.SSLContext:
    """A verifying client context trusting system roots plus certificates in ``paths``."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    except ssl.SSLError as err:
        _logger.warning("load native certs failed.%s", err)

    for path in paths:
        try:
            certs = load_certs_from_path(path)
        except (OSError, ValueError) as err:
            _logger.warning("load certs from path failed.%s", err)
            continue
        for der in certs:
            try:
                context.load_verify_locations(cadata=der)
            except (ssl.SSLError, ValueError) as err:
                _logger.warning("load certs from path failed.%s", err)

    context.set_alpn_protocols([ALPN_H2])
    return context


class TlsClientConfigBundle:
    """Three client contexts: verifying, without hostname binding, and unverified.

    ``sni_off`` still checks the certificate chain but not the host name, so it
    can be used with ``server_hostname=None`` to connect without SNI.
    """

    def __init__(
        self,
        ca_path: str | os.PathLike[str] | None = None,
        ca_file: str | os.PathLike[str] | None = None,
    ) -> None:
        paths = [p for p in (ca_path, ca_file) if p is not None]

        self.normal = create_tls_client_context(paths)

        self.sni_off = create_tls_client_context(paths)
        self.sni_off.check_hostname = False

        self.verify_off = create_tls_client_context(paths)
        self.verify_off.check_hostname = False
        self.verify_off.verify_mode = ssl.CERT_NONE