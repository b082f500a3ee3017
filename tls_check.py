"""
tls_check.py - Certificate and cipher inspection for the scan target.

One raw TLS handshake, bounded by a timeout.  This never raises: a
plain-http target, a refused connection, a bad certificate or a timeout
all come back as ``SSLInfo(has_ssl=False)``.
"""

import socket
import ssl
from urllib.parse import urlparse

import config
from models import SSLInfo


def _name_field(name, key):
    """Pull one attribute out of getpeercert()'s nested RDN tuples."""
    for rdn in name or ():
        for attr, value in rdn:
            if attr == key:
                return value
    return None


def inspect_ssl(url, timeout=None):
    """Handshake with the host of ``url`` and report what it presented."""
    parsed = urlparse(url)
    if parsed.scheme.lower() != "https" or not parsed.hostname:
        return SSLInfo(has_ssl=False)

    host = parsed.hostname
    try:
        port = parsed.port or 443
    except ValueError:
        return SSLInfo(has_ssl=False)

    timeout = timeout or config.TLS_TIMEOUT
    try:
        ctx = ssl.create_default_context()
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with ctx.wrap_socket(sock, server_hostname=host) as ssock:
                cert = ssock.getpeercert() or {}
                cipher = ssock.cipher()
                protocol = ssock.version()
    except (OSError, ssl.SSLError, ValueError) as e:
        print(f"[!] TLS handshake with {host}:{port} failed: {e}")
        return SSLInfo(has_ssl=False)

    issuer = cert.get("issuer")
    return SSLInfo(
        has_ssl=True,
        issuer=_name_field(issuer, "organizationName") or _name_field(issuer, "commonName"),
        valid_from=cert.get("notBefore"),
        valid_to=cert.get("notAfter"),
        cipher=cipher[0] if cipher else None,
        bits=cipher[2] if cipher else None,
        protocol=protocol,
    )
