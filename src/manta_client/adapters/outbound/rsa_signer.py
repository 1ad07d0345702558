"""HTTP Signature (rsa-sha256) signer.

Requests are signed over their ``Date`` header and carry an
``Authorization: Signature ...`` header. Capability URLs are signed over
``METHOD\\nhost\\npath\\nsorted-query`` with the signature appended as the
last query parameter.
"""

from __future__ import annotations

import base64
import hashlib
import time
from email.utils import formatdate
from pathlib import Path
from typing import Callable, Mapping, Optional, Union
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from manta_client.domain.exceptions import AuthenticationError
from manta_client.infrastructure.config import ServiceConfig
from manta_client.ports.outbound import SignedRequest

URI_ALGORITHM = "RSA-SHA256"
HEADER_ALGORITHM = "rsa-sha256"


class RsaSha256Signer:
    """SignerPort implementation using an already-loaded RSA private key."""

    def __init__(
        self,
        private_key: rsa.RSAPrivateKey,
        account: str,
        key_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the signer.

        Args:
            private_key: RSA private key.
            account: Account login (``account`` or ``account/subuser``).
            key_id: Key fingerprint; derived (MD5) from the key if None.
            clock: Source of the current time, for the Date header.
        """
        if not account:
            raise AuthenticationError("Account must be specified")
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise AuthenticationError("Only RSA keys are supported")
        self._key = private_key
        self._clock = clock
        fingerprint = key_id or md5_fingerprint(private_key)
        self._key_id = f"/{account.strip('/')}/keys/{fingerprint}"

    @property
    def key_id(self) -> str:
        return self._key_id

    @classmethod
    def from_pem(
        cls,
        pem: Union[str, bytes],
        account: str,
        key_id: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "RsaSha256Signer":
        """Load a PEM or OpenSSH encoded private key.

        Raises:
            AuthenticationError: If the key cannot be loaded.
        """
        data = pem.encode("utf-8") if isinstance(pem, str) else pem
        secret = password.encode("utf-8") if password else None
        try:
            if b"OPENSSH PRIVATE KEY" in data:
                key = serialization.load_ssh_private_key(data, password=secret)
            else:
                key = serialization.load_pem_private_key(data, password=secret)
        except (ValueError, TypeError) as exc:
            raise AuthenticationError("Unable to load private key") from exc
        return cls(key, account, key_id)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        account: str,
        key_id: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "RsaSha256Signer":
        return cls.from_pem(Path(path).expanduser().read_bytes(), account, key_id, password)

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "RsaSha256Signer":
        if config.key_content:
            return cls.from_pem(config.key_content, config.user, config.key_id or None, config.key_password)
        return cls.from_file(config.key_path, config.user, config.key_id or None, config.key_password)

    def sign_request(self, request: SignedRequest) -> Mapping[str, str]:
        date = request.headers.get("date") or formatdate(self._clock(), usegmt=True)
        signature = self._sign(f"date: {date}")
        authorization = (
            f'Signature keyId="{self._key_id}",algorithm="{HEADER_ALGORITHM}",'
            f'headers="date",signature="{signature}"'
        )
        return {"Date": date, "Authorization": authorization}

    def sign_uri(self, method: str, url: str, expires: int) -> str:
        parts = urlsplit(url)
        params = sorted(
            {"algorithm": URI_ALGORITHM, "expires": str(expires), "keyId": self._key_id}.items()
        )
        query = urlencode(params, quote_via=quote)
        string_to_sign = "\n".join([method.upper(), parts.netloc, parts.path, query])
        signature = quote(self._sign(string_to_sign), safe="")
        return urlunsplit((parts.scheme, parts.netloc, parts.path, f"{query}&signature={signature}", ""))

    def _sign(self, text: str) -> str:
        try:
            raw = self._key.sign(text.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
        except (ValueError, TypeError) as exc:
            raise AuthenticationError("Unable to compute signature") from exc
        return base64.b64encode(raw).decode("ascii")


def md5_fingerprint(private_key: rsa.RSAPrivateKey) -> str:
    """Colon-separated MD5 fingerprint of the key's OpenSSH public blob."""
    public = private_key.public_key().public_bytes(
        serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
    )
    blob = base64.b64decode(public.split()[1])
    digest = hashlib.md5(blob).hexdigest()
    return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))
