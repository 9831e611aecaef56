"""
Password-protected pages.

When a page's frontmatter sets `password`, its rendered HTML is replaced by
an AES-256-GCM ciphertext that the browser decrypts with WebCrypto.

- Key: PBKDF2-HMAC-SHA256 over the password with a random 16-byte salt
- Cipher: AES-256-GCM with a random 12-byte nonce, tag appended
- The password never leaves the pipeline; it is blanked after use
"""

import base64
import hashlib
import html
import logging
import os
import struct
import threading
from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mosswiki.core.exceptions import EncryptionError
from mosswiki.core.models import Page
from mosswiki.core.plugins.base import Transformer

logger = logging.getLogger(__name__)

# Constants
PBKDF2_ITERATIONS = 120_000
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
ALGORITHM = "AES-256-GCM"
KDF = "PBKDF2-SHA256"
CACHE_VERSION = b"AES-256-GCM:v1"

ENCRYPTED_SHELL = """<div class="encrypted-note" data-ciphertext="{ciphertext}" data-salt="{salt}" data-nonce="{nonce}" data-iterations="{iterations}" data-algo="{algo}" data-kdf="{kdf}" data-version="1">
  <div class="encrypted-note__chrome">
    <div class="encrypted-note__status">Protected note · Enter the password to decrypt locally.</div>
    <form class="encrypted-note__form" novalidate>
      <div class="encrypted-note__field">
        <input class="encrypted-note__input" type="password" name="password" autocomplete="current-password" placeholder=" " required />
        <label class="encrypted-note__label">Password</label>
      </div>
      <div class="encrypted-note__actions">
        <button type="submit">Decrypt</button>
      </div>
    </form>
  </div>
  <div class="encrypted-note__decode" aria-live="polite"></div>
  <div class="encrypted-note__body" hidden></div>
</div>"""


@dataclass(frozen=True)
class CipherPayload:
    """Base64 encoded encryption output."""

    ciphertext: str
    salt: str
    nonce: str
    iterations: int


class EncryptionCache:
    """Thread-safe map from cache key to previously computed ciphertext.

    Two threads missing on the same key may both encrypt; the later store
    wins and either result decrypts to the same plaintext.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CipherPayload] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CipherPayload | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, payload: CipherPayload) -> None:
        with self._lock:
            self._entries[key] = payload

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(password: str, plaintext: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Digest identifying one (password, plaintext, parameters) combination."""
    hasher = hashlib.sha256()
    hasher.update(password.encode("utf-8"))
    hasher.update(plaintext.encode("utf-8"))
    hasher.update(struct.pack("<I", iterations))
    hasher.update(CACHE_VERSION)
    return hasher.hexdigest()


def derive_key(password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_html(password: str, plaintext: str, iterations: int = PBKDF2_ITERATIONS) -> CipherPayload:
    """Encrypt HTML with a freshly generated salt and nonce.

    Raises:
        EncryptionError: If key derivation or encryption fails.
    """
    try:
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        key = derive_key(password, salt, iterations)
        # GCM encrypt returns ciphertext with tag appended
        ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    except (ValueError, TypeError, OverflowError, UnsupportedAlgorithm) as e:
        logger.error("Encryption failed: %s: %s", type(e).__name__, e)
        raise EncryptionError("encrypting protected note failed") from e

    return CipherPayload(
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
        salt=base64.b64encode(salt).decode("ascii"),
        nonce=base64.b64encode(nonce).decode("ascii"),
        iterations=iterations,
    )


def decrypt_payload(password: str, payload: CipherPayload) -> str:
    """Inverse of encrypt_html, mirroring the client-side decrypt step."""
    salt = base64.b64decode(payload.salt)
    nonce = base64.b64decode(payload.nonce)
    ciphertext = base64.b64decode(payload.ciphertext)
    key = derive_key(password, salt, payload.iterations)
    return AESGCM(key).decrypt(nonce, ciphertext, None).decode("utf-8")


def encrypted_shell(payload: CipherPayload) -> str:
    return ENCRYPTED_SHELL.format(
        ciphertext=html.escape(payload.ciphertext),
        salt=html.escape(payload.salt),
        nonce=html.escape(payload.nonce),
        iterations=payload.iterations,
        algo=ALGORITHM,
        kdf=KDF,
    )


class EncryptContent(Transformer):
    """Replace the HTML of password-protected pages with ciphertext."""

    def __init__(self, cache: EncryptionCache | None = None, iterations: int = PBKDF2_ITERATIONS):
        self.cache = cache if cache is not None else EncryptionCache()
        self.iterations = iterations

    def transform(self, page: Page) -> Page:
        password = page.meta.password
        if not password:
            return page

        page.meta.password = ""
        if "password" in page.frontmatter:
            page.frontmatter["password"] = ""
        if page.html is None:
            logger.warning("Protected page %s has no html to encrypt", page.slug)
            return page

        plaintext = page.html
        key = cache_key(password, plaintext, self.iterations)
        payload = self.cache.get(key)
        if payload is None:
            payload = encrypt_html(password, plaintext, self.iterations)
            self.cache.put(key, payload)
        else:
            logger.debug("Reusing ciphertext for %s", page.slug)

        # Read-time estimates can no longer see the plaintext.
        page.meta.word_count = len(plaintext.split())
        page.meta.encrypted = True
        page.html = encrypted_shell(payload)
        return page
