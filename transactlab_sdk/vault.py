"""
Encrypted configuration vault.

The vault is a small JSON document holding AES-256-GCM ciphertext of the
serialized configuration. The key is derived from a password with scrypt and a
random per-vault salt; every encryption uses a fresh 96-bit nonce. All
parameters needed for decryption are stored next to the ciphertext.
"""

import json
import logging
import os
import secrets
import tempfile
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .exceptions import VaultDecryptError

logger = logging.getLogger("transactlab_sdk.vault")

VAULT_VERSION = 1
CIPHER = "aes-256-gcm"
KDF = "scrypt"
AAD = "transactlab-magic"

SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SALT_BYTES = 16
NONCE_BYTES = 12
KEY_BYTES = 32


def derive_key(password: str, salt: bytes, n: int = SCRYPT_N, r: int = SCRYPT_R, p: int = SCRYPT_P) -> bytes:
    """
    Derive a 256-bit key from a password.

    Args:
        password: Vault password
        salt: Random salt stored in the vault
        n: scrypt CPU/memory cost
        r: scrypt block size
        p: scrypt parallelization

    Returns:
        32-byte key
    """
    kdf = Scrypt(salt=salt, length=KEY_BYTES, n=n, r=r, p=p)
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: str, password: str) -> Dict[str, Any]:
    """
    Encrypt plaintext into a self-describing vault document.

    Args:
        plaintext: Data to encrypt
        password: Vault password

    Returns:
        Vault document (JSON-serializable)
    """
    salt = secrets.token_bytes(SALT_BYTES)
    nonce = secrets.token_bytes(NONCE_BYTES)
    key = derive_key(password, salt)

    # AESGCM appends the 16-byte tag to the ciphertext
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), AAD.encode("utf-8"))

    return {
        "version": VAULT_VERSION,
        "kdf": KDF,
        "n": SCRYPT_N,
        "r": SCRYPT_R,
        "p": SCRYPT_P,
        "salt": salt.hex(),
        "cipher": CIPHER,
        "iv": nonce.hex(),
        "aad": AAD,
        "ciphertext": ciphertext.hex(),
    }


def decrypt(document: Dict[str, Any], password: str) -> str:
    """
    Decrypt a vault document.

    Args:
        document: Parsed vault document
        password: Vault password

    Returns:
        Decrypted plaintext

    Raises:
        VaultDecryptError: On wrong password, tampering or malformed document
    """
    if not password:
        raise VaultDecryptError("Vault password required for encrypted configuration")

    try:
        if document.get("version") != VAULT_VERSION:
            raise VaultDecryptError(f"Unsupported vault version: {document.get('version')!r}")
        if document.get("kdf") != KDF or document.get("cipher") != CIPHER:
            raise VaultDecryptError("Unsupported vault algorithm")

        salt = bytes.fromhex(document["salt"])
        nonce = bytes.fromhex(document["iv"])
        ciphertext = bytes.fromhex(document["ciphertext"])
        aad = document.get("aad", AAD).encode("utf-8")
        key = derive_key(
            password,
            salt,
            n=int(document.get("n", SCRYPT_N)),
            r=int(document.get("r", SCRYPT_R)),
            p=int(document.get("p", SCRYPT_P)),
        )
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, aad)
    except VaultDecryptError:
        raise
    except InvalidTag as e:
        raise VaultDecryptError("Failed to decrypt vault: wrong password or corrupted data") from e
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise VaultDecryptError(f"Failed to decrypt vault: malformed vault file ({e})") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise VaultDecryptError("Failed to decrypt vault: invalid plaintext encoding") from e


def read_vault(path: str, password: str) -> str:
    """Read and decrypt the vault at ``path``."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise VaultDecryptError(f"Failed to read vault: {e}") from e

    if not isinstance(document, dict):
        raise VaultDecryptError("Failed to read vault: unexpected document type")

    return decrypt(document, password)


def write_vault(path: str, plaintext: str, password: str) -> None:
    """
    Encrypt and write a vault atomically.

    The document is written to a temporary file in the target directory and
    renamed over ``path``, so a crash mid-write never corrupts an existing vault.

    Args:
        path: Vault file path
        plaintext: Data to encrypt
        password: Vault password
    """
    document = encrypt(plaintext, password)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".vault-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.info("Vault written to %s", path)
