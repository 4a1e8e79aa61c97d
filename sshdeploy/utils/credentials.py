"""
Password protection for passwords stored in the config file

On Windows passwords are encrypted for the current user with DPAPI
(CryptProtectData) and stored base64-encoded. Other platforms have no
protector and reject encrypted passwords.
"""
import base64
import binascii
import ctypes
import sys

from ..exceptions import ConfigError


class CredentialProtector:
    """Turns a clear-text password into an opaque string and back."""

    def encrypt(self, clear: str) -> str:
        raise NotImplementedError

    def decrypt(self, protected: str) -> str:
        raise NotImplementedError


class UnsupportedProtector(CredentialProtector):
    """Used when no OS key store is available."""

    def encrypt(self, clear: str) -> str:
        raise ConfigError("Encrypted passwords are not supported on this platform.")

    def decrypt(self, protected: str) -> str:
        raise ConfigError("Encrypted passwords are not supported on this platform.")


class _DataBlob(ctypes.Structure):
    _fields_ = [("cbData", ctypes.c_uint32),
                ("pbData", ctypes.POINTER(ctypes.c_char))]


class DpapiProtector(CredentialProtector):
    """Windows DPAPI, scoped to the logged-on user."""

    _CRYPTPROTECT_UI_FORBIDDEN = 0x01

    def __init__(self):
        self._crypt32 = ctypes.windll.crypt32
        self._kernel32 = ctypes.windll.kernel32

    def _call(self, fn, data: bytes) -> bytes:
        buffer = ctypes.create_string_buffer(data, len(data))
        blob_in = _DataBlob(len(data), ctypes.cast(buffer, ctypes.POINTER(ctypes.c_char)))
        blob_out = _DataBlob()
        ok = fn(ctypes.byref(blob_in), None, None, None, None,
                self._CRYPTPROTECT_UI_FORBIDDEN, ctypes.byref(blob_out))
        if not ok:
            raise ConfigError(f"Password protection failed: {ctypes.WinError()}")
        try:
            return ctypes.string_at(blob_out.pbData, blob_out.cbData)
        finally:
            self._kernel32.LocalFree(blob_out.pbData)

    def encrypt(self, clear: str) -> str:
        if not clear:
            return ""
        protected = self._call(self._crypt32.CryptProtectData, clear.encode("utf-8"))
        return base64.b64encode(protected).decode("ascii")

    def decrypt(self, protected: str) -> str:
        if not protected:
            return ""
        try:
            data = base64.b64decode(protected, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ConfigError(f"Encrypted password is not valid base64: {exc}") from exc
        return self._call(self._crypt32.CryptUnprotectData, data).decode("utf-8")


def default_protector() -> CredentialProtector:
    if sys.platform == "win32":
        return DpapiProtector()
    return UnsupportedProtector()


def reveal_password(password: str, prefix: str, protector: CredentialProtector) -> str:
    """Decrypt `password` if it carries the encrypted-password prefix."""
    if password and password.startswith(prefix):
        encrypted = password[len(prefix):]
        if not encrypted:
            return ""
        return protector.decrypt(encrypted)
    return password
