"""
API token provider for clubhouse-sync.

The token is read from CLUBHOUSE_API_TOKEN, or decrypted from a gpg-encrypted
file named by CLUBHOUSE_TOKEN_FILE. Decryption runs once per provider.
"""

import os
import subprocess

from clubhouse_sync import config
from clubhouse_sync.exceptions import SetupError


def _mask_token(token):
    """Show only first 6 chars of a token for safe logging."""
    return token[:6] + "..." if len(token) > 6 else token


def _decrypt_token_file(path, gpg_program=None):
    """Run gpg on *path* and return the decrypted text."""
    program = gpg_program or config.GPG_PROGRAM
    if not os.path.exists(path):
        raise SetupError(f"[SETUP_NEEDED] Token file not found: {path}")
    try:
        proc = subprocess.run(
            [program, "--quiet", "--batch", "--decrypt", path],
            capture_output=True,
            text=True,
            timeout=60,
        )
    except FileNotFoundError as e:
        raise SetupError(f"[SETUP_NEEDED] '{program}' not found; cannot decrypt {path}.") from e
    except subprocess.TimeoutExpired as e:
        raise SetupError(f"[SETUP_NEEDED] Timed out decrypting {path}.") from e
    if proc.returncode != 0:
        detail = (proc.stderr or "").strip()
        raise SetupError(f"[SETUP_NEEDED] Could not decrypt {path}: {detail or 'gpg failed'}")
    return proc.stdout


class CredentialProvider:
    """Supplies the bearer token, resolving it on first use."""

    def __init__(self, token=None, token_file=None):
        self._token = token
        self._token_file = token_file

    def token(self):
        if self._token:
            return self._token
        token = config.API_TOKEN
        if not token:
            token_file = self._token_file or config.TOKEN_FILE
            if not token_file:
                raise SetupError(
                    "[SETUP_NEEDED] No API token configured.\n"
                    "  Set CLUBHOUSE_API_TOKEN, or CLUBHOUSE_TOKEN_FILE to a "
                    "gpg-encrypted file, in .env."
                )
            token = _decrypt_token_file(os.path.expanduser(token_file))
        token = token.strip()
        if not token:
            raise SetupError("[SETUP_NEEDED] The configured API token is empty.")
        self._token = token
        return token

    def __repr__(self):
        shown = _mask_token(self._token) if self._token else "<unresolved>"
        return f"CredentialProvider({shown})"
