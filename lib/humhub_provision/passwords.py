from __future__ import annotations

import base64
import os

_SAFE_REMAP = str.maketrans({"/": "_", "+": "-", "=": "x"})


def encode_secret(raw: bytes) -> str:
    """Base64 with '/', '+', '=' remapped to '_', '-', 'x'.

    Not base64url: padding is kept as literal 'x' characters so values stay
    compatible with secrets produced by `openssl rand -base64 | tr '/+=' '_-x'`.
    """
    encoded = base64.b64encode(raw).decode("ascii").replace("\n", "")
    return encoded.translate(_SAFE_REMAP)


def generate_password(nbytes: int = 24) -> str:
    return encode_secret(os.urandom(nbytes))


def generate_jwt_secret(nbytes: int = 32) -> str:
    return encode_secret(os.urandom(nbytes))
