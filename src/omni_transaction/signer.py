"""Signature abstraction to enable flexible cryptography backends."""

from typing import Awaitable, Callable

from .errors import InvalidSignature

Signer = Callable[[bytes], bytes | Awaitable[bytes]]


async def sign_message(sign: Signer, message: bytes) -> bytes:
    """Sign a message.

    The signer must either be a callable returning bytes or a callable returning
    an awaitable of bytes.
    """
    value = sign(message)
    if not isinstance(value, (bytes, bytearray)):
        # Anything other than bytes or an awaitable raises TypeError here
        value = await value

    if not isinstance(value, (bytes, bytearray)):
        raise InvalidSignature(f"Signer returned {type(value).__name__}, not bytes")
    return bytes(value)
