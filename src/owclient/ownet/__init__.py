"""
owserver wire protocol: codec, TCP transport and directory assembly.
"""

from owclient.ownet.listing import ListingAssembler, assemble_listing
from owclient.ownet.protocol import (
    DEFAULT_SIZE,
    HEADER_SIZE,
    Frame,
    MessageType,
    RequestHeader,
    ResponseHeader,
    decode_response_header,
    encode_header,
    encode_request,
)
from owclient.ownet.transport import Connection, exchange

__all__ = [
    "DEFAULT_SIZE",
    "HEADER_SIZE",
    "Connection",
    "Frame",
    "ListingAssembler",
    "MessageType",
    "RequestHeader",
    "ResponseHeader",
    "assemble_listing",
    "decode_response_header",
    "encode_header",
    "encode_request",
    "exchange",
]
