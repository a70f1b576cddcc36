"""Forwarder component: turns a message body into an outbound POST."""

from mq_relay.forwarder.client import PostForwarder, encode_payload

__all__ = [
    "PostForwarder",
    "encode_payload",
]
