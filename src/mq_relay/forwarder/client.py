from urllib.parse import urlencode

import aiohttp
from loguru import logger

from mq_relay.common.metrics import metrics
from mq_relay.common.models import RelayConfig


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Jenkins' GitHub hook receiver inspects this header, whatever the event was.
GITHUB_EVENT = "push"


def encode_payload(body: bytes) -> str:
    """Encode a raw message body as the single ``payload`` form field."""
    return urlencode({"payload": body})


class PostForwarder:
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def build_headers(self, encoded: bytes):
        return {
            "Content-Type": FORM_CONTENT_TYPE,
            "Content-Length": str(len(encoded)),
            "X-GitHub-Event": GITHUB_EVENT,
        }

    async def forward(self, body: bytes, relay: RelayConfig) -> bool:
        """POST a message body to the relay's target URL.

        Every failure is logged and dropped here so the consume loop keeps
        going; nothing is retried. The return value only reports the outcome.
        """
        label = relay.label
        target_url = relay.target_url
        encoded = encode_payload(body).encode("ascii")

        logger.debug(f"{label} ====Payload Begin====")
        logger.debug(encoded.decode("ascii"))
        logger.debug(f"{label} ====Payload End====")

        with metrics.forward_latency.labels(relay=relay.metric_label).time():
            try:
                async with aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as session:
                    async with session.post(
                        target_url,
                        data=encoded,
                        headers=self.build_headers(encoded),
                    ) as response:
                        if response.status < 200 or response.status >= 300:
                            metrics.forward_errors.labels(
                                relay=relay.metric_label,
                                status_code=response.status,
                            ).inc()
                            logger.error(
                                f"{label} received non-2xx status from {target_url}: "
                                f"{response.status} {response.reason}"
                            )
                            return False

                        reply = await response.read()
            except Exception as e:
                metrics.forward_errors.labels(
                    relay=relay.metric_label,
                    status_code="error",
                ).inc()
                logger.error(f"{label} Error forwarding to {target_url}: {e!r}")
                return False

        metrics.forward_total.labels(relay=relay.metric_label).inc()
        logger.info(
            f"{label} Server replied ({response.status} {response.reason}):\n"
            f"{reply.decode(errors='replace')}"
        )
        return True
