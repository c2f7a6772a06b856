"""
Demo script for EmailLogPipeline.

Routes loguru output into the pipeline, trips the immediate-error trigger, and shows a large
buffer being split into several parts. Uses the dry-run transport, so nothing is mailed.
"""

import asyncio
import tempfile

from loguru import logger

from log_mailer import DryRunTransport, EmailLogPipeline, LoguruSink, MessageRenderer
from log_mailer.coordinator import FileLogStore
from log_mailer.mail import RenderOptions


async def main():
    transport = DryRunTransport()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = EmailLogPipeline(
            store=FileLogStore(tmp),
            renderer=MessageRenderer(RenderOptions(subject_prefix="[DEMO]")),
            transport=transport,
            rotation_cycle="HOURLY",
            immediate_error_threshold=3,
            max_bytes_per_part=64 * 1024,
            part_delay_sec=0.1,
        )
        async with pipeline:
            sink_id = logger.add(LoguruSink(pipeline), level="DEBUG")
            logger.info("🚀 Producing 2,000 records with a burst of errors at the end")

            for i in range(2_000):
                logger.bind(seq=i).debug(f"processing item {i}")
            for i in range(3):
                logger.error(f"upstream call failed (attempt {i + 1})")

            await pipeline.wait_idle()
            stats = pipeline.get_statistics()
            logger.info(
                f"Sent {stats.successful_sends} message(s), "
                f"{stats.rate_limit_remaining} left in window, state={stats.state}"
            )
            logger.remove(sink_id)

    for msg in transport.sent:
        size = len(msg.attachment) if msg.attachment else len(msg.text_body)
        logger.info(f"📧 {msg.subject} ({size} bytes, attachment={msg.attachment_name})")
    logger.info("✅ Pipeline demo complete")


if __name__ == "__main__":
    asyncio.run(main())
