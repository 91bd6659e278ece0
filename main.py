# main.py
import asyncio
import logging
from storefront.app import StorefrontApp
from storefront.config import setup_logging

async def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)

    runner = None
    try:
        app = StorefrontApp()
        logger.info("Starting storefront order service...")
        runner = await app.start()
        await asyncio.Event().wait()
    except Exception as e:
        logger.error(f"Error starting service: {e}", exc_info=True)
        raise
    finally:
        if runner is not None:
            await runner.cleanup()

if __name__ == "__main__":
    asyncio.run(main())
