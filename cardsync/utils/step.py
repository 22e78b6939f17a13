from contextlib import asynccontextmanager
import traceback

from cardsync.utils.logger import sync_logger


@asynccontextmanager
async def step(label: str, logger=sync_logger):
    try:
        if logger:
            logger.info(f"------------- Step: {label} -------------")
        yield
    except Exception as e:
        if logger:
            logger.error(f"❌ Error in step -------'{label}'------- : {type(e).__name__} - {e}")
            logger.debug(traceback.format_exc())
        raise
