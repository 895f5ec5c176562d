import logging

from celery import shared_task

from .etl_pipeline import RNCConfig, RNCOrchestrator

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def refresh_rnc_registry(self):
    """Download and reload the DGII registry without operator interaction.

    Overwrites any previously extracted file and runs without the spinner.
    """
    config = RNCConfig.from_env()
    config.assume_yes = True
    config.show_progress = False

    result = RNCOrchestrator(config).execute()
    if not result.success:
        logger.error("RNC refresh failed: %s", "; ".join(result.errors))
    return result.to_dict()
