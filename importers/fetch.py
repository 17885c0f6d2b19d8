"""HTTP fetching with retry and exponential backoff for import sources."""
import logging
import time
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_DELAY = 1  # seconds
USER_AGENT = 'events-calendar-importer/1.0'


def fetch_text(url: str, timeout: int = 30, params: Optional[Dict] = None,
               max_retries: int = MAX_RETRIES) -> str:
    """
    Fetch a URL with retry logic.

    Args:
        url: Source URL (webcal:// is fetched over https)
        timeout: HTTP request timeout in seconds
        params: Optional query parameters
        max_retries: Number of attempts before giving up

    Returns:
        Response body as text

    Raises:
        requests.RequestException: If all retry attempts fail
    """
    if url.startswith('webcal://'):
        url = 'https://' + url[len('webcal://'):]

    for attempt in range(max_retries):
        try:
            logger.info(f"Fetching {url} (attempt {attempt + 1}/{max_retries})")
            response = requests.get(
                url,
                params=params,
                headers={'User-Agent': USER_AGENT},
                timeout=timeout
            )
            response.raise_for_status()
            return response.text

        except requests.RequestException as e:
            if attempt < max_retries - 1:
                delay = BASE_DELAY * (2 ** attempt)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{max_retries}): {e}. "
                    f"Retrying in {delay} seconds..."
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"All {max_retries} retry attempts failed. Last error: {e}"
                )
                raise
