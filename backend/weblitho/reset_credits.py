"""
Refill daily credits for every user whose last reset is older than the reset interval.

Meant for cron when the in-process scheduler is off:

    weblitho-reset-credits
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv


def main():
    load_dotenv(os.path.join(os.getcwd(), ".env"))
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    from weblitho.credits import reset_daily_credits

    try:
        count = asyncio.run(reset_daily_credits())
    except Exception as e:
        logging.getLogger(__name__).error("[reset-daily-credits] %s", e)
        sys.exit(1)
    print(f"Reset credits for {count} users")


if __name__ == "__main__":
    main()
