import asyncio
import logging
import sys

from tagsweep.cleaner import sweep_registry
from tagsweep.config import Args, load_config
from tagsweep.errors import ConfigurationError, FatalRunError
from tagsweep.utils import init_logger, render_summary, write_report


def main(argv: list[str] | None = None) -> int:
    args = Args.from_args(argv)
    try:
        config = load_config(args)
    except ConfigurationError as err:
        logging.critical(str(err))
        return 1

    init_logger(config)
    if not config.delete:
        logging.warning("Running in dry-run mode, found tags will not be deleted")

    try:
        summary = asyncio.run(sweep_registry(config))
    except FatalRunError as err:
        logging.critical(str(err))
        logging.info("Check your registry url, credentials and proxy and try again.")
        return 1

    print(render_summary(summary))
    if config.report:
        try:
            write_report(summary, config.report)
        except OSError as err:
            logging.error(f"Couldn't write the report to {config.report}: {err}")
            return 1
        logging.info(f"Report written to {config.report}")

    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
