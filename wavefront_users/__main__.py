import asyncio
import sys

from neuro_logging import init_logging

from wavefront_users import cli
from wavefront_users.config import EnvironConfigFactory


def main() -> None:
    init_logging()
    config = EnvironConfigFactory().create()
    sys.exit(asyncio.run(cli.main(sys.argv[1:], config)))


if __name__ == "__main__":
    main()
