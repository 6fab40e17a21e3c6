import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from cli.onetask_cmd import cli
from onetask.logger import setup_logging


def main():
    """Main entry point for the OneTask command line client."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
