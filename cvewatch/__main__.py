import argparse
import logging
import textwrap
from typing import List, Optional

from cvewatch.app import CveWatchApp
from cvewatch.core.model import Product
from cvewatch.core.nvd import RESULTS_PER_PRODUCT

POLL_INTERVAL = 30  # minutes


def product_arg(value: str) -> Product:
    """NAME or NAME=KEYWORD."""
    name, _, keyword = value.partition("=")
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid product: {value!r}")
    return Product(id=name.lower(), name=name, keyword=keyword.strip())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cvewatch",
        description=textwrap.dedent("""
            Scans a folder for dependency manifests and watches the NVD for
            CVEs affecting the products you care about.
        """).strip(),
    )
    parser.add_argument("directory", help="Projects folder to scan")
    parser.add_argument(
        "-p", "--product", dest="products", type=product_arg, action="append", default=[],
        help="Product to watch, as NAME or NAME=KEYWORD (repeatable). "
             "Defaults to the dependencies found in the folder.",
    )
    parser.add_argument("--results", type=int, default=RESULTS_PER_PRODUCT, help="CVEs fetched per product")
    parser.add_argument("--poll-interval", type=int, default=POLL_INTERVAL, help="Minutes between automatic refreshes")
    parser.add_argument("--no-notifications", dest="notifications", action="store_false", help="Do not raise alerts for new CVEs")
    parser.add_argument("--api-key", default=None, help="NVD API key")
    parser.add_argument("-v", "--verbose", action="store_true", help="Write DEBUG messages to debug.log")
    return parser.parse_args(argv)


def main():
    """ Entrypoint when is installed via pip """
    args = parse_args()

    # The TUI owns the terminal, so logs go to a file
    logging.basicConfig(
        filename="debug.log",
        level=logging.DEBUG if args.verbose else logging.INFO,
        filemode="w",
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    app = CveWatchApp(
        directory=args.directory,
        products=args.products,
        results_per_product=args.results,
        poll_interval=args.poll_interval,
        notifications=args.notifications,
        api_key=args.api_key,
    )
    app.run()


# Development mode
if __name__ == "__main__":
    main()
