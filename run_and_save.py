import argparse
import sys
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

from app.db import Base, SessionLocal, engine  # noqa: E402
from app.errors import ScrapeError  # noqa: E402
from app.services import refresh_all_sources, refresh_source  # noqa: E402
from app.sources import available_sources  # noqa: E402
from app.utils import logger  # noqa: E402
import app.models  # noqa: E402,F401


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape car marketplaces and save listings to the database.")
    parser.add_argument("source", nargs="?", choices=available_sources(),
                        help="Source to scrape (default: all sources).")
    parser.add_argument("-f", "--force", action="store_true", help="Ignore the freshness cache.")
    parser.add_argument("--brand")
    parser.add_argument("--model")
    parser.add_argument("--max-price", type=int)
    parser.add_argument("--min-year", type=int)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.source is None:
            summaries = refresh_all_sources(db, force_refresh=args.force)
            for s in summaries:
                if s["success"]:
                    print(f"{s['source']}: {s['count']} listings{' (cached)' if s['cached'] else ''}")
                else:
                    print(f"{s['source']}: failed - {s['error']}")
            return 0 if all(s["success"] for s in summaries) else 1

        filters = {"brand": args.brand, "model": args.model,
                   "max_price": args.max_price, "min_year": args.min_year}
        try:
            result = refresh_source(db, args.source, args.force, filters=filters)
        except ScrapeError as e:
            logger.error("Scrape of %s failed: %s", args.source, e)
            print(f"{args.source}: failed - {e}")
            return 1
        print(f"{args.source}: {len(result.listings)} listings{' (cached)' if result.cached else ''}")
        for listing in result.listings[:10]:
            print(f"  {listing.brand} {listing.model} {listing.year} - {listing.price} EUR - {listing.title}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
