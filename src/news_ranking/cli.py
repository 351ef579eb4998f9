"""
Command line interface for the news ranking pipeline.

Defaults come from environment variables:
    NEWS_RANKING_CORPUS=data/News_Category_Dataset.jsonl
    NEWS_RANKING_MODEL_PATH=ltr_model.bin
    NEWS_RANKING_CONFIG=ranking.json   # optional; otherwise RANKING_* env vars

Run with:
    news-ranking search "climate change" --category ENVIRONMENT --top-k 5
    news-ranking weights --set 1.0 0.3 0.2 0.5 0.0
    news-ranking config
"""

import argparse
import json
import logging
import os
import sys

from news_ranking.config import ConfigStore, RankingConfig
from news_ranking.corpus import load_news_jsonl
from news_ranking.errors import RankingError
from news_ranking.ltr import LogisticRanker
from news_ranking.model_store import DEFAULT_MODEL_FILE, FileModelStore
from news_ranking.service import IndexCandidateSource, SearchService

DEFAULT_CORPUS = os.environ.get("NEWS_RANKING_CORPUS", "data/News_Category_Dataset.jsonl")
DEFAULT_MODEL_PATH = os.environ.get("NEWS_RANKING_MODEL_PATH", DEFAULT_MODEL_FILE)
DEFAULT_CONFIG_PATH = os.environ.get("NEWS_RANKING_CONFIG", "")


def load_config(path: str) -> RankingConfig:
    if path:
        return RankingConfig.from_json(path)
    return RankingConfig.from_env()


def cmd_search(args: argparse.Namespace) -> int:
    config_store = ConfigStore(load_config(args.config))
    if args.ltr:
        config_store.update(ltr_enabled=True)

    documents = load_news_jsonl(args.corpus, show_progress=True)
    source = IndexCandidateSource.from_documents(documents, show_progress=True)
    model = LogisticRanker(FileModelStore(args.model))
    service = SearchService(source, config_store, model)

    response = service.search(
        args.query,
        page_size=args.top_k,
        category_filter=args.category,
        session_key=args.session,
    )
    print(
        f"Variant {response.variant.value} ({response.strategy}), "
        f"{response.pool_size} candidates, {response.took_ms:.1f} ms"
    )
    for rank, result in enumerate(response.results, 1):
        doc = result.document
        print(f"{rank:2d}. [{doc.category}] {doc.headline}  score={result.score:.4f}")
    return 0


def cmd_weights(args: argparse.Namespace) -> int:
    model = LogisticRanker(FileModelStore(args.model))
    if args.set:
        *weights, bias = args.set
        if not model.set_weights(weights, bias):
            print(f"Warning: weights were not persisted to {args.model}", file=sys.stderr)
    current = model.get_weights()
    print(json.dumps({"weights": list(current.weights), "bias": current.bias}, indent=2))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    print(json.dumps(load_config(args.config).to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="News search ranking")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help="Ranking config JSON file (default: RANKING_* environment variables)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search the corpus")
    search.add_argument("query", type=str, help="Free-text query")
    search.add_argument("--corpus", type=str, default=DEFAULT_CORPUS, help="JSON-lines news file")
    search.add_argument("--model", type=str, default=DEFAULT_MODEL_PATH, help="LTR model file")
    search.add_argument("--top-k", type=int, default=10, help="Results to show")
    search.add_argument("--category", type=str, default=None, help="Restrict results to a category")
    search.add_argument("--session", type=str, default=None, help="Session key for A/B routing")
    search.add_argument("--ltr", action="store_true", help="Enable LTR for variant B")
    search.set_defaults(func=cmd_search)

    weights = subparsers.add_parser("weights", help="Show or set LTR model weights")
    weights.add_argument("--model", type=str, default=DEFAULT_MODEL_PATH, help="LTR model file")
    weights.add_argument(
        "--set",
        type=float,
        nargs=5,
        metavar=("RELEVANCE", "POPULARITY", "FRESHNESS", "CATEGORY", "BIAS"),
        help="New weights followed by the bias",
    )
    weights.set_defaults(func=cmd_weights)

    config = subparsers.add_parser("config", help="Print the effective ranking config")
    config.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        return args.func(args)
    except (RankingError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
