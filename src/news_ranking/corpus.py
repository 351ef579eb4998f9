import json
from collections.abc import Iterator
from pathlib import Path

from tqdm import tqdm

from news_ranking.features import Document


def iter_news_records(path: str | Path) -> Iterator[dict]:
    """
    Yields records from a JSON-lines news dataset.

    Args:
        path: File with one JSON object per line (blank lines are skipped).
    """
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)


def load_news_jsonl(path: str | Path, show_progress: bool = False) -> list[Document]:
    """
    Loads news documents from a JSON-lines file.

    Records without an `id` get their 0-based line position as id.

    Args:
        path: Dataset file.
        show_progress: Display a tqdm progress bar.

    Returns:
        list[Document]: Documents in file order.
    """
    records = tqdm(iter_news_records(path), desc="Loading", disable=not show_progress)
    return [
        Document.from_record(record, doc_id=None if "id" in record else str(position))
        for position, record in enumerate(records)
    ]
