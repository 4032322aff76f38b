"""
Node topology bootstrap

The simulator hands out its node list out of band, one ``id,lat,lon`` line
per node. Each line becomes a ``Node`` wire message so it goes through the
same decode/apply path as the stream.
"""
import csv
from typing import Dict, Iterator, List

from log_utils import get_logger, log_performance
from stream.processor import EventProcessor

logger = get_logger(__name__)


def read_topology(path: str) -> Iterator[Dict]:
    """Yield ``{"Node": {...}}`` messages from a node list file"""
    with open(path, newline="") as f:
        for lineno, row in enumerate(csv.reader(f), start=1):
            if not row or not row[0].strip() or row[0].lstrip().startswith("#"):
                continue
            if len(row) < 3:
                logger.warning(f"{path}:{lineno}: expected id,lat,lon, got {row}")
                continue
            node_id, lat, lon = (cell.strip() for cell in row[:3])
            try:
                coords = float(lat), float(lon)
            except ValueError:
                logger.warning(f"{path}:{lineno}: bad coordinates {lat!r}, {lon!r}")
                continue
            yield {"Node": {"id": node_id, "lat": coords[0], "lon": coords[1]}}


@log_performance(logger, "load_topology")
def load_topology(path: str, processor: EventProcessor) -> List[str]:
    """Register every node in ``path``; returns the ids that were added"""
    added = []
    for message in read_topology(path):
        outcome = processor.process(message)
        if outcome.applied:
            added.append(message["Node"]["id"])
    logger.info(f"Loaded {len(added)} nodes from {path}")
    return added
