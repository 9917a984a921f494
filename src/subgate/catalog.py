"""
SubGate Worker Catalog

Loads static worker definitions from a JSON file: an array of objects in
the WorkerDefinition shape.
"""
import logging
from pathlib import Path
from typing import Union

from pydantic import TypeAdapter

from subgate.models import WorkerDefinition

logger = logging.getLogger(__name__)

_catalog_adapter = TypeAdapter(list[WorkerDefinition])


def parse_catalog(raw: Union[str, bytes]) -> list[WorkerDefinition]:
    """Validate a JSON catalog document. Raises pydantic.ValidationError."""
    return _catalog_adapter.validate_json(raw)


def load_catalog(path: Union[str, Path]) -> list[WorkerDefinition]:
    definitions = parse_catalog(Path(path).read_bytes())
    logger.info("Worker catalog loaded", extra={"path": str(path), "workers": len(definitions)})
    return definitions


async def register_catalog(delegator, definitions: list[WorkerDefinition]) -> int:
    """Register every definition with a TaskDelegator; returns the count"""
    for definition in definitions:
        await delegator.register_worker(definition)
    return len(definitions)
