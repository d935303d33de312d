"""Row files: tables of rows in YAML or JSON with temporary identifiers.

YAML marks temporary identifiers with a tag:

    region:
      - id: !tmp r1
        name: North
        parent: null
      - id: !tmp r2
        name: North-East
        parent: !tmp r1

JSON (and YAML) may use a single-key object instead: {"$tmp": "r1"}.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from fkload.exceptions import RowFileError
from fkload.models import TempId

logger = logging.getLogger(__name__)

TEMP_ID_KEY = "$tmp"
TEMP_ID_TAG = "!tmp"


class RowFileLoader(yaml.SafeLoader):
    """YAML loader understanding the !tmp tag."""


def _construct_temp_id(loader: yaml.SafeLoader, node: yaml.Node) -> TempId:
    return TempId(loader.construct_scalar(node))


RowFileLoader.add_constructor(TEMP_ID_TAG, _construct_temp_id)


def _convert(value: Any) -> Any:
    if isinstance(value, dict) and len(value) == 1 and TEMP_ID_KEY in value:
        return TempId(value[TEMP_ID_KEY])
    return value


def parse_rows(data: Any, source: str = "<data>") -> dict[str, list[dict[str, Any]]]:
    """
    Validate parsed row data and convert temporary identifier objects.

    Args:
        data: Parsed YAML/JSON document
        source: Name used in error messages

    Returns:
        Table name -> list of rows

    Raises:
        RowFileError: If the document does not map tables to lists of rows
    """
    if not isinstance(data, dict):
        raise RowFileError(source, "top level is not a mapping")

    tables: dict[str, list[dict[str, Any]]] = {}
    for table, rows in data.items():
        if not isinstance(rows, list):
            raise RowFileError(source, f"rows of '{table}' are not a list")
        converted = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise RowFileError(source, f"row {index} of '{table}' is not a mapping")
            converted.append({column: _convert(value) for column, value in row.items()})
        tables[str(table)] = converted

    return tables


def load_rows(path: str | Path) -> dict[str, list[dict[str, Any]]]:
    """
    Read a YAML or JSON row file.

    Files ending in .json are parsed as JSON, everything else as YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        RowFileError: If the file cannot be parsed or has the wrong shape
    """
    path = Path(path)
    text = path.read_text()

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.load(text, Loader=RowFileLoader)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise RowFileError(str(path), str(exc)) from exc

    tables = parse_rows(data, str(path))
    logger.debug(f"Read {sum(len(r) for r in tables.values())} rows from {path}")
    return tables
