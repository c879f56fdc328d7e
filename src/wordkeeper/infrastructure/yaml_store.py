"""
YAML file I/O shared by the repositories.

Loading rejects duplicate mapping keys; dumping keeps key order and writes
multi-line strings as block literals.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import yaml  # type: ignore
import yaml.constructor

from wordkeeper.domain.errors import ReadFailureError, WriteFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UniqueKeyLoader(yaml.SafeLoader):
    """Custom YAML loader that forbids duplicate keys."""

    def construct_mapping(self, node, deep=False):
        mapping = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            mapping.add(key)
        return super().construct_mapping(node, deep)


class _LiteralDumper(yaml.SafeDumper):
    pass


def _str_presenter(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_LiteralDumper.add_representer(str, _str_presenter)


def load_yaml_file(path: Path) -> Any:
    """
    Raises:
        ReadFailureError: If the file cannot be read or is not valid YAML.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReadFailureError("cannot read file", path=str(path), error=str(e)) from e

    try:
        return yaml.load(text, Loader=UniqueKeyLoader)
    except yaml.YAMLError as e:
        raise ReadFailureError("invalid YAML", path=str(path), error=str(e)) from e


def load_records(path: Path, parse: Callable[[Any], T]) -> list[T]:
    """
    Load a YAML file holding a list of records and parse each one.

    Raises:
        ReadFailureError: On I/O, YAML or record-shape errors.
    """
    data = load_yaml_file(path)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ReadFailureError("expected a list of records", path=str(path))
    try:
        return [parse(item) for item in data]
    except (TypeError, ValueError) as e:
        raise ReadFailureError("malformed record", path=str(path), error=str(e)) from e


def dump_yaml(value: Any) -> str:
    return yaml.dump(
        value,
        Dumper=_LiteralDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10**9,
    )


def persist_yaml(path: Path, value: Any) -> None:
    """
    Raises:
        WriteFailureError: If the file cannot be written.
    """
    text = dump_yaml(value)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise WriteFailureError("cannot write file", path=str(path), error=str(e)) from e
    logger.debug(f"Wrote {path}")
