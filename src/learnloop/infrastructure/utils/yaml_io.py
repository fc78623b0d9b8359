import os
import tempfile
from pathlib import Path
from typing import Any

import yaml  # type: ignore
import yaml.constructor


class UniqueKeyLoader(yaml.SafeLoader):
    """
    Custom YAML loader that forbids duplicate keys.
    """

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


def load_yaml(path: Path) -> Any:
    """
    Parse a YAML (or JSON) file.

    Raises OSError or yaml.YAMLError; callers decide whether that is fatal.
    """
    raw = path.read_text(encoding="utf-8").lstrip("\ufeff")
    # Tabs are a common hand-editing mistake
    if "\t" in raw:
        raw = raw.replace("\t", "  ")
    return yaml.load(raw, Loader=UniqueKeyLoader)


def dump_yaml(data: Any, path: Path) -> None:
    """Write `data` as block-style YAML, replacing the file atomically."""
    text = yaml.dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10**9,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
