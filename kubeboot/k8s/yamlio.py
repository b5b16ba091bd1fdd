"""YAML loading and dumping for Kubernetes manifests.

Uses ruamel.yaml in round-trip mode so that key order, quoting and block
scalars (ConfigMap payloads such as index.html) survive a load/dump cycle.
"""

from io import StringIO
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.representer import RoundTripRepresenter

from kubeboot.core.errors import ManifestError


class ManifestRepresenter(RoundTripRepresenter):
    """Round-trip representer that writes None as an explicit ``null``.

    kubectl emits nulls such as ``creationTimestamp: null``; the stock
    round-trip representer would write them as empty values.
    """

    def represent_none(self, data):
        return self.represent_scalar("tag:yaml.org,2002:null", "null")


# Registered on the subclass only; other ruamel YAML instances are unaffected
ManifestRepresenter.add_representer(type(None), ManifestRepresenter.represent_none)


def create_yaml_instance() -> YAML:
    """Create configured ruamel.yaml instance for manifest editing.

    Returns:
        YAML instance configured to:
        - Preserve quotes and formatting
        - Not wrap long strings (image references, annotations)
        - Use block style (not flow style)
        - Write nulls as an explicit ``null``
    """
    yaml = YAML()
    yaml.preserve_quotes = True
    yaml.width = 4096
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    yaml.Representer = ManifestRepresenter
    return yaml


def load_documents(text: str, source: Optional[str] = None) -> List[Any]:
    """Parse every YAML document in ``text``.

    Empty documents (e.g. a trailing ``---``) are dropped.

    Raises:
        ManifestError: If the text is not valid YAML
    """
    yaml = create_yaml_instance()
    try:
        docs = [doc for doc in yaml.load_all(text) if doc is not None]
    except YAMLError as e:
        label = source or "<input>"
        raise ManifestError(f"Failed to parse YAML in {label}: {e}", source=source) from e
    return docs


def load_document(text: str, source: Optional[str] = None) -> Any:
    """Parse text that must contain exactly one YAML document."""
    docs = load_documents(text, source)
    if len(docs) != 1:
        label = source or "<input>"
        raise ManifestError(f"Expected exactly one YAML document in {label}, found {len(docs)}", source=source)
    return docs[0]


def dump_document(doc: Any) -> str:
    """Serialize a single document."""
    yaml = create_yaml_instance()
    stream = StringIO()
    yaml.dump(doc, stream)
    return stream.getvalue()


def dump_documents(docs: Iterable[Any]) -> str:
    """Serialize documents, separated by ``---`` when there is more than one."""
    parts = [dump_document(doc) for doc in docs]
    return "---\n".join(parts)


def load_fragment(source: Union[str, Path]) -> List[Any]:
    """Load a hand-authored fragment from a file path or inline YAML text.

    A string containing a newline or a colon-space is treated as inline
    YAML; anything else is read as a path.
    """
    if isinstance(source, Path) or ("\n" not in source and ": " not in source):
        path = Path(source)
        if not path.is_file():
            raise ManifestError(f"Fragment file not found: {path}", source=str(path))
        return load_documents(path.read_text(encoding="utf-8"), str(path))
    return load_documents(source, "<inline fragment>")


def to_plain(value: Any) -> Any:
    """Convert ruamel containers to builtin dicts and lists."""
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value
