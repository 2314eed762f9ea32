"""Loading of settings and pod manifests from YAML."""

import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from podrecon.engine.reconciler import DEFAULT_NAMESPACE
from podrecon.errors import PodError, ValidationError
from podrecon.models.config import PodreconConfig
from podrecon.models.pod import PodSpec, load_pod_spec
from podrecon.translator import flatten


logger = logging.getLogger(__name__)

MANIFEST_PATTERNS = ("*.yaml", "*.yml")


def load_settings(path: Optional[Union[str, Path]] = None) -> PodreconConfig:
    """Load the settings file, falling back to defaults when there is none.

    Raises:
        ValidationError: If the file exists but is not valid
    """
    if path is None:
        return PodreconConfig()

    config_file = Path(path)
    if not config_file.exists():
        logger.warning(f"Settings file not found: {config_file}, using defaults")
        return PodreconConfig()

    try:
        data = YAML(typ="safe").load(config_file.read_text()) or {}
        config = PodreconConfig(**data)
    except YAMLError as e:
        raise ValidationError(f"{config_file}: invalid YAML: {e}") from e
    except PydanticValidationError as e:
        logger.error(f"Invalid settings: {e}")
        raise ValidationError(f"{config_file}: {e}") from e
    logger.debug(f"Loaded settings from {config_file}")
    return config


class ManifestLoader:
    """Reads pod manifests from a file or a directory of YAML files.

    A document is either in schema form (``metadata``, ``containers``, ...)
    or a cluster object with ``kind: Pod``. Several documents may share a
    file. Documents without a namespace land in ``default_namespace``.
    Content hashes are kept so callers can tell whether anything changed
    since the last load.
    """

    def __init__(self, path: Union[str, Path], default_namespace: str = DEFAULT_NAMESPACE):
        self.path = Path(path)
        self.default_namespace = default_namespace
        self.yaml = YAML(typ="safe")
        self.pods: Dict[str, PodSpec] = {}
        self.sources: Dict[str, Path] = {}
        self.errors: Dict[str, str] = {}
        self._hashes: Dict[str, str] = {}

    def files(self) -> List[Path]:
        if self.path.is_file():
            return [self.path]
        if not self.path.exists():
            raise FileNotFoundError(f"Manifest path not found: {self.path}")
        found = set()
        for pattern in MANIFEST_PATTERNS:
            found.update(self.path.rglob(pattern))
        return sorted(found)

    def load(self) -> Dict[str, PodSpec]:
        """Load every manifest, keyed by pod identity.

        Files that fail to parse are recorded in ``errors`` and skipped.
        """
        logger.info(f"Loading manifests from {self.path}")
        self.pods.clear()
        self.sources.clear()
        self.errors.clear()
        self._hashes.clear()

        for manifest in self.files():
            try:
                for spec in self.load_file(manifest):
                    if spec.pod_id in self.pods:
                        raise ValidationError(
                            f"pod {spec.pod_id} is also declared in {self.sources[spec.pod_id]}"
                        )
                    self.pods[spec.pod_id] = spec
                    self.sources[spec.pod_id] = manifest
                logger.debug(f"Loaded pods from {manifest}")
            except (PodError, YAMLError) as e:
                logger.error(f"Error loading {manifest}: {e}")
                self.errors[str(manifest)] = str(e)

        logger.info(f"Loaded {len(self.pods)} pod(s)")
        return self.pods

    def load_file(self, manifest: Path) -> List[PodSpec]:
        """Parse every document of one file."""
        content = manifest.read_text()
        self._hashes[str(manifest)] = hashlib.md5(content.encode()).hexdigest()
        specs = []
        for document in self.yaml.load_all(content):
            if not document:
                continue
            specs.append(parse_document(document, self.default_namespace))
        return specs

    def has_changed(self) -> bool:
        """Check if manifest files changed since the last load."""
        current = {}
        for manifest in self.files():
            content = manifest.read_text()
            current[str(manifest)] = hashlib.md5(content.encode()).hexdigest()
        return current != self._hashes


def parse_document(document: Dict[str, Any], default_namespace: str = DEFAULT_NAMESPACE) -> PodSpec:
    """Turn one YAML document into a PodSpec.

    A document that names no namespace is placed in ``default_namespace``.

    Raises:
        ValidationError: If the document is neither a pod manifest nor a Pod object
    """
    if not isinstance(document, dict):
        raise ValidationError(f"expected a mapping, got {type(document).__name__}")
    metadata = document.get("metadata")
    if isinstance(metadata, dict) and not metadata.get("namespace"):
        document = {**document, "metadata": {**metadata, "namespace": default_namespace}}
    if "kind" in document:
        if document.get("kind") != "Pod":
            raise ValidationError(f"unsupported kind: {document.get('kind')}")
        return load_pod_spec(flatten(document))
    return load_pod_spec(document)
