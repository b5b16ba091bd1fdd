"""Manifest artifact implementation for YAML files.

This module provides the ManifestArtifact class that represents one or more
Kubernetes YAML files as an immutable value. Patching, merging and writing
all produce or consume ManifestArtifacts.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from kubeboot.core.schema.patch_dsl import Patch
from kubeboot.k8s.utils import iter_manifests
from kubeboot.k8s.yamlio import load_documents


@dataclass(frozen=True)
class ManifestArtifact:
    """Set of Kubernetes manifest files.

    Attributes:
        files: Mapping from file path to YAML content as string.
               Example: ``{"frontend.deploy.yaml": "apiVersion: apps/v1\\n..."}``

    Example:
        >>> artifact = ManifestArtifact.from_text(text, "frontend.deploy.yaml")
        >>> artifact.write_to_dir("objects")
    """
    files: Dict[str, str]

    def to_serializable(self) -> Dict:
        """Return dict with 'files' key containing file path -> content mapping."""
        return {"files": dict(self.files)}

    def apply_patch(self, patch: Patch) -> "ManifestArtifact":
        """Apply patch operations to create new artifact.

        Args:
            patch: Patch containing field-setting operations

        Returns:
            New ManifestArtifact with patch applied (original unchanged)
        """
        from kubeboot.k8s.patch_dsl import apply_k8s_patch

        return ManifestArtifact(files=apply_k8s_patch(self.files, patch))

    def documents(self) -> List[Tuple[str, int, Any]]:
        """Parse every manifest in every file.

        ``kind: List`` documents are expanded into their items.

        Returns:
            List of (filename, document index, manifest) tuples

        Raises:
            ManifestError: If any file is not valid YAML
        """
        result = []
        for filepath, content in self.files.items():
            for index, doc in enumerate(load_documents(content, filepath)):
                for manifest in iter_manifests(doc):
                    result.append((filepath, index, manifest))
        return result

    def write_to_dir(self, dir_path: str, output_filename: Optional[str] = None) -> List[Path]:
        """Write YAML files to directory.

        Creates the directory if it doesn't exist and writes all manifest
        files to disk.

        Args:
            dir_path: Directory path where files should be written
            output_filename: Optional filename to use for the first file.
                             If None, preserves original filenames (default: None)

        Returns:
            Paths that were written

        Example:
            >>> artifact.write_to_dir("objects")
            # Creates objects/frontend.deploy.yaml
        """
        dir_path_obj = Path(dir_path)
        dir_path_obj.mkdir(parents=True, exist_ok=True)

        written = []
        for i, (rel_path, content) in enumerate(self.files.items()):
            if i == 0 and output_filename is not None:
                file_path = dir_path_obj / output_filename
            else:
                file_path = dir_path_obj / rel_path

            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
            written.append(file_path)
        return written

    def write_to(self, file_path: str) -> Path:
        """Write all files concatenated as one multi-document YAML file."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.as_text(), encoding="utf-8")
        return path

    def as_text(self) -> str:
        """Return all files joined into one multi-document YAML string."""
        parts = []
        for content in self.files.values():
            parts.append(content if content.endswith("\n") else content + "\n")
        return "---\n".join(parts)

    @classmethod
    def from_text(cls, text: str, filename: str = "manifest.yaml") -> "ManifestArtifact":
        return cls(files={filename: text})

    @classmethod
    def from_file(cls, file_path: str) -> "ManifestArtifact":
        """Load ManifestArtifact from a YAML file.

        Args:
            file_path: Path to YAML file

        Returns:
            ManifestArtifact with the file content keyed by file name
        """
        path = Path(file_path)
        content = path.read_text(encoding="utf-8")
        return cls(files={path.name: content})

    @classmethod
    def from_dir(cls, dir_path: str, pattern: str = "*.yaml") -> "ManifestArtifact":
        """Load ManifestArtifact from directory with YAML files.

        Args:
            dir_path: Directory containing YAML files
            pattern: Glob pattern for files to include (default: ``*.yaml``)
        """
        dir_path_obj = Path(dir_path)
        files = {}

        for file_path in sorted(dir_path_obj.glob(pattern)):
            if file_path.is_file():
                rel_path = file_path.relative_to(dir_path_obj)
                files[str(rel_path)] = file_path.read_text(encoding="utf-8")

        return cls(files=files)
