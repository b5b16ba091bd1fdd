"""Thin wrapper around the kubectl binary.

kubectl is the resource-definition generator kubeboot drives. All calls go
through ``Kubectl.run`` so that binary, context and timeout come from one
place and every failure surfaces as a GeneratorError.
"""

import logging
import subprocess
from typing import List, Optional, Sequence

from kubeboot.core.config import get_config_value
from kubeboot.core.errors import GeneratorError

logger = logging.getLogger(__name__)

DRY_RUN_MODES = ("client", "server")


class Kubectl:
    """kubectl subprocess runner.

    Configuration priority: explicit parameter > kubeboot.json > environment > default

    Example:
        >>> kubectl = Kubectl()
        >>> text = kubectl.run(["create", "deployment", "frontend", "--image", "nginx",
        ...                     "--dry-run=client", "-o", "yaml"])
    """

    def __init__(
        self,
        binary: Optional[str] = None,
        timeout: Optional[float] = None,
        context: Optional[str] = None,
    ):
        """Initialize kubectl runner.

        Args:
            binary: kubectl executable (default from config: "kubectl")
            timeout: Per-call timeout in seconds (default from config: 30.0)
            context: kubeconfig context passed as --context (optional)
        """
        self.binary = binary or get_config_value(["kubectl", "binary"], default="kubectl")
        self.timeout = float(timeout or get_config_value(["kubectl", "timeout_seconds"], default=30.0))
        self.context = context or get_config_value(["kubectl", "context"])

    def command(self, args: Sequence[str]) -> List[str]:
        """Build the full argument vector for ``args``."""
        cmd = [self.binary]
        if self.context:
            cmd += ["--context", self.context]
        cmd += list(args)
        return cmd

    def run(self, args: Sequence[str], input_text: Optional[str] = None) -> str:
        """Run kubectl and return its standard output.

        Args:
            args: Arguments after the binary name
            input_text: Text fed to standard input (for ``-f -``)

        Returns:
            Captured stdout

        Raises:
            GeneratorError: If kubectl is missing, times out, or exits non-zero
        """
        cmd = self.command(args)
        logger.info(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GeneratorError(f"kubectl binary not found: {self.binary}", command=cmd) from e
        except subprocess.TimeoutExpired as e:
            raise GeneratorError(f"kubectl timed out after {self.timeout}s", command=cmd) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise GeneratorError(
                f"kubectl exited with status {result.returncode}: {stderr}",
                command=cmd,
                returncode=result.returncode,
                stderr=stderr,
            )

        if result.stderr:
            logger.debug(f"kubectl stderr: {result.stderr.strip()}")
        return result.stdout

    def is_available(self) -> bool:
        """Check that ``kubectl version --client`` succeeds."""
        try:
            self.run(["version", "--client"])
        except GeneratorError as e:
            logger.debug(f"kubectl unavailable: {e}")
            return False
        return True

    def apply(
        self,
        manifest_text: str,
        dry_run: Optional[str] = None,
        server_side: bool = False,
    ) -> str:
        """Apply manifests by piping them to ``kubectl apply -f -``.

        Args:
            manifest_text: YAML to apply
            dry_run: "client" or "server" to render without persisting;
                     the rendered objects are returned as YAML
            server_side: Use server-side apply

        Returns:
            kubectl output

        Raises:
            GeneratorError: If kubectl fails
            ValueError: If dry_run is not a known mode
        """
        args = ["apply", "-f", "-"]
        if server_side:
            args.append("--server-side")
        if dry_run is not None:
            if dry_run not in DRY_RUN_MODES:
                raise ValueError(f"Unknown dry-run mode: {dry_run}. Valid: {list(DRY_RUN_MODES)}")
            args += [f"--dry-run={dry_run}", "-o", "yaml"]
        return self.run(args, input_text=manifest_text)
