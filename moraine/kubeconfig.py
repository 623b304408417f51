"""
Kubeconfig documents for provisioned GKE clusters.

A kubeconfig is either composed from the cluster's outputs or read from an
existing file. Exactly one source is used per run: a file configured under
``moraine:kubeconfig`` wins, and the composer is not invoked at all in that
case.
"""

import logging
from pathlib import Path

from moraine.core.cell import Cell
from moraine.core.context import ProvisioningContext
from moraine.core.resource import ResourceHandle
from moraine.defaults import KUBECONFIG_KEY

logger = logging.getLogger(__name__)


class CredentialError(Exception):
    """Raised when a kubeconfig cannot be read or composed."""
    pass


KUBECONFIG_TEMPLATE = """\
apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: "{ca_data}"
    server: https://{endpoint}
  name: {name}
contexts:
- context:
    cluster: {name}
    user: {name}
  name: {name}
current-context: {name}
kind: Config
preferences: {{}}
users:
- name: {name}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: gke-gcloud-auth-plugin
      installHint: Install gke-gcloud-auth-plugin for use with kubectl by following
        https://cloud.google.com/kubernetes-engine/docs/how-to/cluster-access-for-kubectl#install_plugin
      provideClusterInfo: true
"""


def render_kubeconfig(name: str, endpoint: str, ca_data: str | None = None) -> str:
    """
    Render the kubeconfig text for a cluster.

    Args:
        name: Cluster name, used for the cluster, context and user entries
        endpoint: API server host (without scheme)
        ca_data: Base64 CA certificate; empty when not available

    Returns:
        Kubeconfig document

    Raises:
        CredentialError: If the name or endpoint is missing
    """
    missing = [field for field, value in (("name", name), ("endpoint", endpoint)) if not value]
    if missing:
        raise CredentialError(
            f"Cannot compose kubeconfig without cluster {' and '.join(missing)}"
        )
    return KUBECONFIG_TEMPLATE.format(name=name, endpoint=endpoint, ca_data=ca_data or "")


def compose_kubeconfig(cluster: ResourceHandle) -> Cell[str]:
    """
    Compose a kubeconfig from a cluster handle without waiting.

    The returned cell resolves once the cluster's name, CA certificate and
    endpoint have all resolved. A missing CA certificate becomes an empty
    field. A failed cluster, or a missing name or endpoint, fails the
    document.
    """
    logger.debug("Composing kubeconfig for cluster '%s'", cluster.name)
    return Cell.all(
        cluster["name"],
        cluster["cluster_ca_certificate"],
        cluster["endpoint"],
        label=f"{cluster.name}.kubeconfig",
    ).map(lambda parts: render_kubeconfig(name=parts[0], ca_data=parts[1], endpoint=parts[2]))


def load_kubeconfig(path: str | Path) -> Cell[str]:
    """
    Read a kubeconfig file verbatim.

    Raises:
        CredentialError: If the file cannot be read
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise CredentialError(f"Cannot read kubeconfig '{path}': {e}") from e
    logger.info("Using kubeconfig from %s", path)
    return Cell.of(text, label=str(path))


def acquire_kubeconfig(ctx: ProvisioningContext, cluster: ResourceHandle) -> Cell[str]:
    """
    Pick the kubeconfig source for this run.

    A path configured under ``moraine:kubeconfig`` takes precedence and must
    be readable. Without it the document is composed from ``cluster``.
    """
    configured = ctx.get(KUBECONFIG_KEY)
    if configured:
        return load_kubeconfig(ctx.resolve_path(configured))
    return compose_kubeconfig(cluster)
