"""Control-plane access for the openebs.io custom resources."""

from .client import ResourceClient, load_kube_config, split_key, is_not_found

__all__ = ["ResourceClient", "load_kube_config", "split_key", "is_not_found"]
