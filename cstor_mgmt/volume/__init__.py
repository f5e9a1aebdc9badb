"""istgt target configuration for cStor volumes."""

from .volume import VolumeTarget, render_istgt_conf, validate_volume

__all__ = ["VolumeTarget", "render_istgt_conf", "validate_volume"]
