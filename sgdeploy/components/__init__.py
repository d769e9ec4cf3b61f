"""Installable components: container runtime, k3s, helm, images and manifests."""
