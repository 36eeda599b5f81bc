"""HTTP ingress for hosts that run out of process."""
