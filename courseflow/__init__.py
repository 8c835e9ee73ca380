"""Course version, branch and merge lifecycle service."""
