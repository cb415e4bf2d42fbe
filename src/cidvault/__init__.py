"""cidvault - Mirror IPFS content into an encrypted object store."""

__version__ = "1.0.7"
