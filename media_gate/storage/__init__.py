"""Storage and streaming backend signers."""
