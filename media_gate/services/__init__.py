"""Service layer: signing, binding tokens, verification."""
