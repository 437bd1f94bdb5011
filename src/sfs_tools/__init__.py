"""semantic-fs tool packs."""
