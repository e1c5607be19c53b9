"""Runtime discovery, version matching and the compile controller."""
