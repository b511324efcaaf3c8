"""Infrastructure layer: store backends and key construction."""
