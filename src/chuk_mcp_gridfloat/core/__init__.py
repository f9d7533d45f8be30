"""GridFloat tile engine: naming, fetching, decoding, interpolation and height fields."""
