"""Chat pipeline: message types, normalizer, stream multiplexer, reconciler."""
